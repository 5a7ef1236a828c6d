"""Command-line interface for SRO Appointments."""
