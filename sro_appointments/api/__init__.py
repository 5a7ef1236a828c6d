"""HTTP API for SRO Appointments."""
