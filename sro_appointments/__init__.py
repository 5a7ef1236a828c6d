"""SRO Appointments - slot allocation and appointment lifecycle for the Student Relations Office."""

__version__ = "0.1.0"
