"""proofwatch - status and stuck-job inspection for a batch proving pipeline."""

__version__ = "0.4.0"
