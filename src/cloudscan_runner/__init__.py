"""cloudscan-runner: one-shot security scan job for the cloudscan orchestrator."""

__version__ = "0.1.0"
