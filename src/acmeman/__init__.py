"""ACME Manager: ACME v2 order and challenge orchestration with remote agents."""

__version__ = "1.0.0"
