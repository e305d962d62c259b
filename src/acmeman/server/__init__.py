"""WSGI server integration for the agent service."""
