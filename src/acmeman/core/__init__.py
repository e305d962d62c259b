"""Core types, errors, identity helpers, and state tables."""
