"""Core error taxonomy and logging."""
