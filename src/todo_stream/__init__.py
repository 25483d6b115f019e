"""Multi-user todo list service with live updates over server-sent events."""

__version__ = "0.1.0"
