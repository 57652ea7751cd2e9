"""Logging and search tracing."""
