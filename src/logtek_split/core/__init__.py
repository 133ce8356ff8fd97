"""Core configuration and request authentication."""
