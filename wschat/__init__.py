"""Core of a WebSocket chat backend: configuration, models, request and response shapes, and in-process message routing."""

__version__ = "0.1.0"