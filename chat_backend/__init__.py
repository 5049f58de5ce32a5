"""FastAPI backend for a streaming AI chat assistant with file attachments."""

__version__ = "0.1.0"
