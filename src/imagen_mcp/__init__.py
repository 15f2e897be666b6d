"""MCP server for Vertex AI Imagen with an asynchronous job queue."""

__version__ = "0.4.0"
