"""Task tracker auth session and admission control service."""

__version__ = "0.1.0"
