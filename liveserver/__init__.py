"""Static file server that reloads browser tabs when files change."""

__version__ = "0.1.0"
