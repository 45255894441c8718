"""Mini-app factory: provider fallback and structured edits for web projects."""

__version__ = "0.1.0"
