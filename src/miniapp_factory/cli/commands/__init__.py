"""CLI commands for the mini-app factory."""

from . import apply, providers, transform

__all__ = ["apply", "providers", "transform"]
