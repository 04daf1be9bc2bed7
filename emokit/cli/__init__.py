"""Command-line tooling."""
from __future__ import annotations

from .capture import main

__all__ = ["main"]
