"""Utility functions for grill."""

from grill.utils.helpers import atomic_write_text, ensure_dir, now_iso

__all__ = ["atomic_write_text", "ensure_dir", "now_iso"]
