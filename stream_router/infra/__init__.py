"""Infra layer utilities (snapshot persistence)."""

from . import snapshot

__all__ = ["snapshot"]
