"""Persistent directory access."""

from bloodlink.db.client import Directory, DirectoryClient

__all__ = ["Directory", "DirectoryClient"]
