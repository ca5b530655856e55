"""Collaborators backing the service reconciler."""

from .store import ProxyCleaner, ResourceStore

__all__ = ["ProxyCleaner", "ResourceStore"]
