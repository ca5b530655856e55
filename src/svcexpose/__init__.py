"""Kubernetes operator that exposes Services on the tailnet."""

__version__ = "0.1.0"
