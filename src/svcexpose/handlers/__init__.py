"""Handler modules for the svcexpose operator."""

# Importing registers the kopf handlers
from . import service_handler

__all__ = ["service_handler"]
