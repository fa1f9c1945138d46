"""Viking store service backend: users, roles, devices and diagnostics."""

from .api import app

__all__ = ["app"]
