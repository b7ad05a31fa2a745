"""API package for formcraft."""

from formcraft.web.api import forms, monitoring

__all__ = ["forms", "monitoring"]
