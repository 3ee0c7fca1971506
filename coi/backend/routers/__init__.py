"""
Routers package for FastAPI endpoints.

- analyze: certificate upload and extraction
"""

from . import analyze

__all__ = ["analyze"]
