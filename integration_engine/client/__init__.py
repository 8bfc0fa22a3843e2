"""
Backend access

This module provides the async HTTP client the orchestrator uses to reach
the analytics backend's integration endpoints.
"""

from .backend_client import BackendClient

__all__ = [
    "BackendClient",
]
