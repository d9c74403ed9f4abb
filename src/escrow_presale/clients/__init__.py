"""
Client module for presale purchases.

Provides the authorization backend client and the session-level
``PresaleClient`` that drives purchases and claims.
"""

from .backend_client import AuthorizationClient
from .presale_client import PresaleClient

__all__ = ["AuthorizationClient", "PresaleClient"]
