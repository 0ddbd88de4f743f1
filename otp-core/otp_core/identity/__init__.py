"""
Identity Module
===============
Client identity resolution from request origin.
"""

from .resolver import ClientIdentityResolver, IdentityPolicy, UNKNOWN_ADDRESS

__all__ = [
    "ClientIdentityResolver",
    "IdentityPolicy",
    "UNKNOWN_ADDRESS",
]
