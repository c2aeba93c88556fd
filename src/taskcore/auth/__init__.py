"""
Authentication for TaskCore: a bearer gate plus a pluggable token verifier.
"""

from .gate import require_identity, get_token_verifier
from .verifier import Identity, TokenVerifier, HmacTokenVerifier

__all__ = ["require_identity", "get_token_verifier", "Identity", "TokenVerifier", "HmacTokenVerifier"]
