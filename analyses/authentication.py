"""
Token authentication class referenced from ``REST_FRAMEWORK`` settings.

Kept apart from the views so DRF can import it during initialization
without pulling in the view modules.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """``Authorization: Token <key>`` header authentication."""

    keyword = 'Token'
