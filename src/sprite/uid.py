"""Opaque tag identifiers."""

from __future__ import annotations

import hashlib


class TagId(str):
    """The unique identifier associated with an NFC tag.

    The key is a one-way hash of the token read from the tag, so the raw
    token is never stored.
    """

    __slots__ = ()

    @classmethod
    def from_token(cls, token: str) -> TagId:
        """Derive the stable key for a raw tag token."""
        return cls(hashlib.sha256(token.encode()).hexdigest()[:16])

    def __repr__(self) -> str:
        return f"TagId:{str.__str__(self)}"
