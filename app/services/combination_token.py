"""
Client-held combination tokens.

A token stores the combination a client was last given for a test set, one
cookie per test set. The value is either ``-`` (explicitly "no combination")
or two lowercase hex digits per variable, so its length alone tells whether
it was written for the current shape of the test set. Tokens come from the
client and are untrusted: anything malformed decodes as "no assignment".
"""

import logging
from typing import Mapping, Optional, Sequence

from fastapi import Response

logger = logging.getLogger(__name__)

NONE_TOKEN = "-"
MAX_INDEX = 0xFF
_HEX_DIGITS = frozenset("0123456789abcdef")


def encode_combination(indices: Optional[Sequence[int]]) -> str:
    """Encodes a combination, or None for the explicit "no combination" token."""
    if indices is None:
        return NONE_TOKEN
    for index in indices:
        if not 0 <= index <= MAX_INDEX:
            raise ValueError(f"Combination index {index} does not fit in a token.")
    return "".join(f"{index:02x}" for index in indices)


def decode_combination(token: Optional[str]) -> Optional[tuple[int, ...]]:
    """
    Decodes a token into combination indices.

    Returns None for a missing token, the explicit "none" token and for any
    value that is not a well-formed encoding.
    """
    if not token or token == NONE_TOKEN:
        return None
    token = token.lower()
    if len(token) % 2 or not set(token) <= _HEX_DIGITS:
        logger.debug("Ignoring malformed combination token %r", token)
        return None
    return tuple(int(token[i : i + 2], 16) for i in range(0, len(token), 2))


class CombinationTokenStore:
    """Reads the incoming tokens of a request and collects the ones to send back."""

    def __init__(self, cookies: Mapping[str, str], prefix: str = "ct_"):
        self.prefix = prefix
        self._incoming = {
            name[len(prefix) :]: value
            for name, value in cookies.items()
            if name.startswith(prefix)
        }
        self.pending: dict[str, str] = {}

    def cookie_name(self, test_set_id: str) -> str:
        return f"{self.prefix}{test_set_id}"

    def is_set_in_request(self) -> bool:
        return bool(self._incoming)

    def get_from_request(self, test_set_id: str) -> Optional[tuple[int, ...]]:
        return decode_combination(self._incoming.get(test_set_id))

    def save_to_response(self, test_set_id: str, indices: Optional[Sequence[int]]) -> None:
        """Queues a token write; the last write for a test set wins."""
        self.pending[test_set_id] = encode_combination(indices)

    def apply(self, response: Response, max_age_days: int) -> None:
        for test_set_id, value in self.pending.items():
            response.set_cookie(
                key=self.cookie_name(test_set_id),
                value=value,
                max_age=max_age_days * 24 * 60 * 60,
                httponly=True,
                samesite="lax",
            )
