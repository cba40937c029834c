"""
tokens.py — the allow-list of trusted proxy tokens.

Why this exists:
- Keep the only piece of shared mutable state behind one small API, so the
  gatekeeper never does an ad-hoc read-then-write on a bare set.
- Membership checks compare in constant time so response timing doesn't
  reveal how much of a guessed token was right.

Lifecycle:
- Loaded once at startup from config.
- Unseeded (empty) → Seeded happens at most once, via `learn_if_empty()`.
- Nothing is ever removed at runtime.
"""

import base64
import os
import threading
from typing import Iterable, List

from cryptography.hazmat.primitives import constant_time

# -----------------------------
# Base64 URL helpers (no padding)
# -----------------------------

def b64url_encode(data: bytes) -> str:
    """URL-safe Base64 without '=' padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_token(nbytes: int = 32) -> str:
    """
    Fresh random token for an operator to paste into proxy + backend config.

    32 bytes of os.urandom → 43 characters of base64url.
    """
    if nbytes < 16:
        raise ValueError("Tokens shorter than 16 bytes are too easy to guess")
    return b64url_encode(os.urandom(nbytes))


def tokens_equal(a: str, b: str) -> bool:
    """
    Constant-time string comparison over UTF-8 bytes.

    Total for any str: lone surrogates are encoded with "surrogatepass"
    instead of raising.
    """
    return constant_time.bytes_eq(a.encode("utf-8", "surrogatepass"), b.encode("utf-8", "surrogatepass"))


# -------------------
# Allow-list
# -------------------

class AllowedTokenSet:
    """
    Thread-safe set of opaque token strings.

    All reads and writes take the same lock; the critical sections are tiny
    (no I/O happens while it is held). Persisting a learned token is the
    caller's job, after `learn_if_empty()` returns.
    """

    def __init__(self, tokens: Iterable[str] = ()) -> None:
        self._tokens = set(tokens)
        self._lock = threading.Lock()

    def contains(self, token: str) -> bool:
        with self._lock:
            candidates = list(self._tokens)
        # Check every entry; no early exit on the first match.
        found = False
        for candidate in candidates:
            if tokens_equal(candidate, token):
                found = True
        return found

    def learn_if_empty(self, token: str) -> bool:
        """
        Atomically seed the set with `token` if it is still empty.

        Returns True for the single call that seeded the set, False for every
        other call (including concurrent ones that lost the race).
        """
        with self._lock:
            if self._tokens:
                return False
            self._tokens.add(token)
            return True

    @property
    def is_seeded(self) -> bool:
        with self._lock:
            return bool(self._tokens)

    def snapshot(self) -> List[str]:
        """Sorted copy, e.g. for writing back to config."""
        with self._lock:
            return sorted(self._tokens)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.contains(token)
