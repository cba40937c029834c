"""
gatekeeper.py — accept/reject decision for one forwarded handshake.

Order of checks (first failure wins):
  1. no property list at all            → NO_PROPERTIES
  2. property JSON doesn't parse         → MALFORMED_STRUCTURE
  3. property list is empty              → NO_PROPERTIES
  4. no `bungeeguard-token` property     → NO_PROPERTIES
  5. allow-list empty                    → learn this token, accept
  6. token not in the allow-list         → INVALID_TOKEN
  7. otherwise                           → accept, token stripped

Steps 1, 3 and 4 share one client-visible reason on purpose: a client can't
tell which of them tripped. The audit log line says which one it was.
"""

import enum
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from .config import ConfigStore, KickMessages
from .errors import DecodeError, PropertyFormatError
from .handshake import HandshakePayload, decode
from .logging_config import get_logger
from .properties import find_token, parse_properties, serialize_properties, strip_token
from .tokens import AllowedTokenSet

logger = get_logger(__name__)


class RejectReason(enum.Enum):
    MALFORMED_STRUCTURE = "MALFORMED_STRUCTURE"
    NO_PROPERTIES = "NO_PROPERTIES"
    INVALID_TOKEN = "INVALID_TOKEN"


@dataclass(frozen=True)
class Accepted:
    payload: HandshakePayload

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    message: str

    @property
    def accepted(self) -> bool:
        return False


Decision = Union[Accepted, Rejected]

TokenPersister = Callable[[List[str]], None]


class Gatekeeper:
    """
    Owns the allow-list and evaluates handshakes against it.

    Safe to call from many threads at once. The only shared state is the
    AllowedTokenSet, whose check-and-learn is atomic. Persisting a learned
    token runs after that lock is released.
    """

    def __init__(
        self,
        tokens: AllowedTokenSet,
        messages: KickMessages,
        persist: Optional[TokenPersister] = None,
    ) -> None:
        self.tokens = tokens
        self.messages = messages
        self.persist = persist

    @classmethod
    def from_store(cls, store: ConfigStore) -> "Gatekeeper":
        """Load config from `store` and write learned tokens back to it."""
        config = store.load()
        return cls(
            AllowedTokenSet(config.allowed_tokens),
            config.messages,
            persist=store.save_allowed_tokens,
        )

    # -------------------------
    # Entry points
    # -------------------------

    def evaluate_handshake(self, raw: str) -> Decision:
        """Decode `raw` and evaluate it. Decode failures become MALFORMED_STRUCTURE."""
        try:
            payload = decode(raw)
        except DecodeError as exc:
            logger.warning("Denied connection", reason=f"Malformed handshake data: {exc}")
            return Rejected(RejectReason.MALFORMED_STRUCTURE, self.messages.no_data)
        return self.evaluate(payload)

    def evaluate(self, payload: HandshakePayload) -> Decision:
        if payload.raw_properties is None:
            return self._no_properties(payload, "No properties were sent in their handshake.")

        try:
            properties = parse_properties(payload.raw_properties)
        except PropertyFormatError as exc:
            self._deny(payload, f"Malformed properties in their handshake: {exc}")
            return Rejected(RejectReason.MALFORMED_STRUCTURE, self.messages.no_data)

        if not properties:
            return self._no_properties(payload, "No properties were sent in their handshake.")

        token = find_token(properties)
        if token is None:
            return self._no_properties(payload, "A token was not included in their handshake properties.")

        if self.tokens.learn_if_empty(token):
            logger.info(
                "No token configured, saving the one from the connection",
                player_id=str(payload.player_id),
                address=payload.origin_address,
            )
            self._persist_tokens()
        elif not self.tokens.contains(token):
            self._deny(payload, "An invalid token was used", token=token)
            return Rejected(RejectReason.INVALID_TOKEN, self.messages.invalid_token)

        sanitized = serialize_properties(strip_token(properties))
        return Accepted(payload.with_properties(sanitized))

    # -------------------------
    # Helpers
    # -------------------------

    def _no_properties(self, payload: HandshakePayload, reason: str) -> Rejected:
        self._deny(payload, reason)
        return Rejected(RejectReason.NO_PROPERTIES, self.messages.no_properties)

    def _deny(self, payload: HandshakePayload, reason: str, **extra: str) -> None:
        logger.warning(
            "Denied connection",
            player_id=str(payload.player_id),
            address=payload.origin_address,
            reason=reason,
            **extra,
        )

    def _persist_tokens(self) -> None:
        if self.persist is None:
            return
        try:
            self.persist(self.tokens.snapshot())
        except Exception:
            # The token is learned in memory already; this connection still goes through.
            logger.exception("Failed to save the learned token")
