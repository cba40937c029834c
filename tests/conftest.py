"""
Shared fixtures for the bguard test suite.

Handshakes are built from parts so each test only spells out what it cares
about; the defaults are a well-formed modern handshake with skin data.
"""

import json
from typing import Any, Dict, List, Optional

import pytest

from bguard.config import KickMessages
from bguard.gatekeeper import Gatekeeper
from bguard.tokens import AllowedTokenSet

PLAYER_HEX = "069a79f444e94726a5befca90e38aaf5"
PLAYER_UUID = "069a79f4-44e9-4726-a5be-fca90e38aaf5"
HOSTNAME = "play.example.net"
ADDRESS = "203.0.113.7"

TEXTURES = {"name": "textures", "value": "ZXlKMFpYaDBkWEpsY3lJNmUzMTk=", "signature": "c2lnbmF0dXJl"}

MESSAGES = KickMessages(
    no_data="no data",
    no_properties="no properties",
    invalid_token="invalid token",
)


def token_property(value: str) -> Dict[str, Any]:
    return {"name": "bungeeguard-token", "value": value, "signed": False}


def make_handshake(
    properties: Optional[List[Dict[str, Any]]] = None,
    raw_properties: Optional[str] = None,
    hostname: str = HOSTNAME,
    address: str = ADDRESS,
    player_hex: str = PLAYER_HEX,
    legacy: bool = False,
) -> str:
    """Build a NUL-separated handshake; `legacy=True` leaves the properties field out."""
    fields = [hostname, address, player_hex]
    if not legacy:
        if raw_properties is None:
            raw_properties = json.dumps(properties if properties is not None else [], separators=(",", ":"))
        fields.append(raw_properties)
    return "\x00".join(fields)


class RecordingPersister:
    """Stands in for ConfigStore.save_allowed_tokens."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def __call__(self, tokens: List[str]) -> None:
        self.calls.append(list(tokens))


@pytest.fixture
def persister() -> RecordingPersister:
    return RecordingPersister()


@pytest.fixture
def make_gatekeeper(persister):
    """Factory: make_gatekeeper(["secret1", ...]) → Gatekeeper wired to `persister`."""

    def _make(tokens=()) -> Gatekeeper:
        return Gatekeeper(AllowedTokenSet(tokens), MESSAGES, persist=persister)

    return _make
