import re
import uuid
from dataclasses import dataclass
from typing import List, Optional

from .errors import InvalidPlayerId, MalformedHandshake

"""
handshake.py — decode the proxy-forwarded handshake string.

Wire format (fields separated by a single NUL byte):

    <destination hostname> \\0 <origin address> \\0 <32 hex player id> [ \\0 <properties json> ]

- 3 fields: legacy forwarding, no property list.
- 4 fields: modern forwarding, the last field is a JSON array of properties.
- Anything else is malformed.

Decoding is pure: no I/O, no logging. The property JSON is kept verbatim;
parsing it is the gatekeeper's job.
"""

FIELD_SEPARATOR = "\x00"
LEGACY_FIELD_COUNT = 3
MODERN_FIELD_COUNT = 4

_COMPACT_ID = re.compile(r"[0-9a-fA-F]{32}")


@dataclass(frozen=True)
class HandshakePayload:
    """One decoded handshake. Created per connection attempt, never mutated."""
    destination_hostname: str
    origin_address: str
    player_id: uuid.UUID
    raw_properties: Optional[str] = None

    @property
    def has_properties(self) -> bool:
        return self.raw_properties is not None

    def with_properties(self, raw_properties: Optional[str]) -> "HandshakePayload":
        """Copy of this payload carrying a different property list."""
        return HandshakePayload(
            self.destination_hostname,
            self.origin_address,
            self.player_id,
            raw_properties,
        )

    def encode(self) -> str:
        """Rebuild the NUL-separated wire form (compact player id)."""
        fields = [self.destination_hostname, self.origin_address, format_player_id(self.player_id)]
        if self.raw_properties is not None:
            fields.append(self.raw_properties)
        return FIELD_SEPARATOR.join(fields)


# -------------------------
# Player id helpers
# -------------------------

def parse_player_id(text: str) -> uuid.UUID:
    """
    Turn a compact 32-hex-digit id into a UUID.

    Dashes go back in at offsets 8, 12, 16 and 20 before parsing, so the
    result is the same as parsing the canonical dashed text.

    Raises:
        InvalidPlayerId: wrong length or non-hex characters.
    """
    if not _COMPACT_ID.fullmatch(text):
        raise InvalidPlayerId(f"Player id must be 32 hex digits, got {len(text)} characters")
    dashed = f"{text[0:8]}-{text[8:12]}-{text[12:16]}-{text[16:20]}-{text[20:32]}"
    return uuid.UUID(dashed)


def format_player_id(player_id: uuid.UUID) -> str:
    """Compact form used on the wire (no dashes, lower case)."""
    return player_id.hex


# -------------------------
# Decoder
# -------------------------

def split_fields(raw: str) -> List[str]:
    """
    Split on NUL and drop trailing empty fields.

    A trailing separator therefore doesn't create an extra empty field:
    "a\\0b\\0c\\0" has 3 fields, the same count a Java String.split gives.
    """
    fields = raw.split(FIELD_SEPARATOR)
    while fields and fields[-1] == "":
        fields.pop()
    return fields


def decode(raw: str) -> HandshakePayload:
    """
    Decode one raw handshake.

    Raises:
        MalformedHandshake: field count is not 3 or 4, or the text is not valid UTF-8.
        InvalidPlayerId: the id field is not 32 hex digits.
    """
    fields = split_fields(raw)
    if len(fields) not in (LEGACY_FIELD_COUNT, MODERN_FIELD_COUNT):
        raise MalformedHandshake(f"Expected 3 or 4 handshake fields, got {len(fields)}")
    try:
        raw.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise MalformedHandshake("Handshake contains text that is not valid UTF-8") from exc

    player_id = parse_player_id(fields[2])
    raw_properties = fields[3] if len(fields) == MODERN_FIELD_COUNT else None

    return HandshakePayload(
        destination_hostname=fields[0],
        origin_address=fields[1],
        player_id=player_id,
        raw_properties=raw_properties,
    )
