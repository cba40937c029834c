import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import PropertyFormatError

"""
properties.py — profile property records and their JSON form.

The proxy forwards the player's profile properties (normally skin/cape data)
as a JSON array:

    [{"name": "textures", "value": "...", "signature": "..."}, ...]

We parse that once into typed `Property` records. Each record keeps the
original JSON object so that re-serializing after stripping the token gives
back exactly what the proxy sent for every other entry (key order and any
extra keys included).
"""

TOKEN_PROPERTY_NAME = "bungeeguard-token"


@dataclass(frozen=True)
class Property:
    name: str
    value: str
    signed: Optional[bool] = None
    signature: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_token(self) -> bool:
        return self.name == TOKEN_PROPERTY_NAME

    def to_json_obj(self) -> Dict[str, Any]:
        """JSON object for this property; the original object if we have one."""
        if self.raw:
            return dict(self.raw)
        obj: Dict[str, Any] = {"name": self.name, "value": self.value}
        if self.signed is not None:
            obj["signed"] = self.signed
        if self.signature is not None:
            obj["signature"] = self.signature
        return obj


def _encodable(text: str) -> bool:
    """True if `text` survives a strict UTF-8 encode (no lone surrogates)."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def property_from_obj(obj: Any, index: int = 0) -> Property:
    """
    Validate one decoded JSON entry and wrap it.

    Raises:
        PropertyFormatError: not an object, or a field has the wrong type.
    """
    if not isinstance(obj, dict):
        raise PropertyFormatError(f"Property #{index} is not an object")

    name = obj.get("name")
    if not isinstance(name, str) or not name:
        raise PropertyFormatError(f"Property #{index} has no name")
    if not _encodable(name):
        raise PropertyFormatError(f"Property #{index} has a name that is not valid UTF-8")

    value = obj.get("value")
    if not isinstance(value, str):
        raise PropertyFormatError(f"Property {name!r} has a non-string value")
    if not _encodable(value):
        raise PropertyFormatError(f"Property {name!r} has a value that is not valid UTF-8")

    signed = obj.get("signed")
    if signed is not None and not isinstance(signed, bool):
        raise PropertyFormatError(f"Property {name!r} has a non-boolean 'signed'")

    signature = obj.get("signature")
    if signature is not None and not isinstance(signature, str):
        raise PropertyFormatError(f"Property {name!r} has a non-string signature")
    if signature is not None and not _encodable(signature):
        raise PropertyFormatError(f"Property {name!r} has a signature that is not valid UTF-8")

    return Property(name=name, value=value, signed=signed, signature=signature, raw=obj)


def parse_properties(raw: str) -> List[Property]:
    """
    Parse the forwarded property JSON into an ordered list of records.

    Raises:
        PropertyFormatError: invalid JSON, a non-array top level, or a bad entry.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        # Short message; the payload itself may carry the secret.
        raise PropertyFormatError(f"Invalid property JSON: {exc.msg}") from exc
    except (ValueError, RecursionError) as exc:
        # Parses as JSON but trips the decoder's limits (nesting depth, huge integers).
        raise PropertyFormatError("Property JSON is too deeply nested or has an oversized number") from exc

    if not isinstance(data, list):
        raise PropertyFormatError("Property JSON must be an array")

    properties = [property_from_obj(obj, i) for i, obj in enumerate(data)]

    # Extra keys are passed through verbatim, so they must be re-encodable too.
    try:
        serialize_properties(properties).encode("utf-8")
    except UnicodeEncodeError as exc:
        raise PropertyFormatError("Property JSON contains text that is not valid UTF-8") from exc
    except RecursionError as exc:
        raise PropertyFormatError("Property JSON is too deeply nested") from exc

    return properties


def serialize_properties(properties: Iterable[Property]) -> str:
    """Compact JSON array, non-ASCII kept as UTF-8 (same shape as we received)."""
    return json.dumps(
        [p.to_json_obj() for p in properties],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def find_token(properties: Iterable[Property]) -> Optional[str]:
    """Value of the first token property, or None when there isn't one."""
    for prop in properties:
        if prop.is_token:
            return prop.value
    return None


def strip_token(properties: Iterable[Property]) -> List[Property]:
    """Drop every token property (not just the first), keep the rest in order."""
    return [p for p in properties if not p.is_token]
