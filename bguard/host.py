"""
host.py — adapter between a host's handshake event and the gatekeeper.

The host hands us one mutable record per connection attempt. On accept we
fill in the sanitized fields; on reject we set a fail message and flag the
event as failed so the host kicks the player.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from .gatekeeper import Accepted, Decision, Gatekeeper


@dataclass
class HandshakeEvent:
    original_handshake: str
    server_hostname: Optional[str] = None
    socket_address_hostname: Optional[str] = None
    unique_id: Optional[uuid.UUID] = None
    properties_json: Optional[str] = None
    fail_message: Optional[str] = None
    failed: bool = False


def apply_decision(event: HandshakeEvent, decision: Decision) -> None:
    """Copy a decision onto the event's output fields."""
    if isinstance(decision, Accepted):
        payload = decision.payload
        event.server_hostname = payload.destination_hostname
        event.socket_address_hostname = payload.origin_address
        event.unique_id = payload.player_id
        event.properties_json = payload.raw_properties
        return
    event.fail_message = decision.message
    event.failed = True


def handle_handshake(gatekeeper: Gatekeeper, event: HandshakeEvent) -> Optional[Decision]:
    """
    Evaluate one event in place.

    Events another handler already failed are left alone and None is returned.
    """
    if event.failed:
        return None
    decision = gatekeeper.evaluate_handshake(event.original_handshake)
    apply_decision(event, decision)
    return decision
