"""
bguard — backend-side guard for proxy-forwarded handshakes.

The proxy hides a shared secret inside the player's profile properties under
the reserved name ``bungeeguard-token``. The backend only admits a handshake
whose token is in its allow-list, and strips the token before the handshake
is passed on so nothing downstream ever sees it.

Pieces:
- handshake:  NUL-separated handshake decoding.
- properties: typed property records + JSON codec + token stripping.
- tokens:     lock-guarded allow-list with one-time auto-learn.
- gatekeeper: accept/reject decision for one handshake.
- config:     YAML config store (kick messages + allowed tokens).
- host:       adapter for a host's mutable handshake event.
- node/run:   tiny asyncio guard service and CLI.
"""
__all__ = [
    "config",
    "errors",
    "framing",
    "gatekeeper",
    "handshake",
    "host",
    "logging_config",
    "node",
    "properties",
    "run",
    "tokens",
]
