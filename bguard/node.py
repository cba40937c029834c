import asyncio
from typing import Any, Dict, Optional

from .framing import FrameError, read_frame, write_frame
from .gatekeeper import Accepted, Decision, Gatekeeper
from .logging_config import get_logger

"""
node.py — guard service: lets a game server outside this process ask for a
handshake decision over TCP.

Requests and responses are single frames (see framing.py):

    → {"type": "HANDSHAKE", "id": 7, "handshake": "<raw NUL-separated string>"}
    ← {"type": "ACCEPT", "id": 7, "hostname": ..., "address": ..., "unique_id": ..., "properties": ...}
    ← {"type": "REJECT", "id": 7, "reason": "INVALID_TOKEN", "message": "..."}

    → {"type": "PING", "id": 8}
    ← {"type": "PONG", "id": 8}

Anything else gets {"type": "ERROR", "error": "..."} and the connection stays
open. A frame that doesn't parse closes the connection.

Notes:
- Each evaluation runs in a worker thread. Auto-learn may write the config
  file, and that write must not stall the event loop.
- The service should only listen on the private network between the proxy
  host and the backend; it trusts whoever can reach it.
"""

logger = get_logger(__name__)

HANDSHAKE = "HANDSHAKE"
PING = "PING"
PONG = "PONG"
ACCEPT = "ACCEPT"
REJECT = "REJECT"
ERROR = "ERROR"


def decision_to_frame(decision: Decision, request_id: Any = None) -> Dict[str, Any]:
    """Wire form of a decision."""
    if isinstance(decision, Accepted):
        p = decision.payload
        return {
            "type": ACCEPT,
            "id": request_id,
            "hostname": p.destination_hostname,
            "address": p.origin_address,
            "unique_id": str(p.player_id),
            "properties": p.raw_properties,
        }
    return {
        "type": REJECT,
        "id": request_id,
        "reason": decision.reason.value,
        "message": decision.message,
    }


def error_frame(error: str, request_id: Any = None) -> Dict[str, Any]:
    return {"type": ERROR, "id": request_id, "error": error}


class GuardServer:
    """Accepts connections and answers HANDSHAKE/PING frames."""

    def __init__(self, gatekeeper: Gatekeeper, host: str = "127.0.0.1", port: int = 0) -> None:
        self.gatekeeper = gatekeeper
        self.host = host
        self.port = port
        self._server: Optional[asyncio.Server] = None

    async def start(self) -> None:
        """Bind and start accepting; `self.port` holds the real port afterwards."""
        self._server = await asyncio.start_server(self.handle_conn, self.host, self.port)
        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        addrs = ", ".join(str(sock.getsockname()) for sock in sockets)
        logger.info("Guard service listening", addresses=addrs)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        server = self._server
        if server is None:
            raise RuntimeError("Guard service failed to bind")
        async with server:
            await server.serve_forever()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def handle_conn(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Per-connection loop: one response frame per request frame."""
        peer = str(writer.get_extra_info("peername"))
        try:
            while True:
                frame = await read_frame(reader)
                if frame is None:
                    break
                response = await self.process_frame(frame)
                await write_frame(writer, response)
        except asyncio.IncompleteReadError:
            # Peer went away mid-frame; nothing to do.
            pass
        except FrameError as exc:
            logger.warning("Dropping connection after a bad frame", peer=peer, error=str(exc))
        except ConnectionError as exc:
            logger.debug("Connection lost", peer=peer, error=str(exc))
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def process_frame(self, frame: Dict[str, Any]) -> Dict[str, Any]:
        msg_type = frame.get("type")
        request_id = frame.get("id")

        if msg_type == PING:
            return {"type": PONG, "id": request_id}

        if msg_type == HANDSHAKE:
            raw = frame.get("handshake")
            if not isinstance(raw, str):
                return error_frame("MISSING_HANDSHAKE", request_id)
            decision = await asyncio.to_thread(self.gatekeeper.evaluate_handshake, raw)
            return decision_to_frame(decision, request_id)

        return error_frame("UNKNOWN_TYPE", request_id)


async def request_decision(host: str, port: int, raw: str, request_id: Any = 1) -> Dict[str, Any]:
    """One-shot client: send a handshake, return the response frame."""
    reader, writer = await asyncio.open_connection(host, port)
    try:
        await write_frame(writer, {"type": HANDSHAKE, "id": request_id, "handshake": raw})
        response = await read_frame(reader)
        if response is None:
            raise ConnectionError("Guard service closed the connection without answering")
        return response
    finally:
        writer.close()
        await writer.wait_closed()

