import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .config import ConfigStore
from .errors import ConfigError
from .gatekeeper import Accepted, Gatekeeper
from .logging_config import LOG_FORMATS, configure_logging, get_logger
from .node import GuardServer, decision_to_frame
from .tokens import generate_token

"""
run.py — single entry point for the guard.

What you can do here:
- serve:           run the guard service on host:port
- check:           evaluate one handshake locally and print the decision
- generate-token:  print a fresh random token for proxy + backend config
"""

logger = get_logger(__name__)


# -------------------------
# Commands
# -------------------------

async def run_serve(gatekeeper: Gatekeeper, host: str, port: int) -> None:
    """Bind the guard service and serve forever."""
    server = GuardServer(gatekeeper, host, port)
    await server.serve_forever()


def unescape_handshake(text: str) -> str:
    """
    Accept a handshake typed on a terminal.

    Literal "\\0" / "\\x00" sequences become NUL; a single trailing newline
    (from echo or a file) is dropped.
    """
    if text.endswith("\n"):
        text = text[:-1]
    return text.replace("\\x00", "\x00").replace("\\0", "\x00")


def cmd_check(gatekeeper: Gatekeeper, handshake: Optional[str]) -> int:
    """Print the decision as JSON. Exit code 0 on accept, 1 on reject."""
    raw = handshake if handshake is not None else sys.stdin.read()
    decision = gatekeeper.evaluate_handshake(unescape_handshake(raw))
    print(json.dumps(decision_to_frame(decision), indent=2, ensure_ascii=False))
    return 0 if isinstance(decision, Accepted) else 1


def cmd_generate_token(nbytes: int) -> int:
    print(generate_token(nbytes))
    return 0


# -------------------------
# Argument parsing
# -------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Quick examples:
      Serve:     python -m bguard.run serve --config config.yml --host 10.0.0.2 --port 25580
      Check:     python -m bguard.run check --config config.yml 'mc.example\\01.2.3.4\\0<hex>\\0[...]'
      New token: python -m bguard.run generate-token
    """
    p = argparse.ArgumentParser(prog="bguard", description="Backend guard for proxy-forwarded handshakes.")
    p.add_argument("--log-level", default="INFO")
    p.add_argument("--log-format", choices=LOG_FORMATS, default="console")

    sub = p.add_subparsers(dest="command")
    sub.required = True

    sp = sub.add_parser("serve", help="run the guard service")
    sp.add_argument("--config", help="config file (default: $BGUARD_CONFIG or ./config.yml)")
    sp.add_argument("--host", default="127.0.0.1")
    sp.add_argument("--port", type=int, default=25580)

    sp = sub.add_parser("check", help="evaluate one handshake (stdin when omitted)")
    sp.add_argument("--config", help="config file (default: $BGUARD_CONFIG or ./config.yml)")
    sp.add_argument("handshake", nargs="?")

    sp = sub.add_parser("generate-token", help="print a random token")
    sp.add_argument("--bytes", dest="nbytes", type=int, default=32)

    return p


# -------------------------
# Main entrypoint
# -------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Dispatch into the chosen command; keep top-level code very small."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    if args.command == "generate-token":
        try:
            return cmd_generate_token(args.nbytes)
        except ValueError as exc:
            raise SystemExit(str(exc))

    try:
        gatekeeper = Gatekeeper.from_store(ConfigStore(args.config))
    except (ConfigError, OSError) as exc:
        logger.error("Could not load config", error=str(exc))
        return 2

    if args.command == "check":
        return cmd_check(gatekeeper, args.handshake)

    try:
        asyncio.run(run_serve(gatekeeper, args.host, args.port))
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
