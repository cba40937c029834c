"""
Config store for the guard.

Supported keys (YAML):
- no-data-kick-message: str
- no-properties-kick-message: str
- invalid-token-kick-message: str
- allowed-tokens: list[str]

Kick messages use '&' colour codes in the file; they are translated to
section-sign codes on load. The allowed-tokens list is written back whenever
the gatekeeper auto-learns a token.
"""

import os
import re
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from .errors import ConfigError
from .logging_config import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "BGUARD_CONFIG"
DEFAULT_CONFIG_PATH = "config.yml"

NO_DATA_KEY = "no-data-kick-message"
NO_PROPERTIES_KEY = "no-properties-kick-message"
INVALID_TOKEN_KEY = "invalid-token-kick-message"
ALLOWED_TOKENS_KEY = "allowed-tokens"

_DEFAULTS: Dict[str, Any] = {
    NO_DATA_KEY: "&cUnable to authenticate - no data was forwarded by the proxy.",
    NO_PROPERTIES_KEY: "&cUnable to authenticate.",
    INVALID_TOKEN_KEY: "&cUnable to authenticate.",
    ALLOWED_TOKENS_KEY: [],
}

COLOR_CHAR = "§"
_COLOR_CODE = re.compile(r"&([0-9a-fk-orA-FK-ORxX])")


def translate_color_codes(text: str, alt_char: str = "&") -> str:
    """Turn '&c'-style codes into the '§c' codes the game client renders."""
    if alt_char == "&":
        pattern = _COLOR_CODE
    else:
        pattern = re.compile(re.escape(alt_char) + r"([0-9a-fk-orA-FK-ORxX])")
    return pattern.sub(lambda m: COLOR_CHAR + m.group(1).lower(), text)


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


@dataclass(frozen=True)
class KickMessages:
    """Client-visible rejection texts, already colour-translated."""
    no_data: str
    no_properties: str
    invalid_token: str


@dataclass
class GuardConfig:
    messages: KickMessages
    allowed_tokens: List[str] = field(default_factory=list)


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key, _DEFAULTS[key])
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def parse_config(data: Any) -> GuardConfig:
    """
    Validate a decoded YAML document.

    Missing keys fall back to the defaults; wrong types raise ConfigError.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping at the top level")

    tokens = data.get(ALLOWED_TOKENS_KEY)
    if tokens is None:
        tokens = []
    if not isinstance(tokens, list):
        raise ConfigError(f"{ALLOWED_TOKENS_KEY} must be a list")
    for token in tokens:
        if not isinstance(token, str) or not token:
            raise ConfigError(f"{ALLOWED_TOKENS_KEY} entries must be non-empty strings")

    messages = KickMessages(
        no_data=translate_color_codes(_require_str(data, NO_DATA_KEY)),
        no_properties=translate_color_codes(_require_str(data, NO_PROPERTIES_KEY)),
        invalid_token=translate_color_codes(_require_str(data, INVALID_TOKEN_KEY)),
    )
    return GuardConfig(messages=messages, allowed_tokens=list(tokens))


class ConfigStore:
    """
    File-backed config. Reads once, rewrites the token list on demand.

    Writes are serialized with their own lock and land atomically
    (temp file in the same directory, then os.replace).
    """

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self.path = Path(path) if path is not None else default_config_path()
        self._write_lock = threading.Lock()

    def save_default_config(self) -> bool:
        """Write the default config if the file doesn't exist yet. True if written."""
        with self._write_lock:
            if self.path.exists():
                return False
            self._write(dict(_DEFAULTS))
        logger.info("Wrote default config", path=str(self.path))
        return True

    def _read_raw(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {self.path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Config must be a mapping at the top level")
        return data

    def load(self) -> GuardConfig:
        """Create the default file if needed, then parse it."""
        self.save_default_config()
        config = parse_config(self._read_raw())
        logger.debug("Loaded config", path=str(self.path), allowed_tokens=len(config.allowed_tokens))
        return config

    def save_allowed_tokens(self, tokens: Iterable[str]) -> None:
        """Rewrite allowed-tokens, keeping every other key as it is on disk."""
        with self._write_lock:
            data = self._read_raw() if self.path.exists() else dict(_DEFAULTS)
            data[ALLOWED_TOKENS_KEY] = list(tokens)
            self._write(data)

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".bguard-", suffix=".yml", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def load_config(path: Optional[Union[str, Path]] = None) -> GuardConfig:
    """Shortcut: ConfigStore(path).load()."""
    return ConfigStore(path).load()
