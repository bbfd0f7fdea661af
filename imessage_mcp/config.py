"""
Configuration module for the iMessage MCP server.

Handles configuration loading, path resolution and logging setup.
MCP servers can be started from arbitrary working directories, so every
path in the configuration is expanded to an absolute location.
"""

import copy
import json
import logging
import os
import sys
from contextlib import contextmanager, redirect_stdout
from pathlib import Path
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "IMESSAGE_MCP_CONFIG"
USER_CONFIG_PATH = Path.home() / ".imessage-mcp" / "mcp_server.json"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Logger owned by the messaging SDK; silenced while the SDK initializes
SDK_LOGGER_NAME = "imessage_mcp.messages_interface"

DEFAULT_CONFIG: dict[str, Any] = {
    "server_name": "imessage-mcp",
    "version": "0.1.0",
    "paths": {
        "messages_db": "~/Library/Messages/chat.db",
        "log_dir": "~/.imessage-mcp/logs",
    },
    "sdk": {
        "max_concurrent": 5,
        "debug": False,
        "send_timeout": 30,
    },
    "limits": {
        "conversation_scan_multiplier": 10,
        "detail_scan_limit": 100,
    },
    "http": {
        "host": "127.0.0.1",
        "port": 8765,
    },
    "logging": {
        "level": "INFO",
    },
}


def _merge(base: dict, overrides: dict) -> dict:
    """Recursively merge ``overrides`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def resolve_path(path_str: str) -> str:
    """
    Resolve a config path, expanding ``~`` and making it absolute.

    Args:
        path_str: Path string from configuration

    Returns:
        Resolved absolute path as string
    """
    return str(Path(path_str).expanduser().resolve())


def _find_config_file(path: Optional[str]) -> Optional[Path]:
    if path:
        return Path(path).expanduser()
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    if USER_CONFIG_PATH.exists():
        return USER_CONFIG_PATH
    return None


def load_config(path: Optional[str] = None) -> dict[str, Any]:
    """
    Load server configuration.

    Lookup order is: explicit ``path``, the ``IMESSAGE_MCP_CONFIG``
    environment variable, ``~/.imessage-mcp/mcp_server.json``. Values found
    there are merged over ``DEFAULT_CONFIG``; environment overrides are
    applied last.

    Args:
        path: Optional path to a JSON configuration file

    Returns:
        Configuration dictionary with absolute paths

    Raises:
        FileNotFoundError: If an explicitly requested file does not exist
        ValueError: If the file is not a JSON object
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    config_file = _find_config_file(path)
    if config_file is not None:
        with open(config_file) as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration in {config_file} must be a JSON object")
        config = _merge(config, loaded)

    db_override = os.getenv("IMESSAGE_DB_PATH")
    if db_override:
        config["paths"]["messages_db"] = db_override

    level_override = os.getenv("IMESSAGE_LOG_LEVEL")
    if level_override:
        config["logging"]["level"] = level_override.upper()

    for key in ("messages_db", "log_dir"):
        if config["paths"].get(key):
            config["paths"][key] = resolve_path(config["paths"][key])

    return config


def configure_logging(config: dict[str, Any]) -> None:
    """
    Configure root logging for the server process.

    Records go to ``<log_dir>/mcp_server.log`` and to stderr. stdout is
    reserved for the stdio protocol channel and never receives log output.
    """
    level = getattr(logging, str(config["logging"]["level"]).upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    log_dir = config["paths"].get("log_dir")
    if log_dir:
        try:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(Path(log_dir) / "mcp_server.log"))
        except OSError as e:
            print(f"Cannot write log file in {log_dir}: {e}", file=sys.stderr)

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)

    if not config["sdk"].get("debug"):
        logging.getLogger(SDK_LOGGER_NAME).setLevel(max(level, logging.INFO))


@contextmanager
def sdk_output_suppressed() -> Iterator[None]:
    """
    Silence the messaging SDK while it initializes.

    SDK log records below WARNING are dropped and anything printed to stdout
    is redirected to stderr, so initialization chatter cannot corrupt the
    line-oriented stdio transport.
    """
    sdk_logger = logging.getLogger(SDK_LOGGER_NAME)
    previous_level = sdk_logger.level
    sdk_logger.setLevel(logging.WARNING)
    try:
        with redirect_stdout(sys.stderr):
            yield
    finally:
        sdk_logger.setLevel(previous_level)
