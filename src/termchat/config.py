"""
Client Configuration

The client remembers the server address, the TLS mode and the last
nickname that logged in successfully in a JSON file in the working
directory.
"""

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "chat_client_config.json"


class ConfigError(Exception):
    """Raised when the config file cannot be read or written."""


@dataclass
class Config:
    """
    Config file contents.

    Attributes:
        server_address: Server address in format of 'host:port'
        tls_mode: Connect to server using TLS? None if never asked
        nickname: User name to log in with
    """

    server_address: str = ""
    tls_mode: Optional[bool] = None
    nickname: str = ""


def read_config(path: Union[str, Path] = CONFIG_FILE_NAME) -> Config:
    """
    Read the config file.

    Args:
        path: Location of the config file

    Returns:
        Config with the stored values; unknown keys are ignored

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Read config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Decode config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Decode config file: expected a JSON object")

    config = Config()
    address = data.get("server_address", "")
    tls_mode = data.get("tls_mode")
    nickname = data.get("nickname", "")
    if isinstance(address, str):
        config.server_address = address
    if isinstance(tls_mode, bool):
        config.tls_mode = tls_mode
    if isinstance(nickname, str):
        config.nickname = nickname
    return config


def write_config(config: Config, path: Union[str, Path] = CONFIG_FILE_NAME) -> None:
    """
    Write the config to file.

    Raises:
        ConfigError: If the file cannot be written
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(config), f, indent=2)
    except OSError as e:
        raise ConfigError(f"Write config file: {e}") from e
    logger.debug("Config written to %s", path)
