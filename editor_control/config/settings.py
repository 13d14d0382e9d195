# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration management for editor-control.

Values come from, lowest to highest priority:
    1. field defaults below
    2. ~/.editor-control/config.yaml (or EDITOR_CONTROL_CONFIG_FILE)
    3. EDITOR_CONTROL_* environment variables / .env
"""

import ipaddress
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path(os.getenv("EDITOR_CONTROL_HOME", str(Path.home() / ".editor-control")))
DEFAULT_CONFIG_FILE = GLOBAL_DIR / "config.yaml"
DEFAULT_STATE_FILE = GLOBAL_DIR / "state.json"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDITOR_CONTROL_",
        env_file=".env" if not os.getenv("EDITOR_CONTROL_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Servers (loopback only)
    host: str = "127.0.0.1"
    api_port: int = Field(default=3000, ge=0, le=65535)
    ws_port: int = Field(default=3001, ge=0, le=65535)

    # Client timing (seconds)
    request_timeout: float = Field(default=10.0, gt=0)
    heartbeat_interval: float = Field(default=30.0, gt=0)
    reconnect_interval: float = Field(default=5.0, ge=0)
    max_reconnect_attempts: int = Field(default=10, ge=0)
    # "fixed" keeps the same interval between attempts; "exponential" doubles it
    reconnect_strategy: str = "fixed"
    max_reconnect_delay: float = Field(default=60.0, gt=0)

    # Server side
    instance_heartbeat_interval: float = Field(default=30.0, gt=0)
    devtools_open_delay: float = Field(default=1.0, ge=0)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    state_file: Path = DEFAULT_STATE_FILE

    @field_validator("host")
    @classmethod
    def validate_loopback(cls, v: str) -> str:
        """The control servers must never listen beyond this machine."""
        if v == "localhost":
            return v
        try:
            if ipaddress.ip_address(v).is_loopback:
                return v
        except ValueError:
            pass
        raise ValueError(f"host must be a loopback address, got {v!r}")

    @field_validator("reconnect_strategy")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in ("fixed", "exponential"):
            raise ValueError("reconnect_strategy must be 'fixed' or 'exponential'")
        return normalized

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        normalized = v.strip().upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if normalized not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return normalized

    @property
    def api_base_url(self) -> str:
        return f"http://{self.host}:{self.api_port}/api"

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}:{self.ws_port}/"

    @classmethod
    def load_config_file(cls, path: Optional[Path] = None) -> Dict[str, Any]:
        """Read the YAML config file. Missing file yields an empty dict."""
        config_path = Path(
            path or os.getenv("EDITOR_CONTROL_CONFIG_FILE") or DEFAULT_CONFIG_FILE
        ).expanduser()
        if not config_path.exists():
            return {}

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config file {config_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {config_path}: expected a mapping")
            return {}
        return data


def load_settings(config_file: Optional[Path] = None, **overrides: Any) -> Settings:
    """Load application settings.

    File values act as defaults; environment variables still win, and explicit
    ``overrides`` win over both.

    Returns:
        Settings instance
    """
    file_values = Settings.load_config_file(config_file)
    env_values = Settings().model_dump(exclude_unset=True)
    merged = {**file_values, **env_values, **overrides}
    return Settings(**merged)
