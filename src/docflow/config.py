"""DocflowConfig dataclass and loader for orchestrator settings."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PORT = 41900
DEFAULT_CONFIG_FILE = ".docflow.json"


def get_data_dir() -> Path:
    env = os.environ.get("DOCFLOW_DATA_DIR")
    if env:
        return Path(env)
    return Path.home() / ".docflow" / "data"


@dataclass
class DocflowConfig:
    db_path: str = ""
    agent_timeout_seconds: float = 120.0
    validation_enabled: bool = True
    history_limit: int = 10
    disabled_rules: list[str] = field(default_factory=list)
    # "<phase>:<agent>" -> "module:callable"
    agents: dict[str, str] = field(default_factory=dict)
    port: int = DEFAULT_PORT

    def resolved_db_path(self) -> str:
        if self.db_path:
            return self.db_path
        return str(get_data_dir() / "docflow.db")


def load_config(path: Path | None = None) -> DocflowConfig:
    """Load config from the "docflow" section of .docflow.json with env overrides."""
    config = DocflowConfig()
    if path and path.exists():
        try:
            text = path.read_text()
            if text.strip():
                data = json.loads(text)
                section = data.get("docflow", {})
                if isinstance(section, dict):
                    _apply(config, section)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load docflow config from {path}: {e}")

    if env_db := os.environ.get("DOCFLOW_DB_PATH"):
        config.db_path = env_db
    if env_timeout := os.environ.get("DOCFLOW_AGENT_TIMEOUT"):
        try:
            config.agent_timeout_seconds = float(env_timeout)
        except ValueError:
            logger.warning(f"Ignoring invalid DOCFLOW_AGENT_TIMEOUT: {env_timeout!r}")
    if env_port := os.environ.get("DOCFLOW_PORT"):
        try:
            config.port = int(env_port)
        except ValueError:
            logger.warning(f"Ignoring invalid DOCFLOW_PORT: {env_port!r}")
    if env_enabled := os.environ.get("DOCFLOW_VALIDATION_ENABLED"):
        config.validation_enabled = env_enabled.lower() in ("true", "1", "yes")
    return config


def _apply(config: DocflowConfig, data: dict[str, object]) -> None:
    if "db_path" in data and isinstance(data["db_path"], str):
        config.db_path = data["db_path"]
    timeout = data.get("agent_timeout_seconds")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
        config.agent_timeout_seconds = float(timeout)
    if "validation_enabled" in data and isinstance(data["validation_enabled"], bool):
        config.validation_enabled = data["validation_enabled"]
    limit = data.get("history_limit")
    if isinstance(limit, int) and not isinstance(limit, bool) and limit > 0:
        config.history_limit = limit
    if "disabled_rules" in data and isinstance(data["disabled_rules"], list):
        config.disabled_rules = [r for r in data["disabled_rules"] if isinstance(r, str)]
    agents = data.get("agents")
    if isinstance(agents, dict):
        config.agents = {
            k: v for k, v in agents.items() if isinstance(k, str) and isinstance(v, str)
        }
    port = data.get("port")
    if isinstance(port, int) and not isinstance(port, bool):
        config.port = port
