"""
Host configuration.

Loaded from a YAML file, then overridden by environment variables:

    GUARDLEDGER_HOST_ID     host_id
    GUARDLEDGER_EVENT_LOG   event_log_path (directory)
    GUARDLEDGER_HOST_KEY    host_key_path  (PEM, generated if missing)

Example:

    host_id: local-host
    initial_message: Initial secret message
    event_log_path: .guardledger/events
    host_key_path: .guardledger/host.pem
    accounts:
      deployer: "10.0"
      alice: "1.5"

Account balances are coin amounts (strings or numbers) and are converted
to base units on load. With an event log but no host_key_path, the host
key is kept at <event_log_path>/host.pem.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from guardledger.core.exceptions import ConfigError
from guardledger.core.models import DEFAULT_MESSAGE, to_base_units


ENV_HOST_ID   = "GUARDLEDGER_HOST_ID"
ENV_EVENT_LOG = "GUARDLEDGER_EVENT_LOG"
ENV_HOST_KEY  = "GUARDLEDGER_HOST_KEY"

HOST_KEY_FILENAME = "host.pem"

_KNOWN_KEYS = {
    "host_id",
    "initial_message",
    "event_log_path",
    "host_key_path",
    "accounts",
}


@dataclass
class HostConfig:
    """Configuration for an ExecutionHost."""

    host_id:         str = "local-host"
    initial_message: str = DEFAULT_MESSAGE
    event_log_path:  Optional[Path] = None
    host_key_path:   Optional[Path] = None
    # label -> balance in base units
    accounts:        Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "HostConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError(
                "Configuration must be a mapping",
                {"got": type(data).__name__},
            )

        unknown = set(data) - _KNOWN_KEYS
        if unknown:
            raise ConfigError(
                "Unknown configuration keys",
                {"keys": ", ".join(sorted(unknown))},
            )

        accounts_raw = data.get("accounts") or {}
        if not isinstance(accounts_raw, dict):
            raise ConfigError("accounts must be a mapping of label to balance")

        accounts: Dict[str, int] = {}
        for label, balance in accounts_raw.items():
            try:
                accounts[str(label)] = to_base_units(balance)
            except ValueError as exc:
                raise ConfigError(
                    "Invalid account balance",
                    {"account": label, "error": exc},
                ) from exc

        host_id = data.get("host_id", cls.host_id)
        if not isinstance(host_id, str) or not host_id:
            raise ConfigError("host_id must be a non-empty string")

        return cls(
            host_id=         host_id,
            initial_message= str(data.get("initial_message", DEFAULT_MESSAGE)),
            event_log_path=  _optional_path(data.get("event_log_path")),
            host_key_path=   _optional_path(data.get("host_key_path")),
            accounts=        accounts,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "HostConfig":
        """Load configuration from a YAML file. Raises ConfigError."""
        path = Path(path)
        if not path.exists():
            raise ConfigError("Config file not found", {"path": path})
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError("Invalid YAML", {"path": path, "error": exc}) from exc
        return cls.from_dict(data)

    @classmethod
    def load(
        cls,
        path: Optional[Path] = None,
        env:  Optional[Dict[str, str]] = None,
    ) -> "HostConfig":
        """YAML file (if given) with environment overrides applied."""
        config = cls.from_yaml(path) if path else cls()
        return config.with_env(os.environ if env is None else env)

    def key_path(self) -> Optional[Path]:
        """
        Where the host key lives. A persistent event log needs a stable
        signer, so without an explicit host_key_path the key is kept next
        to events.jsonl.
        """
        if self.host_key_path:
            return self.host_key_path
        if self.event_log_path:
            return self.event_log_path / HOST_KEY_FILENAME
        return None

    def with_env(self, env: Dict[str, str]) -> "HostConfig":
        if env.get(ENV_HOST_ID):
            self.host_id = env[ENV_HOST_ID]
        if env.get(ENV_EVENT_LOG):
            self.event_log_path = Path(env[ENV_EVENT_LOG])
        if env.get(ENV_HOST_KEY):
            self.host_key_path = Path(env[ENV_HOST_KEY])
        return self


def _optional_path(value: Any) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(value)
