"""
Service settings.

Values come from, in order of precedence: keyword overrides, FESTFUND_*
environment variables, an optional YAML settings file, then defaults.

Example settings file:

    database_url: sqlite:///festfund.db
    proof_backend: remote
    remote:
      host: 127.0.0.1
      port: 7460
      network: festfund-testnet
      timeout: 5
      max_retries: 3
      confirm: true
      require_confirmation: false
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .privacy_protocol.config import DEFAULT_REMOTE_NETWORK
from .privacy_protocol.exceptions import ConfigurationError
from .privacy_protocol.feature_flags import get_backend_type
from .storage.store import DEFAULT_DATABASE_URL

logger = logging.getLogger(__name__)

SETTINGS_FILE_ENV = "FESTFUND_SETTINGS_FILE"
DEFAULT_CIRCUIT_DIR = "circuits/donation"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_number(value: Any, name: str, kind: type) -> Any:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


@dataclass(frozen=True)
class ServiceSettings:
    database_url: str = DEFAULT_DATABASE_URL
    proof_backend: str = "local"
    circuit_dir: str = DEFAULT_CIRCUIT_DIR
    remote_host: str = "127.0.0.1"
    remote_port: int = 7460
    remote_network: str = DEFAULT_REMOTE_NETWORK
    remote_timeout: float = 5.0
    remote_max_retries: int = 3
    remote_confirm: bool = True
    remote_require_confirmation: bool = False

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ConfigurationError("database_url cannot be empty")
        try:
            backend = get_backend_type(self.proof_backend)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        object.__setattr__(self, "proof_backend", backend)

    def backend_options(self) -> Dict[str, Any]:
        """Constructor arguments for the configured proof backend."""
        if self.proof_backend == "remote":
            from .privacy_protocol.remote.backend import RemoteBackendConfig

            return {
                "config": RemoteBackendConfig(
                    host=self.remote_host,
                    port=self.remote_port,
                    network=self.remote_network,
                    timeout=self.remote_timeout,
                    max_retries=self.remote_max_retries,
                    confirm=self.remote_confirm,
                    require_confirmation=self.remote_require_confirmation,
                )
            }
        return {"circuit_dir": self.circuit_dir}


def _from_mapping(data: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key in ("database_url", "proof_backend", "circuit_dir"):
        if data.get(key) is not None:
            values[key] = str(data[key])

    remote = data.get("remote") or {}
    if not isinstance(remote, Mapping):
        raise ConfigurationError("remote settings must be a mapping")
    if remote.get("host") is not None:
        values["remote_host"] = str(remote["host"])
    if remote.get("port") is not None:
        values["remote_port"] = _parse_number(remote["port"], "remote.port", int)
    if remote.get("network") is not None:
        values["remote_network"] = str(remote["network"])
    if remote.get("timeout") is not None:
        values["remote_timeout"] = _parse_number(remote["timeout"], "remote.timeout", float)
    if remote.get("max_retries") is not None:
        values["remote_max_retries"] = _parse_number(
            remote["max_retries"], "remote.max_retries", int
        )
    if remote.get("confirm") is not None:
        values["remote_confirm"] = _parse_bool(remote["confirm"], "remote.confirm")
    if remote.get("require_confirmation") is not None:
        values["remote_require_confirmation"] = _parse_bool(
            remote["require_confirmation"], "remote.require_confirmation"
        )
    return values


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    text_vars = {
        "FESTFUND_DATABASE_URL": "database_url",
        "FESTFUND_PROOF_BACKEND": "proof_backend",
        "FESTFUND_CIRCUIT_DIR": "circuit_dir",
        "FESTFUND_REMOTE_HOST": "remote_host",
        "FESTFUND_REMOTE_NETWORK": "remote_network",
    }
    for var, key in text_vars.items():
        if environ.get(var, "").strip():
            values[key] = environ[var].strip()
    if environ.get("FESTFUND_REMOTE_PORT", "").strip():
        values["remote_port"] = _parse_number(
            environ["FESTFUND_REMOTE_PORT"], "FESTFUND_REMOTE_PORT", int
        )
    if environ.get("FESTFUND_REMOTE_TIMEOUT", "").strip():
        values["remote_timeout"] = _parse_number(
            environ["FESTFUND_REMOTE_TIMEOUT"], "FESTFUND_REMOTE_TIMEOUT", float
        )
    if environ.get("FESTFUND_REMOTE_RETRIES", "").strip():
        values["remote_max_retries"] = _parse_number(
            environ["FESTFUND_REMOTE_RETRIES"], "FESTFUND_REMOTE_RETRIES", int
        )
    if environ.get("FESTFUND_REMOTE_CONFIRM", "").strip():
        values["remote_confirm"] = _parse_bool(
            environ["FESTFUND_REMOTE_CONFIRM"], "FESTFUND_REMOTE_CONFIRM"
        )
    if environ.get("FESTFUND_REMOTE_REQUIRE_CONFIRMATION", "").strip():
        values["remote_require_confirmation"] = _parse_bool(
            environ["FESTFUND_REMOTE_REQUIRE_CONFIRMATION"],
            "FESTFUND_REMOTE_REQUIRE_CONFIRMATION",
        )
    return values


def read_settings_file(path: "os.PathLike[str] | str") -> Dict[str, Any]:
    """
    Parse a YAML settings file into ServiceSettings field values.

    Raises:
        ConfigurationError: If the file is missing, unreadable or malformed
    """
    settings_path = Path(path)
    try:
        with open(settings_path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigurationError(f"cannot read settings file {settings_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {settings_path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"settings file {settings_path} must contain a mapping")
    return _from_mapping(data)


def load_settings(
    path: Optional["os.PathLike[str] | str"] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ServiceSettings:
    """
    Build ServiceSettings from file, environment and overrides.

    Raises:
        ConfigurationError: On any invalid value
    """
    env = os.environ if environ is None else environ
    path = path or env.get(SETTINGS_FILE_ENV) or None

    values: Dict[str, Any] = {}
    if path:
        values.update(read_settings_file(path))
        logger.debug("Loaded settings file %s", path)
    values.update(_from_env(env))
    values.update({key: value for key, value in overrides.items() if value is not None})

    return ServiceSettings(**values)
