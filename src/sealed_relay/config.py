"""
Configuration for sealed relay deployments.

Two layers:

- `SEALED_RELAY_ENV` picks environment-wide defaults ('prod' or 'test').
- `DeploymentConfig` describes one relay and its two nodes, loaded from YAML:

    relay:
      host: 127.0.0.1
      port: 10000
      reward_wei: 10000000000000000
      pool_wei: 1000000000000000000
      authorized_signers:
      - 0x5B38Da6a701c568545dCfcB03FcB875f56beddC4
    source:
      port: 9999
    sink:
      port: 10001
      auto_acknowledge: true
    timeout_seconds: 10
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ConfigDict, Field, field_validator

from sealed_relay.types import Bytes20, CamelModel, Role

_SUPPORTED_ENVS: list[str] = ["prod", "test"]

SEALED_RELAY_ENV = os.environ.get("SEALED_RELAY_ENV", "prod").lower()
"""The environment flag ('prod' or 'test'). Defaults to 'prod'."""

if SEALED_RELAY_ENV not in _SUPPORTED_ENVS:
    raise ValueError(
        f"Invalid SEALED_RELAY_ENV environment variable: '{SEALED_RELAY_ENV}'. "
        f"Supported values: {_SUPPORTED_ENVS}"
    )

DEFAULT_TIMEOUT_SECONDS: float = 2.0 if SEALED_RELAY_ENV == "test" else 10.0
"""Network timeout used when a deployment sets none."""

DEFAULT_REPLAY_TTL_SECONDS: float = 5.0 if SEALED_RELAY_ENV == "test" else 600.0
"""How long nodes remember delivered envelopes when a deployment sets none."""

DEFAULT_REWARD_WEI = 10**16
"""Reward per delivery: 0.01 ether."""


class _ConfigModel(CamelModel):
    """Immutable config section that refuses unknown keys."""

    model_config = CamelModel.model_config | ConfigDict(extra="forbid", frozen=True)


class RelaySection(_ConfigModel):
    """The relay and the reference ledger it pays from."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = Field(default=10000, ge=1, le=65535)
    """Port to listen on."""

    reward_wei: int = Field(default=DEFAULT_REWARD_WEI, ge=0)
    """Amount paid per accepted delivery proof."""

    pool_wei: int = Field(default=10 * DEFAULT_REWARD_WEI, ge=0)
    """Initial funding of the reward pool."""

    authorized_signers: list[Bytes20] = Field(default_factory=list)
    """Ledger addresses whose acknowledgements are paid."""

    @field_validator("authorized_signers", mode="before")
    @classmethod
    def parse_addresses(cls, v: Any) -> Any:
        """
        Accept 0x-prefixed hex addresses.

        YAML parsers read unquoted 0x values as integers. Those are turned
        back into 20-byte hex.
        """
        if not isinstance(v, list):
            return v
        return [f"0x{a:040x}" if isinstance(a, int) else a for a in v]


class NodeSection(_ConfigModel):
    """One node's server and behaviour."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = Field(ge=1, le=65535)
    """Port to listen on."""

    require_signature: bool = False
    """Refuse unsigned envelopes."""

    auto_acknowledge: bool = False
    """Submit delivery proofs to the relay as soon as a message verifies."""

    @property
    def url(self) -> str:
        """Base URL of the node's server."""
        return f"http://{self.host}:{self.port}"


class DeploymentConfig(_ConfigModel):
    """A relay and the two nodes on either side of it."""

    relay: RelaySection = Field(default_factory=RelaySection)
    """The relay."""

    source: NodeSection = Field(default_factory=lambda: NodeSection(port=9999))
    """The SOURCE node."""

    sink: NodeSection = Field(
        default_factory=lambda: NodeSection(port=10001, auto_acknowledge=True)
    )
    """The SINK node."""

    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    """Timeout for every network call."""

    replay_ttl_seconds: float = Field(default=DEFAULT_REPLAY_TTL_SECONDS, gt=0)
    """How long nodes remember delivered envelopes."""

    @property
    def relay_url(self) -> str:
        """Base URL of the relay's server."""
        return f"http://{self.relay.host}:{self.relay.port}"

    def node(self, role: Role) -> NodeSection:
        """Section of the node playing `role`."""
        return self.source if Role(role) is Role.SOURCE else self.sink

    @classmethod
    def from_yaml_file(cls, path: Path | str) -> DeploymentConfig:
        """
        Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            pydantic.ValidationError: If the data fails validation.
        """
        path = Path(path)
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml(cls, content: str) -> DeploymentConfig:
        """
        Load configuration from a YAML string.

        Useful for testing or programmatic config generation.
        """
        data = yaml.safe_load(content)
        return cls.model_validate(data or {})
