"""Endpoint roles."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """
    The two endpoints of the protocol.

    The relay sits between them and is not a role: it owns no keys.
    """

    SOURCE = "source"
    """The originating node (the field device in the reference deployment)."""

    SINK = "sink"
    """The receiving node (the base station in the reference deployment)."""

    @property
    def peer(self) -> Role:
        """The role on the other end of the relay."""
        return Role.SINK if self is Role.SOURCE else Role.SOURCE
