"""
Public key registry.

Maps each role to the two public keys its peer needs:

    SOURCE -> {static_public_key, signing_public_key}
    SINK   -> {static_public_key, signing_public_key}

The registry is filled out of band before messaging starts and can be
refreshed from its backing store at any time.

Reads never lock. The current contents live in one immutable mapping, and
writers replace that mapping in a single attribute assignment. A protocol
run calls `snapshot()` once at its start and uses that view throughout, so
it never observes half of an update. An update that lands mid-run is seen
by the next run only. Reading a stale key before a peer publishes its new
one is a known, accepted window.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Protocol

from sealed_relay.types import Role, StrictBaseModel, UnknownRole

logger = logging.getLogger(__name__)


class RegistryEntry(StrictBaseModel):
    """Public keys published by one role."""

    static_public_key: bytes
    """Identity key (DER SubjectPublicKeyInfo) peers run ECDH against."""

    signing_public_key: bytes
    """Verification key (DER SubjectPublicKeyInfo) for envelope signatures."""


class RegistrySnapshot:
    """An immutable view of the registry at one instant."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[Role, RegistryEntry]) -> None:
        self._entries = MappingProxyType(dict(entries))

    def get(self, role: Role) -> RegistryEntry:
        """
        Look up the keys of a role.

        Raises:
            UnknownRole: If the role has not published keys yet.
        """
        try:
            return self._entries[role]
        except KeyError:
            raise UnknownRole(Role(role).value) from None

    def __contains__(self, role: object) -> bool:
        return role in self._entries

    def __iter__(self) -> Iterator[Role]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def as_dict(self) -> dict[Role, RegistryEntry]:
        """Return a mutable copy of the entries."""
        return dict(self._entries)


class KeyStore(Protocol):
    """Whatever external store backs the registry."""

    def load(self) -> Mapping[Role, RegistryEntry]:
        """Read all entries."""
        ...

    def save(self, entries: Mapping[Role, RegistryEntry]) -> None:
        """Persist all entries."""
        ...


class InMemoryKeyStore:
    """
    Key store held in process memory.

    Shared by every registry built on it, so one registry's `set` becomes
    visible to the others on their next `reload`.
    """

    def __init__(self, entries: Mapping[Role, RegistryEntry] | None = None) -> None:
        self._entries: dict[Role, RegistryEntry] = dict(entries or {})
        self._lock = threading.Lock()

    def load(self) -> Mapping[Role, RegistryEntry]:
        """Return a copy of the stored entries."""
        with self._lock:
            return dict(self._entries)

    def save(self, entries: Mapping[Role, RegistryEntry]) -> None:
        """Replace the stored entries."""
        with self._lock:
            self._entries = dict(entries)


class PublicKeyRegistry:
    """
    Role to public key mapping with snapshot reads.

    Injected into every node. There is no module-level registry.
    """

    def __init__(self, store: KeyStore | None = None) -> None:
        """
        Args:
            store: Backing store. Defaults to a private in-memory store.
        """
        self._store: KeyStore = store if store is not None else InMemoryKeyStore()
        self._write_lock = threading.Lock()
        self._snapshot = RegistrySnapshot(self._store.load())

    def snapshot(self) -> RegistrySnapshot:
        """Return the current contents as an immutable view."""
        return self._snapshot

    def get(self, role: Role) -> RegistryEntry:
        """
        Look up the keys of a role in the current contents.

        Raises:
            UnknownRole: If the role has not published keys yet.
        """
        return self._snapshot.get(role)

    def set(self, role: Role, entry: RegistryEntry) -> None:
        """Publish keys for a role and write them through to the store."""
        with self._write_lock:
            entries = self._snapshot.as_dict()
            entries[Role(role)] = entry
            self._store.save(entries)
            self._snapshot = RegistrySnapshot(entries)
        logger.debug("Registry entry for %s updated", Role(role).value)

    def reload(self) -> bool:
        """
        Re-read every entry from the backing store.

        Returns:
            True if the store was read, False if it could not be.
        """
        try:
            entries = self._store.load()
        except Exception as e:
            logger.error("Failed to reload key registry: %s", e)
            return False

        with self._write_lock:
            self._snapshot = RegistrySnapshot(entries)
        logger.debug("Key registry reloaded (%d entries)", len(entries))
        return True
