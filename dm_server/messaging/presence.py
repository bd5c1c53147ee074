"""In-memory presence registry.

Maps each online identity to the one connection (Socket.IO sid) currently
bound to it. A later identify for the same identity supersedes the earlier
connection; the superseded connection's eventual disconnect is then a no-op.

The registry is the only shared mutable state of the delivery core. Each
operation holds the registry lock, so callers see every register/unregister
as atomic. A lookup followed by a push is not atomic with respect to a
concurrent disconnect; pushes to a vanished sid are dropped by the emitter.

Roster broadcasts are serialised with the changes that produce them, so
listeners see rosters in mutation order and the last one is always current.
"""
import logging
import threading
from typing import Callable, Dict, Optional, Set

logger = logging.getLogger(__name__)

RosterListener = Callable[[Set[str]], None]


class PresenceRegistry:
    """identity -> connection handle, at most one entry per identity."""

    def __init__(self, on_change: Optional[RosterListener] = None):
        self._by_identity: Dict[str, str] = {}
        self._by_handle: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._broadcast_lock = threading.Lock()
        self._on_change = on_change

    def set_listener(self, on_change: Optional[RosterListener]):
        """Install the callback that receives the roster after every change."""
        self._on_change = on_change

    def register(self, identity: str, handle: str) -> None:
        """Bind ``identity`` to ``handle``, replacing any earlier binding of either.

        Idempotent; the roster is re-broadcast on every call so a client that
        identifies again always receives it.
        """
        with self._broadcast_lock:
            with self._lock:
                previous_handle = self._by_identity.get(identity)
                previous_identity = self._by_handle.get(handle)
                if previous_handle is not None and previous_handle != handle:
                    self._by_handle.pop(previous_handle, None)
                    logger.info("PRESENCE: %s moved from %s to %s", identity, previous_handle, handle)
                if previous_identity is not None and previous_identity != identity:
                    self._by_identity.pop(previous_identity, None)
                self._by_identity[identity] = handle
                self._by_handle[handle] = identity
                roster = set(self._by_identity)
            logger.debug("PRESENCE: register %s -> %s", identity, handle)
            self._notify(roster)

    def unregister(self, handle: str) -> Optional[str]:
        """Remove the entry owned by ``handle``.

        Returns the identity that went offline, or None when the handle never
        identified or was already superseded.
        """
        with self._broadcast_lock:
            with self._lock:
                identity = self._by_handle.pop(handle, None)
                if identity is None:
                    return None
                if self._by_identity.get(identity) == handle:
                    del self._by_identity[identity]
                roster = set(self._by_identity)
            logger.debug("PRESENCE: unregister %s (%s)", identity, handle)
            self._notify(roster)
        return identity

    def lookup(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._by_identity.get(identity)

    def identity_of(self, handle: str) -> Optional[str]:
        """Identity a connection announced, if it still owns the entry."""
        with self._lock:
            return self._by_handle.get(handle)

    def list_identities(self) -> Set[str]:
        with self._lock:
            return set(self._by_identity)

    def _notify(self, roster: Set[str]):
        if self._on_change is None:
            return
        try:
            self._on_change(roster)
        except Exception:
            logger.exception("PRESENCE: roster listener failed")


# Singleton instance
_registry: Optional[PresenceRegistry] = None


def get_presence_registry() -> PresenceRegistry:
    global _registry
    if _registry is None:
        _registry = PresenceRegistry()
    return _registry
