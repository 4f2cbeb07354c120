"""
Lobby presence tracking.

Clients ping while their lobby screen is open. A player whose last ping is
older than the presence timeout is considered gone and removed from the table.
"""
import logging
import threading
import time

from ..exceptions import NotFoundException

logger = logging.getLogger(__name__)

DEFAULT_PRESENCE_TIMEOUT_SECONDS = 30


class LobbyPresence:
    def __init__(self, timeout_seconds=DEFAULT_PRESENCE_TIMEOUT_SECONDS, clock=time.monotonic):
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._last_seen = {}
        self._lock = threading.Lock()

    def ping(self, player_id, now=None):
        with self._lock:
            self._last_seen[player_id] = self._clock() if now is None else now

    def forget(self, player_id):
        with self._lock:
            self._last_seen.pop(player_id, None)

    def last_seen(self, player_id):
        with self._lock:
            return self._last_seen.get(player_id)

    def expired(self, now=None):
        """Player ids whose last ping is older than the timeout."""
        now = self._clock() if now is None else now
        with self._lock:
            return [
                player_id for player_id, seen in self._last_seen.items()
                if now - seen > self.timeout_seconds
            ]

    def sweep(self, coordinator, now=None):
        """Removes every expired player from the table. Returns the removed ids."""
        removed = []
        for player_id in self.expired(now):
            self.forget(player_id)
            try:
                coordinator.leave(player_id)
            except NotFoundException:
                # Already left through the API.
                continue
            removed.append(player_id)
            logger.info(f"Player {player_id} timed out of the lobby")
        return removed
