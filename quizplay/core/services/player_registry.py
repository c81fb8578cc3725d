"""Service tracking lifetime totals for players."""

from __future__ import annotations

from dataclasses import replace

from quizplay.core.models import UserStats


class PlayerRegistry:
    """Lifetime score totals keyed by the opaque authenticated user id."""

    def __init__(self) -> None:
        self._players: dict[str, UserStats] = {}

    def get_stats(self, user_id: str) -> UserStats:
        """Return the live stats entry, creating an empty one for new players."""
        entry = self._players.get(user_id)
        if entry is None:
            entry = UserStats(user_id=user_id)
            self._players[user_id] = entry
        return entry

    def peek_stats(self, user_id: str) -> UserStats:
        """Return a copy of the player's stats without registering them."""
        entry = self._players.get(user_id)
        return replace(entry) if entry is not None else UserStats(user_id=user_id)

    def record_quiz_created(self, user_id: str) -> None:
        self.get_stats(user_id).quizzes_created += 1

    def list_stats(self) -> list[UserStats]:
        return list(self._players.values())

    def snapshot(self, user_id: str) -> UserStats | None:
        entry = self._players.get(user_id)
        return replace(entry) if entry is not None else None

    def restore(self, user_id: str, snapshot: UserStats | None) -> None:
        """Put back a snapshot taken with ``snapshot``; None means the player was unknown."""
        if snapshot is None:
            self._players.pop(user_id, None)
        else:
            self._players[user_id] = snapshot
