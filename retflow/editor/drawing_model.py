"""
Append-only log of committed drawing entries.

The log order is the paint order: later entries render on top. Entries are
never edited or reordered; the only mutations are append, drop-the-tail and
clear.
"""

from typing import Iterable, List, Optional, Tuple

from retflow.editor.annotations import DrawingEntry
from retflow.services.logging_service import get_logger


class DrawingModel:
    """Ordered log of committed drawing entries."""

    def __init__(self, entries: Optional[Iterable[DrawingEntry]] = None) -> None:
        self._logger = get_logger(__name__)
        self._entries: List[DrawingEntry] = list(entries or [])

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def append(self, entry: DrawingEntry) -> None:
        """Add a committed entry on top of the log."""
        self._entries.append(entry)
        self._logger.debug(f"Appended {entry.tool_kind.value} entry ({len(self._entries)} total)")

    def undo_last(self) -> Optional[DrawingEntry]:
        """
        Remove the most recent entry.

        Returns:
            The removed entry, or None if the log was empty.
        """
        if not self._entries:
            return None
        entry = self._entries.pop()
        self._logger.debug(f"Removed {entry.tool_kind.value} entry ({len(self._entries)} left)")
        return entry

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def snapshot(self) -> Tuple[DrawingEntry, ...]:
        """
        Return the current entries in paint order.

        The tuple is detached from the log, so later mutations never show
        through it.
        """
        return tuple(self._entries)
