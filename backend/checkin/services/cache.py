from typing import Dict, List, Optional, Tuple


class AttendanceCache:
    """
    Process-local map of attendee row id -> check-in timestamp.

    Presence of an entry means checked in. Owned by the sync service and
    only mutated there; readers use it as a fallback when the sheet has no
    usable status cell.
    """

    def __init__(self, entries: Optional[Dict[int, str]] = None):
        self._entries: Dict[int, str] = dict(entries or {})

    def mark(self, row_id: int, check_in_time: str) -> None:
        self._entries[row_id] = check_in_time

    def unmark(self, row_id: int) -> None:
        self._entries.pop(row_id, None)

    def apply(self, row_id: int, checked_in: bool, check_in_time: Optional[str]) -> None:
        """Mirror a check-in (mark) or check-out (unmark) transition"""
        if checked_in:
            self.mark(row_id, check_in_time)
        else:
            self.unmark(row_id)

    def get(self, row_id: int) -> Optional[str]:
        return self._entries.get(row_id)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> List[Tuple[int, str]]:
        return sorted(self._entries.items())

    def __contains__(self, row_id) -> bool:
        return row_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
