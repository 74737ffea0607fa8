"""Per-save bookkeeping of records already persisted."""

from typing import Any


class SaveSession:
    """Identity set for one outermost ``save()`` call.

    Each record reached during the call gets a session-local token; records
    are kept referenced for the session's lifetime so tokens never collide.
    """

    def __init__(self) -> None:
        self._tokens: dict[int, tuple[Any, int]] = {}
        self._saved: set[int] = set()

    def token(self, record: Any) -> int:
        entry = self._tokens.get(id(record))
        if entry is None:
            entry = (record, len(self._tokens) + 1)
            self._tokens[id(record)] = entry
        return entry[1]

    def is_saved(self, record: Any) -> bool:
        return self.token(record) in self._saved

    def mark_saved(self, record: Any) -> None:
        self._saved.add(self.token(record))

    def __len__(self) -> int:
        return len(self._saved)
