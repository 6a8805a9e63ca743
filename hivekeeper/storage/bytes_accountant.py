"""
Per-call cache of object sizes used to compute bytes freed by a delete.
"""

from typing import Dict, Iterable


class BytesAccountant:
    """
    Remembers object sizes before deletion and settles confirmed deletes.

    One instance belongs to a single ``PathCleaner.clean()`` call and is
    discarded afterwards.
    """

    def __init__(self):
        self._sizes: Dict[str, int] = {}
        self.bytes_freed = 0

    def remember_size(self, key: str, size: int):
        self._sizes[key] = size

    def settle(self, confirmed_keys: Iterable[str]) -> int:
        """Add the sizes of ``confirmed_keys`` to the running total; unknown keys count as zero."""
        settled = sum(self._sizes.pop(key, 0) for key in confirmed_keys)
        self.bytes_freed += settled
        return settled
