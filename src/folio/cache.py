# folio/cache.py
from typing import Dict, Iterable, Optional, Tuple

from .handles import HandleFactory, LocalHandle


class ResourceCache:
    """Object index -> ephemeral handle map owned by exactly one directory view."""

    def __init__(self, handles: HandleFactory):
        self.handles = handles
        self._entries: Dict[int, LocalHandle] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, index: int) -> bool:
        return index in self._entries

    def get(self, index: int) -> Optional[LocalHandle]:
        return self._entries.get(index)

    def store(self, payloads: Iterable[Tuple[int, bytes, str]]) -> None:
        """
        Wraps each (index, data, mime) in a handle and inserts them together.
        If any handle cannot be created, the ones made so far are released
        and the cache is left as it was.
        """
        created = []
        try:
            for index, data, mime in payloads:
                if index in self._entries or any(h.index == index for h in created):
                    continue
                created.append(self.handles.create(index, data, mime))
        except BaseException:
            for handle in created:
                self.handles.release(handle)
            raise
        for handle in created:
            self._entries[handle.index] = handle

    def release_all(self) -> None:
        entries, self._entries = self._entries, {}
        for handle in entries.values():
            self.handles.release(handle)
