# folio/remap.py
import enum
from typing import Dict, List, Tuple

from .errors import RemapError, RootNotFoundError
from .store import TreeStore


class ObjectKind(enum.IntEnum):
    NODE = 0
    BINARY = 1


class RemapTable:
    """
    Bijection between (kind, original id) pairs and dense container object indices.

    Nodes occupy indices 0..node_count-1 with the root at 0; binaries follow at
    node_count..len-1. Both directions are dictionary/list lookups.
    """

    def __init__(self, root_id: int, node_ids: List[int], binary_ids: List[int]):
        self._entries: List[Tuple[ObjectKind, int]] = [(ObjectKind.NODE, root_id)]
        self._entries.extend((ObjectKind.NODE, n) for n in node_ids if n != root_id)
        self._entries.extend((ObjectKind.BINARY, b) for b in binary_ids)
        self.node_count = len(self._entries) - len(binary_ids)
        self.binary_count = len(binary_ids)

        self._index: Dict[Tuple[ObjectKind, int], int] = {}
        for i, entry in enumerate(self._entries):
            if entry in self._index:
                raise RemapError(f"Duplicate {entry[0].name.lower()} id {entry[1]}")
            self._index[entry] = i

        if self.node_count != len(set(node_ids) | {root_id}):
            raise RemapError(f"Root node {root_id} is not among the enumerated nodes")

    def __len__(self) -> int:
        return len(self._entries)

    def index_of(self, kind: ObjectKind, original_id: int) -> int:
        try:
            return self._index[(kind, original_id)]
        except KeyError:
            raise RemapError(f"Failed to look up remap for {kind.name.lower()} {original_id}") from None

    def entry_at(self, index: int) -> Tuple[ObjectKind, int]:
        if not 0 <= index < len(self._entries):
            raise RemapError(f"Object index {index} out of range")
        return self._entries[index]


def build_remap_table(store: TreeStore) -> RemapTable:
    """Assigns every node and every binary in the store a dense object index."""
    roots = store.root_ids()
    if len(roots) != 1:
        detail = "no node without a parent" if not roots else f"{len(roots)} candidate roots {roots}"
        raise RootNotFoundError(f"Can't find the root node: {detail}")
    return RemapTable(roots[0], store.node_ids(), store.binary_ids())
