# folio/descriptor.py
import json
from typing import Any, Dict, List

from .config import DEFAULT_MAX_DEPTH
from .errors import IntegrityError, MissingThumbnailError, TimestampRangeError, TrailDepthError
from .remap import ObjectKind, RemapTable
from .store import ListedResource, TreeStore
from .utils import emit_json_int, format_timestamp


class DescriptorBuilder:
    """
    Builds the descriptor record of one node.

    A descriptor has three fields, each of which refers to nodes and binaries
    by container object index only:

    - trail:   [[index, name], ...] from the root down to the node itself
    - folders: [[index, name], ...] for the direct children, unordered
    - files:   one object per listing with rclass, rbin, rmime, tbin, tmime,
               rname, rtime and, when the resource has one, desc
    """

    def __init__(self, store: TreeStore, remap: RemapTable, max_depth: int = DEFAULT_MAX_DEPTH):
        self.store = store
        self.remap = remap
        self.max_depth = max_depth

    def _node_ref(self, node_id: int, name: str) -> List[Any]:
        return [emit_json_int(self.remap.index_of(ObjectKind.NODE, node_id)), name]

    def _binary_ref(self, rbin_id: int):
        return emit_json_int(self.remap.index_of(ObjectKind.BINARY, rbin_id))

    def build_trail(self, node_id: int) -> List[List[Any]]:
        trail: List[List[Any]] = []
        trace = node_id
        while trace is not None:
            if len(trail) >= self.max_depth:
                raise TrailDepthError(node_id, self.max_depth)
            name, parent_id = self.store.node(trace)
            trail.insert(0, self._node_ref(trace, name))
            trace = parent_id
        return trail

    def build_folders(self, node_id: int) -> List[List[Any]]:
        return [self._node_ref(child_id, name) for child_id, name in self.store.children(node_id)]

    def _resolve_thumbnail(self, listed: ListedResource):
        """Returns (rbin id, mime) of the thumbnail: the resource's own, else its type's default."""
        if listed.own_thumb_id is not None:
            if listed.own_thumb_rbin_id is None:
                raise IntegrityError(f"Resource {listed.resource_id} declares missing thumbnail "
                                     f"resource {listed.own_thumb_id}")
            return listed.own_thumb_rbin_id, listed.own_thumb_mime
        if listed.type_thumb_id is not None:
            if listed.type_thumb_rbin_id is None:
                raise IntegrityError(f"Type of resource {listed.resource_id} declares missing default "
                                     f"thumbnail resource {listed.type_thumb_id}")
            return listed.type_thumb_rbin_id, listed.type_thumb_mime
        raise MissingThumbnailError(listed.resource_id)

    def build_file(self, listed: ListedResource) -> Dict[str, Any]:
        thumb_rbin_id, thumb_mime = self._resolve_thumbnail(listed)
        try:
            rtime = format_timestamp(listed.timestamp)
        except ValueError:
            raise TimestampRangeError(listed.resource_id, listed.timestamp) from None
        record: Dict[str, Any] = {
            "rclass": listed.rclass,
            "rbin": self._binary_ref(listed.rbin_id),
            "rmime": listed.mime,
            "tbin": self._binary_ref(thumb_rbin_id),
            "tmime": thumb_mime,
            "rname": listed.name,
            "rtime": rtime,
        }
        if listed.description is not None:
            record["desc"] = listed.description
        return record

    def build(self, node_id: int) -> Dict[str, Any]:
        return {
            "trail": self.build_trail(node_id),
            "folders": self.build_folders(node_id),
            "files": [self.build_file(listed) for listed in self.store.listings(node_id)],
        }


def encode_descriptor(descriptor: Dict[str, Any]) -> bytes:
    """Serializes a descriptor as compact UTF-8 JSON."""
    return json.dumps(descriptor, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
