# folio/view.py
import asyncio
import enum
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

import attrs

from .cache import ResourceCache
from .container import ContainerReader
from .errors import ContainerError, DescriptorError, ViewStateError
from .handles import HandleFactory, LocalHandle
from .models import FileEntry, NodeRef
from .utils import collation_key, is_valid_timestamp, parse_json_int


class ViewState(enum.Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"


SORT_FIELDS = {"name": "rname", "date": "rtime"}
SORT_DIRECTIONS = ("asc", "desc")


@attrs.define(slots=True, frozen=True)
class SortSpec:
    key: str = "name"
    descending: bool = False

    @classmethod
    def parse(cls, sort_id: str) -> "SortSpec":
        """Parses a sort identifier such as 'name_asc' or 'date_desc'."""
        key, _, direction = str(sort_id).partition("_")
        if key not in SORT_FIELDS or direction not in SORT_DIRECTIONS:
            raise ValueError(f"Unsupported sort identifier {sort_id!r}")
        return cls(key=key, descending=direction == "desc")

    @property
    def identifier(self) -> str:
        return f"{self.key}_{'desc' if self.descending else 'asc'}"

    def apply(self, files: List[FileEntry]) -> None:
        """Sorts files in place: ascending by the collation key, then reversed if descending."""
        field = SORT_FIELDS[self.key]
        files.sort(key=lambda entry: collation_key(getattr(entry, field)))
        if self.descending:
            files.reverse()


DEFAULT_SORT = SortSpec()


# --- Descriptor decoding ---

def _index(value: Any, object_count: int, where: str) -> int:
    index = parse_json_int(value)
    if index is None:
        raise DescriptorError(f"{where} is not an unsigned integer: {value!r}")
    if index >= object_count:
        raise DescriptorError(f"{where} refers to object {index}, outside 0..{object_count - 1}")
    return index


def _string(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise DescriptorError(f"{where} is not a string: {value!r}")
    return value


def _node_refs(value: Any, object_count: int, field: str) -> List[NodeRef]:
    if not isinstance(value, list):
        raise DescriptorError(f"'{field}' is not an array")
    refs = []
    for i, pair in enumerate(value):
        if not isinstance(pair, list) or len(pair) != 2:
            raise DescriptorError(f"{field}[{i}] is not an [index, name] pair")
        refs.append(NodeRef(
            index=_index(pair[0], object_count, f"{field}[{i}] index"),
            name=_string(pair[1], f"{field}[{i}] name"),
        ))
    return refs


def _file_entry(value: Any, object_count: int, i: int) -> FileEntry:
    where = f"files[{i}]"
    if not isinstance(value, dict):
        raise DescriptorError(f"{where} is not an object")
    for name in ("rclass", "rbin", "rmime", "tbin", "tmime", "rname", "rtime"):
        if name not in value:
            raise DescriptorError(f"{where} is missing '{name}'")
    rtime = _string(value["rtime"], f"{where}.rtime")
    if not is_valid_timestamp(rtime):
        raise DescriptorError(f"{where}.rtime is not a 'YYYY-MM-DD HH:MM:SS' timestamp: {rtime!r}")
    return FileEntry(
        rclass=_string(value["rclass"], f"{where}.rclass"),
        rbin=_index(value["rbin"], object_count, f"{where}.rbin"),
        rmime=_string(value["rmime"], f"{where}.rmime"),
        tbin=_index(value["tbin"], object_count, f"{where}.tbin"),
        tmime=_string(value["tmime"], f"{where}.tmime"),
        rname=_string(value["rname"], f"{where}.rname"),
        rtime=rtime,
        desc=_string(value["desc"], f"{where}.desc") if "desc" in value else "",
    )


@attrs.define(slots=True)
class DecodedDirectory:
    trail: List[NodeRef]
    folders: List[NodeRef]
    files: List[FileEntry]      # Supported classes only, sorted by name
    binaries: Dict[int, str]    # Every fetchable object index -> MIME type


def decode_descriptor(text: str, object_count: int, supported_classes: Iterable[str]) -> DecodedDirectory:
    """
    Parses and validates a directory descriptor.

    Raises DescriptorError on the first malformed field. Files whose class is
    not supported are dropped, but their thumbnails remain fetchable.
    """
    try:
        record = json.loads(text)
    except json.JSONDecodeError as e:
        raise DescriptorError(f"Descriptor is not valid JSON: {e}") from e
    if not isinstance(record, dict):
        raise DescriptorError("Descriptor is not a JSON object")
    for field in ("trail", "folders", "files"):
        if field not in record:
            raise DescriptorError(f"Missing {field}")

    trail = _node_refs(record["trail"], object_count, "trail")
    if not trail:
        raise DescriptorError("'trail' is empty")
    folders = _node_refs(record["folders"], object_count, "folders")
    if not isinstance(record["files"], list):
        raise DescriptorError("'files' is not an array")

    supported = frozenset(supported_classes)
    files: List[FileEntry] = []
    binaries: Dict[int, str] = {}
    for i, value in enumerate(record["files"]):
        entry = _file_entry(value, object_count, i)
        binaries.setdefault(entry.tbin, entry.tmime)
        if entry.rclass in supported:
            binaries.setdefault(entry.rbin, entry.rmime)
            files.append(entry)

    folders.sort(key=lambda ref: collation_key(ref.name))
    DEFAULT_SORT.apply(files)
    return DecodedDirectory(trail=trail, folders=folders, files=files, binaries=binaries)


class DirectoryView:
    """
    The currently open directory of a container, plus the cache of binaries
    fetched for it.

    Every load(), close() and load_files() call bumps a generation counter.
    An operation that finds the counter changed after one of its awaits has
    been superseded and stops without touching the view.
    """

    def __init__(
        self,
        reader: ContainerReader,
        handles: HandleFactory,
        supported_classes: Iterable[str] = ("image",),
    ):
        self.reader = reader
        self.supported_classes = frozenset(supported_classes)
        self._cache = ResourceCache(handles)
        self._generation = 0
        self._state = ViewState.UNLOADED
        self._index: Optional[int] = None
        self._trail: List[NodeRef] = []
        self._folders: List[NodeRef] = []
        self._files: List[FileEntry] = []
        self._binaries: Dict[int, str] = {}
        self._sort = DEFAULT_SORT
        self._fetched = 0

    async def __aenter__(self) -> "DirectoryView":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def index(self) -> Optional[int]:
        """Object index of the loaded directory, or None."""
        return self._index

    @property
    def cached_objects(self) -> int:
        return len(self._cache)

    def _require_loaded(self):
        if self._state is not ViewState.LOADED:
            raise ViewStateError(f"No directory is loaded (state: {self._state.value})")

    def _settled_state(self) -> ViewState:
        return ViewState.LOADED if self._index is not None else ViewState.UNLOADED

    async def load(self, index: int) -> bool:
        """
        Fetches, validates and installs the directory at object 'index'.

        Returns True once installed, or False if a newer load() or close()
        superseded this one. On error the previously loaded directory stays
        in place and the error propagates.
        """
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"Directory index must be an int, not {type(index).__name__}")
        object_count = self.reader.count()
        if not 0 <= index < object_count:
            raise ValueError(f"Directory index {index} out of range 0..{object_count - 1}")

        self._generation += 1
        token = self._generation
        self._state = ViewState.LOADING
        try:
            text = await self.reader.fetch_text(index)
            if token != self._generation:
                return False
            decoded = decode_descriptor(text, object_count, self.supported_classes)
        except asyncio.CancelledError:
            if token == self._generation:
                self._state = self._settled_state()
            raise
        except DescriptorError as e:
            if token != self._generation:
                return False
            self._state = self._settled_state()
            e.index = index
            raise
        except Exception:
            if token != self._generation:
                return False
            self._state = self._settled_state()
            raise

        self._cache.release_all()
        self._index = index
        self._trail = decoded.trail
        self._folders = decoded.folders
        self._files = decoded.files
        self._binaries = decoded.binaries
        self._sort = DEFAULT_SORT
        self._fetched = 0
        self._state = ViewState.LOADED
        return True

    def close(self) -> None:
        """Releases every cached handle and forgets the loaded directory."""
        self._generation += 1
        self._cache.release_all()
        self._index = None
        self._trail = []
        self._folders = []
        self._files = []
        self._binaries = {}
        self._sort = DEFAULT_SORT
        self._fetched = 0
        self._state = ViewState.UNLOADED

    async def _fetch(self, index: int, token: int) -> Optional[bytes]:
        """Fetches one binary. Returns None if the operation holding 'token' went stale."""
        try:
            data = await self.reader.fetch_bytes(index)
        except ContainerError:
            if token != self._generation:
                return None
            raise
        if token != self._generation:
            return None
        return data

    async def load_files(self, sort_id: str = "name_asc", max_new_fetches: int = 1) -> None:
        """
        Makes the leading files of the list, in 'sort_id' order, available
        locally, fetching binaries for at most 'max_new_fetches' entries that
        are not cached yet.

        The whole list is rescanned from the start on every call; cached
        entries are counted without being fetched again.
        """
        self._require_loaded()
        if isinstance(max_new_fetches, bool) or not isinstance(max_new_fetches, int) or max_new_fetches < 1:
            raise ValueError(f"max_new_fetches must be a positive integer, not {max_new_fetches!r}")
        spec = SortSpec.parse(sort_id)

        self._generation += 1
        token = self._generation

        if spec != self._sort:
            spec.apply(self._files)
            self._sort = spec

        self._fetched = 0
        budget = max_new_fetches
        for entry in list(self._files):
            if entry.rbin in self._cache and entry.tbin in self._cache:
                self._fetched += 1
                continue
            if budget == 0:
                return

            payloads: List[Tuple[int, bytes, str]] = []
            for index, mime in ((entry.rbin, entry.rmime), (entry.tbin, entry.tmime)):
                if index in self._cache or any(p[0] == index for p in payloads):
                    continue
                data = await self._fetch(index, token)
                if data is None:
                    return
                payloads.append((index, data, mime))

            self._cache.store(payloads)
            budget -= 1
            self._fetched += 1

    async def open_object(self, index: int) -> Optional[LocalHandle]:
        """
        Returns a handle for any binary the loaded directory refers to,
        including thumbnails of files whose class is not supported, fetching
        it if needed. Returns None if the directory changed meanwhile.
        """
        self._require_loaded()
        if index not in self._binaries:
            raise ValueError(f"Object {index} is not referenced by the loaded directory")
        handle = self._cache.get(index)
        if handle is not None:
            return handle

        token = self._generation
        data = await self._fetch(index, token)
        if data is None:
            return None
        self._cache.store([(index, data, self._binaries[index])])
        return self._cache.get(index)

    # --- Accessors ---

    def trail_length(self) -> int:
        self._require_loaded()
        return len(self._trail)

    def trail_item(self, i: int) -> NodeRef:
        self._require_loaded()
        return self._trail[i]

    def folder_count(self) -> int:
        self._require_loaded()
        return len(self._folders)

    def folder_item(self, i: int) -> NodeRef:
        self._require_loaded()
        return self._folders[i]

    def file_count(self) -> int:
        """Number of files fetched so far, a prefix of the current sort order."""
        self._require_loaded()
        return self._fetched

    def file_item(self, i: int) -> FileEntry:
        self._require_loaded()
        if not 0 <= i < self._fetched:
            raise IndexError(f"File {i} has not been fetched")
        return self._files[i]

    def has_all_files(self) -> bool:
        self._require_loaded()
        return self._fetched == len(self._files)

    def current_sort(self) -> str:
        self._require_loaded()
        return self._sort.identifier

    def handle_for(self, index: int) -> Optional[LocalHandle]:
        self._require_loaded()
        return self._cache.get(index)
