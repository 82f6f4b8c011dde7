# tests/conftest.py
import asyncio
import json
from pathlib import Path

import attrs
import pytest

from folio import database, models
from folio.compiler import Compiler
from folio.errors import ContainerError
from folio.handles import LocalHandle

# 2021-03-04 05:06:07 UTC
BASE_TIME = 1614834367


@pytest.fixture(scope="function")
def test_env(tmp_path: Path, monkeypatch):
    """
    Creates a self-contained temporary environment with an empty tree store.

    Structure:
        tmp_path/
        ├── work/          (current directory; folio.log lands here)
        │   └── folio.db   (the tree store)
        └── out/           (compiled containers)
    """
    work = tmp_path / "work"
    out = tmp_path / "out"
    work.mkdir()
    out.mkdir()
    monkeypatch.chdir(work)
    database.init_db(work / "folio.db", force_recreate=True)
    yield work
    database.close_db()


def _add(session, obj):
    session.add(obj)
    session.flush()
    return obj.id


@pytest.fixture(scope="function")
def populated_store(test_env):
    """
    Fills the tree store with a small archive and returns the ids that were created.

        Archive (root)
        ├── f2
        ├── f10
        └── f1
            └── deep
                └── deeper

    The root lists five photos, a clip with its own thumbnail and a note that
    relies on its type's default thumbnail. 'f1' lists one photo that is also
    in the root, and 'deep' lists a photo with a description.
    """
    ids = {}
    with database.get_session() as s:
        ids["bin_thumb"] = _add(s, models.Binary(payload=b"\x89PNG thumb"))
        ids["bin_clip_thumb"] = _add(s, models.Binary(payload=b"\x89PNG clip thumb"))
        ids["bin_clip"] = _add(s, models.Binary(payload=b"\x00\x00\x00\x18ftypmp42"))
        ids["bin_note"] = _add(s, models.Binary(payload="Grocery list\n".encode("utf-8")))
        ids["bin_unused"] = _add(s, models.Binary(payload=b"never listed"))

        ids["type_thumb"] = _add(s, models.ResourceType(name="thumb", rclass="image", mime="image/png"))
        ids["res_thumb"] = _add(s, models.Resource(
            rtype_id=ids["type_thumb"], name="default thumbnail", timestamp=BASE_TIME,
            rbin_id=ids["bin_thumb"]))
        ids["res_clip_thumb"] = _add(s, models.Resource(
            rtype_id=ids["type_thumb"], name="clip thumbnail", timestamp=BASE_TIME,
            rbin_id=ids["bin_clip_thumb"]))

        ids["type_photo"] = _add(s, models.ResourceType(
            name="photo", rclass="image", mime="image/jpeg", thumb_id=ids["res_thumb"]))
        ids["type_clip"] = _add(s, models.ResourceType(name="clip", rclass="video", mime="video/mp4"))
        ids["type_note"] = _add(s, models.ResourceType(
            name="note", rclass="text", mime="text/plain", thumb_id=ids["res_thumb"]))

        ids["root"] = _add(s, models.Node(name="Archive"))
        ids["f2"] = _add(s, models.Node(name="f2", parent_id=ids["root"]))
        ids["f10"] = _add(s, models.Node(name="f10", parent_id=ids["root"]))
        ids["f1"] = _add(s, models.Node(name="f1", parent_id=ids["root"]))
        ids["deep"] = _add(s, models.Node(name="deep", parent_id=ids["f1"]))
        ids["deeper"] = _add(s, models.Node(name="deeper", parent_id=ids["deep"]))

        photos = []
        for offset, name in enumerate(["img3", "img10", "img1", "img20", "img2"]):
            bin_id = _add(s, models.Binary(payload=f"JPEG {name}".encode("ascii")))
            res_id = _add(s, models.Resource(
                rtype_id=ids["type_photo"], name=name, timestamp=BASE_TIME + offset * 86400,
                rbin_id=bin_id))
            ids[f"bin_{name}"] = bin_id
            ids[f"res_{name}"] = res_id
            photos.append(res_id)
            s.add(models.Listing(node_id=ids["root"], res_id=res_id))

        ids["res_clip"] = _add(s, models.Resource(
            rtype_id=ids["type_clip"], name="holiday", timestamp=BASE_TIME,
            thumb_id=ids["res_clip_thumb"], rbin_id=ids["bin_clip"]))
        ids["res_note"] = _add(s, models.Resource(
            rtype_id=ids["type_note"], name="groceries", timestamp=BASE_TIME,
            rbin_id=ids["bin_note"]))
        s.add(models.Listing(node_id=ids["root"], res_id=ids["res_clip"]))
        s.add(models.Listing(node_id=ids["root"], res_id=ids["res_note"]))

        s.add(models.Listing(node_id=ids["f1"], res_id=ids["res_img1"]))

        ids["bin_lake"] = _add(s, models.Binary(payload=b"JPEG lake"))
        ids["res_lake"] = _add(s, models.Resource(
            rtype_id=ids["type_photo"], name="lake", timestamp=0,
            description="Early morning", rbin_id=ids["bin_lake"]))
        s.add(models.Listing(node_id=ids["deep"], res_id=ids["res_lake"]))
        s.commit()
    return ids


@pytest.fixture(scope="function")
def compiled_container(populated_store, tmp_path):
    """Compiles the populated store and returns (container path, ids)."""
    output = tmp_path / "out" / "archive.folio"
    Compiler(output, show_progress=False).run()
    return output, populated_store


# --- Consumer-side doubles ---

class MemoryReader:
    """
    In-memory stand-in for ContainerReader.

    Objects are bytes, or dicts that are served as JSON descriptors. Fetches
    of indices in 'gates' wait until the matching event is set, and fetches of
    indices in 'failures' raise ContainerError.
    """

    def __init__(self, objects):
        self.objects = [
            json.dumps(o).encode("utf-8") if isinstance(o, dict) else o
            for o in objects
        ]
        self.gates = {}
        self.failures = set()
        self.fetched = []

    def count(self):
        return len(self.objects)

    def gate(self, index):
        event = asyncio.Event()
        self.gates[index] = event
        return event

    async def fetch_bytes(self, index):
        self.fetched.append(index)
        if index in self.gates:
            await self.gates[index].wait()
        else:
            await asyncio.sleep(0)
        if index in self.failures:
            raise ContainerError(f"Failed to read object {index}")
        return self.objects[index]

    async def fetch_text(self, index):
        return (await self.fetch_bytes(index)).decode("utf-8")


@attrs.define
class RecordingHandles:
    """Handle factory that records which handles are live."""
    live: dict = attrs.field(factory=dict)
    created: int = 0
    released: int = 0

    def create(self, index, data, mime):
        self.created += 1
        handle = LocalHandle(index=index, mime=mime, path=Path(f"/mem/{index}-{self.created}"))
        self.live[handle.path] = data
        return handle

    def release(self, handle):
        self.released += 1
        del self.live[handle.path]


@pytest.fixture
def handles():
    return RecordingHandles()


def file_record(name, rbin, tbin, rtime="2021-03-04 05:06:07", rclass="image", **extra):
    record = {
        "rclass": rclass, "rbin": rbin, "rmime": "image/jpeg",
        "tbin": tbin, "tmime": "image/png", "rname": name, "rtime": rtime,
    }
    record.update(extra)
    return record
