# tests/test_container.py
import pytest

from folio.container import ContainerReader, ContainerWriter, decode_uleb128, encode_uleb128
from folio.errors import ContainerError


def write_container(path, objects):
    with ContainerWriter(path) as writer:
        for obj in objects:
            writer.begin_object()
            writer.write_binary(obj)
        writer.complete()


def test_uleb128():
    for value in [0, 1, 127, 128, 300, 2**40]:
        assert decode_uleb128(encode_uleb128(value)) == (value, len(encode_uleb128(value)))


@pytest.mark.asyncio
async def test_objects_are_index_addressable(tmp_path):
    path = tmp_path / "c.folio"
    objects = [b"first", b"", "zweite ✓".encode("utf-8"), bytes(range(256)) * 40]
    write_container(path, objects)

    reader = ContainerReader(path)
    await reader.init()
    assert reader.count() == 4
    # Out of order on purpose
    for index in [3, 0, 2, 1]:
        assert await reader.fetch_bytes(index) == objects[index]
    assert await reader.fetch_text(2) == "zweite ✓"


@pytest.mark.asyncio
async def test_one_object_may_be_written_in_pieces(tmp_path):
    path = tmp_path / "c.folio"
    with ContainerWriter(path) as writer:
        writer.begin_object()
        writer.write_binary(b"ab")
        writer.write_binary(b"cd")
        writer.begin_object()
        writer.complete()

    reader = ContainerReader(path)
    await reader.init()
    assert [await reader.fetch_bytes(i) for i in range(reader.count())] == [b"abcd", b""]


@pytest.mark.asyncio
async def test_independent_readers_do_not_share_a_cursor(tmp_path):
    path = tmp_path / "c.folio"
    write_container(path, [b"a" * 10, b"b" * 20, b"c" * 30])
    first, second = ContainerReader(path), ContainerReader(path)
    await first.init()
    await second.init()
    assert await first.fetch_bytes(2) == b"c" * 30
    assert await second.fetch_bytes(0) == b"a" * 10
    assert await first.fetch_bytes(1) == b"b" * 20


def test_abort_leaves_no_file(tmp_path):
    path = tmp_path / "c.folio"
    with pytest.raises(RuntimeError):
        with ContainerWriter(path) as writer:
            writer.begin_object()
            writer.write_binary(b"partial")
            raise RuntimeError("boom")
    assert not path.exists()
    assert not (tmp_path / "c.folio.partial").exists()


def test_leaving_without_complete_leaves_no_file(tmp_path):
    path = tmp_path / "c.folio"
    with ContainerWriter(path) as writer:
        writer.begin_object()
        writer.write_binary(b"partial")
    assert list(tmp_path.iterdir()) == []


def test_writer_refuses_existing_output(tmp_path):
    path = tmp_path / "c.folio"
    path.write_bytes(b"keep me")
    with pytest.raises(ContainerError):
        ContainerWriter(path)
    assert path.read_bytes() == b"keep me"


def test_write_requires_begin_object(tmp_path):
    with ContainerWriter(tmp_path / "c.folio") as writer:
        with pytest.raises(ContainerError):
            writer.write_binary(b"x")


@pytest.mark.asyncio
async def test_reader_rejects_foreign_files(tmp_path):
    path = tmp_path / "c.folio"
    path.write_bytes(b"definitely not a container file")
    with pytest.raises(ContainerError):
        await ContainerReader(path).init()


@pytest.mark.asyncio
async def test_reader_rejects_truncated_files(tmp_path):
    path = tmp_path / "c.folio"
    write_container(path, [b"hello", b"world"])
    path.write_bytes(path.read_bytes()[:-3])
    with pytest.raises(ContainerError):
        await ContainerReader(path).init()


@pytest.mark.asyncio
async def test_out_of_range_fetch(tmp_path):
    path = tmp_path / "c.folio"
    write_container(path, [b"only"])
    reader = ContainerReader(path)
    await reader.init()
    for index in [-1, 1, True]:
        with pytest.raises(ContainerError):
            await reader.fetch_bytes(index)
