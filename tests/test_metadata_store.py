"""Unit tests for MetadataStore and virtual path helpers."""

import pytest

from clients.metadata_store import chunk_key, normalize_dir_path, split_virtual_path
from common.exceptions import DuplicatePathError
from common.types import FileRecord


@pytest.mark.parametrize("raw,expected", [
    ("/", ""),
    ("", ""),
    ("docs", "/docs"),
    ("/docs/", "/docs"),
    ("//a//b/", "/a/b"),
    ("a\\b", "/a/b"),
    ("./a/./b", "/a/b"),
])
def test_normalize_dir_path(raw, expected):
    assert normalize_dir_path(raw) == expected


def test_normalize_dir_path_rejects_parent_segments():
    with pytest.raises(ValueError):
        normalize_dir_path("/a/../b")


def test_split_virtual_path():
    assert split_virtual_path("/docs/report.pdf") == ("/docs", "report.pdf")
    assert split_virtual_path("/report.pdf") == ("", "report.pdf")


def test_virtual_path_of_root_file():
    assert FileRecord(id="1", name="a.txt", dir_path="", size=1).virtual_path == "/a.txt"


def test_chunk_key_is_deterministic():
    assert chunk_key("abc", 2) == "abc-2"


@pytest.mark.asyncio
async def test_add_and_get_file(metadata):
    record = await metadata.add_file("report.pdf", "/docs/", 1234)

    assert record.dir_path == "/docs"
    assert record.virtual_path == "/docs/report.pdf"
    assert await metadata.get_file(record.id) == record
    assert await metadata.get_file_from_path("/docs/report.pdf") == record


@pytest.mark.asyncio
async def test_duplicate_path_is_rejected(metadata):
    await metadata.add_file("a.txt", "/", 1)

    with pytest.raises(DuplicatePathError):
        await metadata.add_file("a.txt", "", 2)

    # same name in another directory is fine
    await metadata.add_file("a.txt", "/other", 2)


@pytest.mark.asyncio
async def test_invalid_name_is_rejected(metadata):
    with pytest.raises(ValueError):
        await metadata.add_file("", "/", 1)


@pytest.mark.asyncio
async def test_unknown_file_is_none(metadata):
    assert await metadata.get_file("missing") is None
    assert await metadata.get_file_from_path("/nope.txt") is None
    assert await metadata.get_file_from_path("/") is None


@pytest.mark.asyncio
async def test_first_match_wins_for_duplicated_path(metadata):
    # bypass the uniqueness check, as a racing writer could
    await metadata.files.put({'key': 'one', 'name': 'x.bin', 'path': '', 'size': 1})
    await metadata.files.put({'key': 'two', 'name': 'x.bin', 'path': '', 'size': 2})

    found = await metadata.get_file_from_path("/x.bin")
    assert found.id == "one"


@pytest.mark.asyncio
async def test_chunks_come_back_sorted(metadata):
    for index in (2, 0, 1):
        await metadata.add_chunk("f1", index, index * 10, index * 10 + 10, f"m{index}")
    await metadata.add_chunk("other", 0, 0, 5, "mx")

    chunks = await metadata.get_chunks("f1")

    assert [chunk.index for chunk in chunks] == [0, 1, 2]
    assert [chunk.id for chunk in chunks] == ["f1-0", "f1-1", "f1-2"]
    assert chunks[1].range.start == 10
    assert chunks[1].remote_message_id == "m1"


@pytest.mark.asyncio
async def test_re_registering_a_chunk_overwrites_it(metadata):
    await metadata.add_chunk("f1", 0, 0, 10, "old")
    await metadata.add_chunk("f1", 0, 0, 10, "new")

    chunks = await metadata.get_chunks("f1")
    assert [chunk.remote_message_id for chunk in chunks] == ["new"]


@pytest.mark.asyncio
async def test_list_and_search(metadata):
    await metadata.add_file("b.txt", "/docs", 1)
    await metadata.add_file("a.txt", "/docs", 1)
    await metadata.add_file("notes.md", "/", 1)

    in_docs = await metadata.list_files("/docs")
    everything = await metadata.list_files()
    found = await metadata.search_files(".txt")

    assert [f.virtual_path for f in in_docs] == ["/docs/a.txt", "/docs/b.txt"]
    assert [f.virtual_path for f in everything] == ["/docs/a.txt", "/docs/b.txt", "/notes.md"]
    assert [f.name for f in found] == ["a.txt", "b.txt"]
    assert await metadata.list_files("/") == [everything[2]]


@pytest.mark.asyncio
async def test_delete_records(metadata):
    record = await metadata.add_file("a.txt", "/", 1)
    await metadata.add_chunk(record.id, 0, 0, 1, "m0")

    await metadata.delete_chunk(chunk_key(record.id, 0))
    await metadata.delete_file(record.id)

    assert await metadata.get_file(record.id) is None
    assert await metadata.get_chunks(record.id) == []


@pytest.mark.asyncio
async def test_chunks_collected_across_pages(metadata):
    for index in (4, 1, 3, 0, 2):
        await metadata.add_chunk("f1", index, index * 10, index * 10 + 10, f"m{index}")

    chunks = await metadata.get_chunks("f1")

    assert [chunk.index for chunk in chunks] == [0, 1, 2, 3, 4]
    # page size 2 means three pages for five chunks
    assert metadata.chunks.fetch_calls == 3
