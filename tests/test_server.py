"""Integration tests for the range server endpoints."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from server.main import app
from server.utils import content_disposition, parse_range_header
from common.exceptions import RangeNotSatisfiable


@pytest.fixture
def stored_file(file_manager, sample_file):
    """Upload sample.bin (bytes 0..24) to /media and return its record."""
    return asyncio.run(file_manager.upload_file(str(sample_file), "/media"))


@pytest.fixture
def client(file_manager, stored_file):
    app.state.file_manager = file_manager
    yield TestClient(app)
    app.state.file_manager = None


class TestParseRangeHeader:
    def test_no_header(self):
        assert parse_range_header(None, 100) is None

    def test_closed_range(self):
        assert parse_range_header("bytes=0-499", 1000) == (0, 500)

    def test_open_range(self):
        assert parse_range_header("bytes=500-", 1000) == (500, 1000)

    def test_suffix_range(self):
        assert parse_range_header("bytes=-100", 1000) == (900, 1000)
        assert parse_range_header("bytes=-5000", 1000) == (0, 1000)

    def test_end_is_clamped(self):
        assert parse_range_header("bytes=900-5000", 1000) == (900, 1000)

    def test_only_first_range_is_used(self):
        assert parse_range_header("bytes=0-9, 20-29", 100) == (0, 10)

    @pytest.mark.parametrize("header", ["bytes=1000-", "bytes=5-2", "items=0-1", "bytes=abc", "bytes=-0"])
    def test_unsatisfiable(self, header):
        with pytest.raises(RangeNotSatisfiable):
            parse_range_header(header, 1000)


def test_content_disposition_keeps_unicode_name():
    header = content_disposition("résumé.pdf")
    assert 'filename="r?sum?.pdf"' in header
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in header


def test_root_health_check(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "running"
    assert "X-Request-ID" in response.headers


def test_full_file(client):
    response = client.get("/media/sample.bin")

    assert response.status_code == 200
    assert response.content == bytes(range(25))
    assert response.headers["content-length"] == "25"
    assert response.headers["accept-ranges"] == "bytes"
    assert "sample.bin" in response.headers["content-disposition"]


def test_partial_content(client):
    response = client.get("/media/sample.bin", headers={"Range": "bytes=5-21"})

    assert response.status_code == 206
    assert response.content == bytes(range(5, 22))
    assert response.headers["content-range"] == "bytes 5-21/25"
    assert response.headers["content-length"] == "17"


def test_suffix_range_request(client):
    response = client.get("/media/sample.bin", headers={"Range": "bytes=-3"})

    assert response.status_code == 206
    assert response.content == bytes([22, 23, 24])


def test_unsatisfiable_range(client):
    response = client.get("/media/sample.bin", headers={"Range": "bytes=25-"})

    assert response.status_code == 416
    assert response.headers["content-range"] == "bytes */25"
    assert response.json()["code"] == "RANGE_NOT_SATISFIABLE"


def test_missing_file(client):
    response = client.get("/media/nope.bin")

    assert response.status_code == 404
    assert response.json()["code"] == "FILE_NOT_FOUND"


def test_corrupt_metadata_is_500(client, file_manager, stored_file):
    asyncio.run(file_manager.metadata.delete_chunk(f"{stored_file.id}-2"))

    response = client.get("/media/sample.bin")

    assert response.status_code == 500
    assert response.json()["code"] == "CORRUPT_METADATA"


def test_list_files(client, stored_file):
    response = client.get("/_api/files", params={"dir": "/media"})

    assert response.status_code == 200
    files = response.json()["files"]
    assert files == [{
        "file_id": stored_file.id,
        "name": "sample.bin",
        "dir_path": "/media",
        "path": "/media/sample.bin",
        "size": 25,
    }]


def test_list_files_other_directory_is_empty(client):
    assert client.get("/_api/files", params={"dir": "/other"}).json() == {"files": []}


def test_search_files(client):
    response = client.get("/_api/search", params={"q": "sample"})

    assert response.status_code == 200
    assert [f["path"] for f in response.json()["files"]] == ["/media/sample.bin"]


def test_search_requires_text(client):
    assert client.get("/_api/search").status_code == 422
