"""Unit tests for BlobStoreClient against a mocked webhook."""

import json

import httpx
import pytest

from clients.blob_store_client import BlobStoreClient
from common.exceptions import NetworkError, PayloadTooLargeError, UnexpectedRemoteResponse

WEBHOOK = "https://discord.test/api/webhooks/123/tok"


def make_client(handler, max_payload_bytes=1024):
    return BlobStoreClient(
        WEBHOOK, max_payload_bytes=max_payload_bytes, transport=httpx.MockTransport(handler)
    )


@pytest.mark.asyncio
async def test_put_posts_attachment_and_returns_message_id():
    seen = {}

    def handler(request):
        seen['method'] = request.method
        seen['wait'] = request.url.params.get('wait')
        seen['body'] = request.content
        return httpx.Response(200, json={'id': '987654321'})

    async with make_client(handler) as client:
        message_id = await client.put(b"\x00ciphertext\xff", "movie.mp4.chunk0", 11)

    assert message_id == '987654321'
    assert seen['method'] == 'POST'
    assert seen['wait'] == 'true'
    assert b'name="files[0]"; filename="movie.mp4.chunk0"' in seen['body']
    assert b"\x00ciphertext\xff" in seen['body']
    assert json.dumps({'size': 11}).encode().replace(b'"', b'\\"') in seen['body']


@pytest.mark.asyncio
async def test_put_rejects_oversized_payload_without_request():
    def handler(request):
        raise AssertionError("no request expected")

    async with make_client(handler, max_payload_bytes=8) as client:
        with pytest.raises(PayloadTooLargeError):
            await client.put(b"x" * 9, "f.chunk0", 9)


@pytest.mark.asyncio
async def test_put_client_error_is_unexpected_response():
    async with make_client(lambda request: httpx.Response(400, text="bad form")) as client:
        with pytest.raises(UnexpectedRemoteResponse) as exc_info:
            await client.put(b"x", "f.chunk0", 1)

    assert exc_info.value.status_code == 400
    assert exc_info.value.body == "bad form"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [429, 500, 503])
async def test_transient_statuses_are_network_errors(status_code):
    async with make_client(lambda request: httpx.Response(status_code)) as client:
        with pytest.raises(NetworkError):
            await client.put(b"x", "f.chunk0", 1)


@pytest.mark.asyncio
async def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler) as client:
        with pytest.raises(NetworkError, match="ConnectError"):
            await client.get("1")


@pytest.mark.asyncio
async def test_get_follows_attachment_url():
    def handler(request):
        if request.url.path == '/api/webhooks/123/tok/messages/42':
            return httpx.Response(200, json={'id': '42', 'attachments': [{'url': 'https://cdn.test/a/42/blob'}]})
        if request.url.host == 'cdn.test':
            return httpx.Response(200, content=b"\x01\x02\x03")
        return httpx.Response(404)

    async with make_client(handler) as client:
        assert await client.get("42") == b"\x01\x02\x03"


@pytest.mark.asyncio
async def test_get_message_without_attachment():
    async with make_client(lambda request: httpx.Response(200, json={'id': '42', 'attachments': []})) as client:
        with pytest.raises(UnexpectedRemoteResponse, match="no attachment"):
            await client.get("42")


@pytest.mark.asyncio
async def test_delete_requires_204():
    async with make_client(lambda request: httpx.Response(204)) as client:
        await client.delete("42")

    async with make_client(lambda request: httpx.Response(200, json={})) as client:
        with pytest.raises(UnexpectedRemoteResponse):
            await client.delete("42")

    async with make_client(lambda request: httpx.Response(404, json={'message': 'Unknown Message'})) as client:
        with pytest.raises(UnexpectedRemoteResponse) as exc_info:
            await client.delete("42")
    assert exc_info.value.status_code == 404
