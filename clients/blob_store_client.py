"""HTTP client storing chunk payloads as webhook message attachments."""

import json
from typing import Optional

import httpx

from common.constants import MAX_ATTACHMENT_BYTES
from common.exceptions import NetworkError, PayloadTooLargeError, UnexpectedRemoteResponse
from common.logging_config import get_logger

logger = get_logger(__name__)


class BlobStoreClient:
    """
    Webhook-backed blob store.

    Each payload becomes one message with a single attachment; the message id
    is the payload's reference.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 60.0,
        max_payload_bytes: int = MAX_ATTACHMENT_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize blob store client.

        Args:
            webhook_url: Full webhook URL (including its token)
            timeout: Per-request timeout in seconds
            max_payload_bytes: Largest attachment the service accepts
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.webhook_url = webhook_url.rstrip('/')
        self.max_payload_bytes = max_payload_bytes
        self.session = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> 'BlobStoreClient':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send a request, mapping transport failures and transient statuses to NetworkError.

        Raises:
            NetworkError: On connection failures, timeouts, 429 and 5xx responses
        """
        try:
            response = await self.session.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} request to blob store failed: {type(e).__name__}: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkError(f"Blob store returned transient status {response.status_code} for {method}")

        return response

    @staticmethod
    def _unexpected(action: str, response: httpx.Response) -> UnexpectedRemoteResponse:
        body = response.text[:200] if response.content else ""
        return UnexpectedRemoteResponse(
            f"Unexpected blob store response to {action}: HTTP {response.status_code}",
            status_code=response.status_code,
            body=body,
        )

    async def put(self, payload: bytes, filename: str, plaintext_size: int) -> str:
        """
        Upload one payload as a message attachment.

        Args:
            payload: Encrypted chunk bytes
            filename: Attachment name
            plaintext_size: Size of the chunk before encryption, stored in the message body

        Returns:
            Message id referencing the payload

        Raises:
            PayloadTooLargeError: If payload exceeds max_payload_bytes
            NetworkError: On transport failure
            UnexpectedRemoteResponse: On a non-2xx answer
        """
        if len(payload) > self.max_payload_bytes:
            raise PayloadTooLargeError(
                f"Payload of {len(payload)} bytes exceeds attachment limit of {self.max_payload_bytes} bytes"
            )

        files = {'files[0]': (filename, payload, 'application/octet-stream')}
        data = {'payload_json': json.dumps({'content': json.dumps({'size': plaintext_size})})}

        response = await self._request(
            'POST', self.webhook_url, params={'wait': 'true'}, files=files, data=data
        )
        if not 200 <= response.status_code < 300:
            raise self._unexpected('upload', response)

        message_id = response.json()['id']
        logger.debug(f"Stored payload {filename} ({len(payload)} bytes) as message {message_id}")
        return str(message_id)

    async def get(self, message_id: str) -> bytes:
        """
        Download the attachment bytes of a message.

        Raises:
            NetworkError: On transport failure
            UnexpectedRemoteResponse: On a non-2xx answer or a message without attachment
        """
        response = await self._request('GET', f"{self.webhook_url}/messages/{message_id}")
        if not 200 <= response.status_code < 300:
            raise self._unexpected(f'message lookup {message_id}', response)

        attachments = response.json().get('attachments') or []
        if not attachments:
            raise UnexpectedRemoteResponse(
                f"Message {message_id} has no attachment", status_code=response.status_code
            )

        data_response = await self._request('GET', attachments[0]['url'])
        if not 200 <= data_response.status_code < 300:
            raise self._unexpected(f'attachment download {message_id}', data_response)

        return data_response.content

    async def delete(self, message_id: str) -> None:
        """
        Delete a message and its attachment.

        Raises:
            NetworkError: On transport failure
            UnexpectedRemoteResponse: On any status other than 204
        """
        response = await self._request('DELETE', f"{self.webhook_url}/messages/{message_id}")
        if response.status_code != 204:
            raise self._unexpected(f'delete {message_id}', response)
        logger.debug(f"Deleted message {message_id}")
