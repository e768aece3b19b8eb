"""Async HTTP client for a Deta Base style document collection."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from common.constants import DEFAULT_METADATA_URL
from common.exceptions import ConfigurationError, NetworkError, UnexpectedRemoteResponse
from common.logging_config import get_logger

logger = get_logger(__name__)

Query = Union[Dict[str, Any], List[Dict[str, Any]], None]


@dataclass(frozen=True)
class FetchResponse:
    """
    One page of query results; last is set only when more pages remain.
    """
    items: List[Dict[str, Any]]
    last: Optional[str] = None


class DocumentBase:
    """
    One named collection ("base") in the document database.

    Supports put / get / delete by key and cursor-paginated queries.
    """

    def __init__(
        self,
        base_name: str,
        project_key: str,
        base_url: str = DEFAULT_METADATA_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize document base client.

        Args:
            base_name: Collection name (e.g. "files")
            project_key: Project key; its prefix before '_' is the project id
            base_url: Service root URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)

        Raises:
            ConfigurationError: If project_key has no project id prefix
        """
        project_id, sep, _ = project_key.partition('_')
        if not sep or not project_id:
            raise ConfigurationError("Project key must have the form <project_id>_<secret>")

        self.base_name = base_name
        self.session = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/{project_id}/{base_name}",
            headers={'X-API-Key': project_key, 'Content-Type': 'application/json'},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> 'DocumentBase':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session."""
        await self.session.aclose()

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        try:
            response = await self.session.request(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(
                f"{method} {self.base_name}{endpoint} failed: {type(e).__name__}: {e}"
            ) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise NetworkError(
                f"Metadata store returned transient status {response.status_code} for {method} {endpoint}"
            )
        return response

    def _unexpected(self, action: str, response: httpx.Response) -> UnexpectedRemoteResponse:
        return UnexpectedRemoteResponse(
            f"Unexpected metadata store response to {action} on '{self.base_name}': HTTP {response.status_code}",
            status_code=response.status_code,
            body=response.text[:200] if response.content else "",
        )

    @staticmethod
    def _item_key(key: str) -> str:
        return f"/items/{quote(key, safe='')}"

    async def put(self, record: Dict[str, Any], key: Optional[str] = None) -> Dict[str, Any]:
        """
        Insert or overwrite a record.

        Args:
            record: Document fields
            key: Optional key; the service generates one when omitted

        Returns:
            The stored document including its key
        """
        item = dict(record)
        if key is not None:
            item['key'] = key

        response = await self._request('PUT', '/items', json={'items': [item]})
        if response.status_code not in (200, 207):
            raise self._unexpected('put', response)

        body = response.json()
        processed = body.get('processed', {}).get('items', [])
        if not processed:
            failed = body.get('failed', {}).get('items', [])
            raise UnexpectedRemoteResponse(
                f"Metadata store rejected record in '{self.base_name}': {failed}",
                status_code=response.status_code,
            )
        return processed[0]

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a record by key.

        Returns:
            The document, or None if no record has this key
        """
        response = await self._request('GET', self._item_key(key))
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise self._unexpected(f'get {key}', response)
        return response.json()

    async def delete(self, key: str) -> None:
        """Delete a record by key (deleting a missing key is not an error)."""
        response = await self._request('DELETE', self._item_key(key))
        if response.status_code != 200:
            raise self._unexpected(f'delete {key}', response)

    async def fetch(
        self,
        query: Query = None,
        last: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> FetchResponse:
        """
        Fetch one page of records matching a query.

        Args:
            query: Field filter dict, or a list of dicts combined with OR
            last: Cursor returned by the previous page
            limit: Maximum number of records in this page

        Returns:
            FetchResponse with the page items and the next cursor, if any
        """
        payload: Dict[str, Any] = {}
        if query:
            payload['query'] = query if isinstance(query, list) else [query]
        if last:
            payload['last'] = last
        if limit:
            payload['limit'] = limit

        response = await self._request('POST', '/query', json=payload)
        if response.status_code != 200:
            raise self._unexpected('query', response)

        body = response.json()
        paging = body.get('paging') or {}
        return FetchResponse(items=body.get('items', []), last=paging.get('last') or None)

    async def fetch_all(self, query: Query = None) -> List[Dict[str, Any]]:
        """Fetch every record matching a query, following cursors until exhausted."""
        items: List[Dict[str, Any]] = []
        last: Optional[str] = None
        pages = 0

        while True:
            page = await self.fetch(query, last=last)
            items.extend(page.items)
            pages += 1
            if not page.last:
                break
            last = page.last

        logger.debug(f"Fetched {len(items)} record(s) from '{self.base_name}' in {pages} page(s)")
        return items
