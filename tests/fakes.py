"""In-memory stand-ins for the remote services used by the engine tests."""

import asyncio
import itertools
from typing import Any, Dict, List, Optional

from clients.document_base import FetchResponse
from common.exceptions import NetworkError, UnexpectedRemoteResponse


class FakeDocumentBase:
    """Dict-backed document base honouring the query forms the metadata store sends."""

    def __init__(self, page_size: int = 2):
        self.items: Dict[str, Dict[str, Any]] = {}
        self.page_size = page_size
        self.fetch_calls = 0
        self.closed = False
        self._keys = itertools.count(1)

    async def close(self) -> None:
        self.closed = True

    async def put(self, record: Dict[str, Any], key: Optional[str] = None) -> Dict[str, Any]:
        item = dict(record)
        if key is not None:
            item['key'] = key
        item.setdefault('key', f"auto{next(self._keys)}")
        self.items[item['key']] = item
        return dict(item)

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        item = self.items.get(key)
        return dict(item) if item else None

    async def delete(self, key: str) -> None:
        self.items.pop(key, None)

    async def fetch(self, query=None, last: Optional[str] = None, limit: Optional[int] = None) -> FetchResponse:
        self.fetch_calls += 1
        matching = [item for item in self.items.values() if _matches(item, query)]
        keys = [item['key'] for item in matching]
        offset = keys.index(last) + 1 if last in keys else 0
        page = matching[offset:offset + (limit or self.page_size)]
        more = offset + len(page) < len(matching)
        return FetchResponse(
            items=[dict(item) for item in page],
            last=page[-1]['key'] if more and page else None,
        )

    async def fetch_all(self, query=None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        last = None
        while True:
            page = await self.fetch(query, last=last)
            items.extend(page.items)
            if not page.last:
                return items
            last = page.last


def _matches(item: Dict[str, Any], query) -> bool:
    if not query:
        return True
    for field, expected in query.items():
        if field.endswith('?contains'):
            if expected not in str(item.get(field[:-len('?contains')], '')):
                return False
        elif item.get(field) != expected:
            return False
    return True


class FakeBlobStore:
    """
    Message store keyed by sequential ids.

    Tracks the highest number of concurrent calls and can be told to fail or
    delay specific operations.
    """

    def __init__(self, delays: Optional[Dict[int, float]] = None):
        self.messages: Dict[str, bytes] = {}
        self.delays = delays or {}
        self.fail_filenames: set = set()
        self.transient_failures = 0
        self.deleted: List[str] = []
        self.active = 0
        self.max_active = 0
        self.put_calls = 0
        self.closed = False
        self._ids = itertools.count(1000)

    async def close(self) -> None:
        self.closed = True

    async def _enter(self, call_number: int) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(call_number, 0))
        finally:
            self.active -= 1

    async def put(self, payload: bytes, filename: str, plaintext_size: int) -> str:
        call_number = self.put_calls
        self.put_calls += 1
        await self._enter(call_number)
        if self.transient_failures:
            self.transient_failures -= 1
            raise NetworkError("simulated timeout")
        if filename in self.fail_filenames:
            raise UnexpectedRemoteResponse("simulated rejection", status_code=400)
        message_id = str(next(self._ids))
        self.messages[message_id] = bytes(payload)
        return message_id

    async def get(self, message_id: str) -> bytes:
        await self._enter(-1)
        if message_id not in self.messages:
            raise UnexpectedRemoteResponse(f"Unknown message {message_id}", status_code=404)
        return self.messages[message_id]

    async def delete(self, message_id: str) -> None:
        if message_id not in self.messages:
            raise UnexpectedRemoteResponse(f"Unknown message {message_id}", status_code=404)
        del self.messages[message_id]
        self.deleted.append(message_id)
