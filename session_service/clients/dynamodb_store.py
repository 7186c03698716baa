"""
DynamoDB-backed key-value store for sessions.

Expiry is written to a numeric ``expires_at`` attribute that the table's TTL
feature can be pointed at. DynamoDB deletes expired items lazily, so reads
also check the attribute.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, Optional

import boto3
from boto3.dynamodb.types import Binary
from botocore.exceptions import BotoCoreError, ClientError

from session_service.clients.kv_store import StoreUnavailableError


class DynamoDBStore:
    """Simple CRUD operations over a single-key DynamoDB table."""

    def __init__(
        self,
        table: Any,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._table = table
        self._clock = clock

    @classmethod
    def from_table_name(cls, table_name: str, *, region_name: str) -> "DynamoDBStore":
        resource = boto3.resource("dynamodb", region_name=region_name)
        return cls(resource.Table(table_name))

    async def get(self, key: str) -> Optional[bytes]:
        item = await self._call(self._get_item, key)
        if not item:
            return None
        expires_at = item.get("expires_at")
        if expires_at is not None and int(expires_at) <= int(self._clock()):
            return None
        value = item.get("value")
        if isinstance(value, Binary):
            return bytes(value.value)
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode("utf-8")
        return None

    async def set(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        item: Dict[str, Any] = {"pk": key, "value": Binary(bytes(value))}
        if ttl_seconds is not None and ttl_seconds > 0:
            item["expires_at"] = int(self._clock()) + int(ttl_seconds)
        await self._call(self._table.put_item, Item=item)

    async def delete(self, key: str) -> None:
        await self._call(self._table.delete_item, Key={"pk": key})

    def _get_item(self, key: str) -> Optional[Dict[str, Any]]:
        response = self._table.get_item(Key={"pk": key}, ConsistentRead=True)
        return response.get("Item")

    @staticmethod
    async def _call(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        # boto3 is blocking; keep it off the event loop.
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailableError(f"DynamoDB request failed: {exc}") from exc


__all__ = ["DynamoDBStore"]
