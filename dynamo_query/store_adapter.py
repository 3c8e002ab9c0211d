"""
Store adapter: executes fully built DynamoDB requests.

The engine only ever talks to the ``StoreAdapter`` protocol, passing the
DynamoDB request dict (``TableName``, ``Key``, ``KeyConditionExpression``,
``ExpressionAttributeNames``, …) and getting the response dict back with
items as plain Python values.

``BotoStoreAdapter`` is the default implementation.  It talks to DynamoDB
through an ``aiobotocore`` client, so every round trip is a native
coroutine, and marshals values to and from the low-level attribute format
with boto3's ``TypeSerializer`` / ``TypeDeserializer``.
"""

import asyncio
from typing import Any, Dict, Optional, Protocol

from aiobotocore.session import get_session
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .config import default_adapter_options
from .errors import StoreError
from .logger import logger

Params = Dict[str, Any]
Response = Dict[str, Any]

# Request members holding one attribute map
_ITEM_PARAMS = ("Item", "Key", "ExclusiveStartKey", "ExpressionAttributeValues")

# Response members holding one attribute map
_ITEM_RESULTS = ("Item", "Attributes", "LastEvaluatedKey")

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


def deserialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _deserializer.deserialize(v) for k, v in item.items()}


def serialize_request(params: Params) -> Params:
    request = dict(params)
    for member in _ITEM_PARAMS:
        if member in request:
            request[member] = serialize_item(request[member])
    return request


def deserialize_response(response: Response) -> Response:
    result = dict(response)
    result.pop("ResponseMetadata", None)
    for member in _ITEM_RESULTS:
        if member in result:
            result[member] = deserialize_item(result[member])
    if "Items" in result:
        result["Items"] = [deserialize_item(item) for item in result["Items"]]
    return result


class StoreAdapter(Protocol):
    async def get(self, params: Params) -> Response: ...

    async def put(self, params: Params) -> Response: ...

    async def update(self, params: Params) -> Response: ...

    async def delete(self, params: Params) -> Response: ...

    async def query(self, params: Params) -> Response: ...


class BotoStoreAdapter:
    """``StoreAdapter`` backed by one ``aiobotocore`` DynamoDB client.

    The client is opened by the first request and belongs to the event loop
    that opened it.  Release it with ``close()`` or use the adapter as an
    async context manager.
    """

    def __init__(self, options: Optional[Dict[str, Any]] = None) -> None:
        self.options = dict(options) if options else default_adapter_options()
        self.session = get_session()
        self._client: Any = None
        self._client_ctx: Any = None
        self._opening: Optional[asyncio.Future] = None

    async def _get_client(self):
        if self._client is None:
            if self._opening is None:
                # concurrent first requests share one client
                self._client_ctx = self.session.create_client("dynamodb", **self.options)
                self._opening = asyncio.ensure_future(self._client_ctx.__aenter__())
            self._client = await self._opening
            logger.info(
                "DynamoDB client ready (region=%s, endpoint=%s)",
                self.options.get("region_name"),
                self.options.get("endpoint_url", "default"),
            )
        return self._client

    async def close(self) -> None:
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
        self._client = None
        self._client_ctx = None
        self._opening = None

    async def __aenter__(self) -> "BotoStoreAdapter":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _call(self, method: str, params: Params) -> Response:
        logger.debug("%s on %s: %s", method, params.get("TableName"), params)
        try:
            client = await self._get_client()
            response = await getattr(client, method)(**serialize_request(params))
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "Unknown")
            raise StoreError(f"{method} failed with {code}: {exc}", operation=method) from exc
        except BotoCoreError as exc:
            raise StoreError(f"{method} failed: {exc}", operation=method) from exc
        return deserialize_response(response)

    async def get(self, params: Params) -> Response:
        return await self._call("get_item", params)

    async def put(self, params: Params) -> Response:
        return await self._call("put_item", params)

    async def update(self, params: Params) -> Response:
        return await self._call("update_item", params)

    async def delete(self, params: Params) -> Response:
        return await self._call("delete_item", params)

    async def query(self, params: Params) -> Response:
        return await self._call("query", params)
