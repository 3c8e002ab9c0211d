import copy

import pytest

from dynamo_query import DocumentStore


class FakeAdapter:
    """In-memory StoreAdapter that records every request it receives.

    ``responses`` maps an operation name to the response it returns.
    COUNT queries (``Select=COUNT``) pop from ``count_responses`` instead.
    """

    def __init__(self, responses=None, count_responses=None, error=None):
        self.calls = []
        self.responses = responses or {}
        self.count_responses = list(count_responses or [])
        self.error = error

    async def _respond(self, operation, params):
        self.calls.append((operation, copy.deepcopy(params)))
        if self.error is not None:
            raise self.error
        if operation == "query" and params.get("Select") == "COUNT":
            return self.count_responses.pop(0)
        return copy.deepcopy(self.responses.get(operation, {}))

    async def get(self, params):
        return await self._respond("get", params)

    async def put(self, params):
        return await self._respond("put", params)

    async def update(self, params):
        return await self._respond("update", params)

    async def delete(self, params):
        return await self._respond("delete", params)

    async def query(self, params):
        return await self._respond("query", params)

    def params(self, operation):
        """Params of every call made for ``operation``, in call order."""
        return [p for op, p in self.calls if op == operation]


@pytest.fixture()
def pk():
    return {"userId": "123456", "uuid": "123-123-123"}


@pytest.fixture()
def make_store():
    """Build a DocumentStore wired to a FakeAdapter: ``store, adapter = make_store(...)``."""

    def _make(reject_on_fail=True, max_count_pages=1000, **adapter_kwargs):
        adapter = FakeAdapter(**adapter_kwargs)
        store = DocumentStore(
            reject_on_fail=reject_on_fail,
            adapter=adapter,
            max_count_pages=max_count_pages,
        )
        return store, adapter

    return _make
