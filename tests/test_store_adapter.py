import asyncio
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError

from dynamo_query import BotoStoreAdapter, StoreError


class FakeClient:
    """Low-level DynamoDB client double: takes and returns attribute-value maps."""

    def __init__(self, error=None, items=None):
        self.error = error
        self.items = items or []
        self.calls = []

    async def query(self, **kwargs):
        self.calls.append(("query", kwargs))
        if self.error is not None:
            raise self.error
        return {
            "Items": self.items,
            "Count": len(self.items),
            "LastEvaluatedKey": {"id": {"S": "9"}},
            "ResponseMetadata": {"HTTPStatusCode": 200},
        }

    async def get_item(self, **kwargs):
        self.calls.append(("get_item", kwargs))
        return {"Item": {"id": kwargs["Key"]["id"], "tags": {"SS": ["a"]}}}


class FakeClientContext:
    def __init__(self, client):
        self.client = client
        self.entered = 0
        self.exited = 0

    async def __aenter__(self):
        self.entered += 1
        await asyncio.sleep(0)
        return self.client

    async def __aexit__(self, *exc_info):
        self.exited += 1


class FakeSession:
    def __init__(self, client):
        self.contexts = []
        self.client = client
        self.kwargs = []

    def create_client(self, service, **kwargs):
        self.kwargs.append((service, kwargs))
        context = FakeClientContext(self.client)
        self.contexts.append(context)
        return context


@pytest.fixture()
def client():
    return FakeClient()


@pytest.fixture()
def adapter(client):
    boto_adapter = BotoStoreAdapter({"region_name": "us-east-1"})
    boto_adapter.session = FakeSession(client)
    return boto_adapter


def test_request_values_are_marshalled(adapter, client):
    params = {
        "TableName": "users",
        "KeyConditionExpression": "(#id = :id)",
        "ExpressionAttributeNames": {"#id": "id"},
        "ExpressionAttributeValues": {":id": "1", ":n": 5},
        "ExclusiveStartKey": {"id": "0"},
        "Limit": 5,
    }

    asyncio.run(adapter.query(params))

    assert client.calls == [("query", {
        "TableName": "users",
        "KeyConditionExpression": "(#id = :id)",
        "ExpressionAttributeNames": {"#id": "id"},
        "ExpressionAttributeValues": {":id": {"S": "1"}, ":n": {"N": "5"}},
        "ExclusiveStartKey": {"id": {"S": "0"}},
        "Limit": 5,
    })]
    # caller's params are left alone
    assert params["ExpressionAttributeValues"] == {":id": "1", ":n": 5}


def test_query_response_is_unmarshalled(adapter, client):
    client.items = [{"id": {"S": "1"}, "n": {"N": "5"}, "meta": {"M": {"ok": {"BOOL": True}}}}]

    response = asyncio.run(adapter.query({"TableName": "users"}))

    assert response == {
        "Items": [{"id": "1", "n": Decimal("5"), "meta": {"ok": True}}],
        "Count": 1,
        "LastEvaluatedKey": {"id": "9"},
    }


def test_get_item_round_trip(adapter, client):
    response = asyncio.run(adapter.get({"TableName": "users", "Key": {"id": "1"}}))

    assert client.calls == [("get_item", {"TableName": "users", "Key": {"id": {"S": "1"}}})]
    assert response == {"Item": {"id": "1", "tags": {"a"}}}


def test_client_errors_become_store_errors(adapter, client):
    error = ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        "Query",
    )
    client.error = error

    with pytest.raises(StoreError) as err:
        asyncio.run(adapter.query({"TableName": "users"}))

    assert "ProvisionedThroughputExceededException" in str(err.value)
    assert err.value.operation == "query"
    assert err.value.__cause__ is error


def test_concurrent_requests_share_one_client(adapter):
    async def scenario():
        async with adapter:
            await asyncio.gather(
                adapter.query({"TableName": "users"}),
                adapter.query({"TableName": "users"}),
            )

    asyncio.run(scenario())

    assert adapter.session.kwargs == [("dynamodb", {"region_name": "us-east-1"})]
    [context] = adapter.session.contexts
    assert context.entered == 1
    assert context.exited == 1


def test_client_reopens_after_close(adapter):
    async def scenario():
        await adapter.query({"TableName": "users"})
        await adapter.close()
        await adapter.query({"TableName": "users"})
        await adapter.close()

    asyncio.run(scenario())

    assert [c.entered for c in adapter.session.contexts] == [1, 1]
    assert [c.exited for c in adapter.session.contexts] == [1, 1]
