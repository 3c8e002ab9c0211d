"""
Paginated query engine and record operations.

``DocumentStore`` compiles requests with the normalizer and expression
compiler, hands them to a ``StoreAdapter`` and post-processes the response.

Pagination is keyset based.  DynamoDB only walks an index in one direction
per call, so:

  - paging backwards flips ``ScanIndexForward`` and reverses the page;
  - ``start_key="last"`` scans from the far end of the index, reverses the
    page back into reading order and trims it to the size the final page
    of a forward walk would have, which needs the total count;
  - total counts walk the index with ``Select=COUNT`` until the store
    stops returning a ``LastEvaluatedKey``.

Validation errors are raised before any request is sent.  Store errors go
through the instance's ``reject_on_fail`` policy: re-raised as
``StoreError``, or swallowed and turned into a ``None`` result.
"""

import asyncio
import copy
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from . import expression_compiler as compiler
from .attribute_normalizer import AttributeNormalizer, default_normalizer
from .config import MAX_COUNT_PAGES
from .errors import CountLimitExceeded, StoreError, ValidationError
from .logger import logger
from .models import PagedResult, QueryDescriptor
from .store_adapter import BotoStoreAdapter, StoreAdapter

COUNT_SELECT = "COUNT"

PrimaryKey = Mapping[str, Any]


class DocumentStore:
    """Record operations and paginated queries against one DynamoDB connection."""

    def __init__(
        self,
        adapter_options: Optional[Dict[str, Any]] = None,
        reject_on_fail: bool = True,
        *,
        adapter: Optional[StoreAdapter] = None,
        normalizer: Optional[AttributeNormalizer] = None,
        max_count_pages: int = MAX_COUNT_PAGES,
    ) -> None:
        self.adapter: StoreAdapter = adapter or BotoStoreAdapter(adapter_options)
        self.normalizer = normalizer or default_normalizer
        self.max_count_pages = max_count_pages
        self._reject_on_fail = bool(reject_on_fail)

    @property
    def reject_on_fail(self) -> bool:
        return self._reject_on_fail

    # ---------------------- FAILURE POLICY ----------------------

    def _handle_failure(self, operation: str, exc: Exception) -> None:
        """Apply the ``reject_on_fail`` policy to a store failure."""
        logger.error("%s failed: %s", operation, exc)
        if not self._reject_on_fail:
            return None
        if isinstance(exc, StoreError):
            raise exc
        raise StoreError(str(exc), operation=operation) from exc

    async def _execute(self, operation: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return await getattr(self.adapter, operation)(params)
        except ValidationError:
            raise
        except Exception as exc:
            return self._handle_failure(operation, exc)

    # ---------------------- RECORD OPERATIONS ----------------------

    async def create(self, data: Mapping[str, Any], primary_key: PrimaryKey, table: str):
        """Write a new record; fails if one with the same key exists."""
        return await self.put(data, primary_key, table, True)

    async def update(self, data: Mapping[str, Any], primary_key: PrimaryKey, table: str):
        """Alias of ``patch``."""
        return await self.patch(data, primary_key, table)

    async def put(
        self,
        data: Mapping[str, Any],
        primary_key: PrimaryKey,
        table: str,
        create_only: bool = False,
    ):
        """Create or entirely replace a record.

        Primary key values override same-named properties of ``data``.
        """
        params: Dict[str, Any] = {
            "TableName": table,
            "Item": {**data, **primary_key},
        }

        if create_only:
            params["ConditionExpression"] = compiler.build_create_condition(primary_key)
            params["ExpressionAttributeNames"] = compiler.build_expression_placeholders(
                self.normalizer.normalize_data_values(primary_key),
                compiler.NAME_CHAR,
            )

        return await self._execute("put", params)

    async def patch(self, data: Mapping[str, Any], primary_key: PrimaryKey, table: str):
        """Update the given top-level attributes of a record, creating it if needed.

        Each top-level property replaces the stored attribute of the same
        name entirely; nested maps are not merged.  Key attributes are left
        to ``Key`` and empty values are skipped.
        """
        values = self.normalizer.normalize_data_values(
            {k: v for k, v in data.items() if k not in primary_key}
        )

        params = {
            "TableName": table,
            "Key": dict(primary_key),
            "UpdateExpression": compiler.build_update_expression(values),
            "ExpressionAttributeNames": compiler.build_expression_placeholders(
                values, compiler.NAME_CHAR,
            ),
            "ExpressionAttributeValues": compiler.build_expression_placeholders(
                values, compiler.VALUE_CHAR,
            ),
        }

        return await self._execute("update", params)

    async def load(self, primary_key: PrimaryKey, table: str):
        return await self._execute("get", {"TableName": table, "Key": dict(primary_key)})

    async def delete(self, primary_key: PrimaryKey, table: str):
        return await self._execute("delete", {"TableName": table, "Key": dict(primary_key)})

    # ---------------------- QUERY BUILDING ----------------------

    def _split_filters(
        self,
        raw_filters: Mapping[str, Mapping[str, Any]],
    ) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Normalize raw filters into (groups, conditions), keeping input order."""
        groups = [
            self.normalizer.normalize_group(entry["group"], name)
            for name, entry in raw_filters.items()
            if "group" in entry
        ]
        conditions = [
            self.normalizer.normalize_condition(entry["condition"], name)
            for name, entry in raw_filters.items()
            if "condition" in entry
        ]
        return groups, conditions

    @staticmethod
    def build_filter_expression(
        groups: List[Dict[str, Any]],
        conditions: List[Dict[str, Any]],
    ) -> str:
        """AND together one clause per non-empty group plus one for the rest."""
        expressions: List[str] = []
        claimed = set()

        for group in groups:
            if group["name"] in claimed:
                continue
            members = [c for c in conditions if c.get("memberOf") == group["name"]]
            if members:
                expressions.append(
                    compiler.build_condition_expression(members, group["conjunction"])
                )
                claimed.add(group["name"])

        ungrouped = [c for c in conditions if c.get("memberOf") not in claimed]
        if ungrouped:
            expressions.append(compiler.build_condition_expression(ungrouped))

        return " AND ".join(expressions)

    def build_query_params(
        self,
        primary_key: PrimaryKey,
        table: str,
        q: QueryDescriptor,
    ) -> Dict[str, Any]:
        """Compile a descriptor into DynamoDB query params (no cursor handling)."""
        groups, conditions = self._split_filters(q.raw_filters)

        # The sort key is optional when querying
        keys = [
            self.normalizer.normalize_condition(value, name)
            for name, value in primary_key.items()
            if not compiler.value_is_empty(value)
        ]
        attributes = keys + conditions

        params: Dict[str, Any] = {
            "KeyConditionExpression": compiler.build_condition_expression(keys),
            "ExpressionAttributeNames": compiler.build_expression_placeholders(
                attributes, compiler.NAME_CHAR,
            ),
            "ExpressionAttributeValues": compiler.build_expression_placeholders(
                attributes, compiler.VALUE_CHAR,
            ),
            "ScanIndexForward": q.page_forward if q.sort_ascending else not q.page_forward,
            "TableName": table,
            "Limit": q.limit,
        }

        if conditions:
            params["FilterExpression"] = self.build_filter_expression(groups, conditions)
        if q.index:
            params["IndexName"] = q.index
        if q.select:
            params["Select"] = q.select

        return params

    @staticmethod
    def _descriptor(descriptor: Union[QueryDescriptor, Mapping[str, Any], None]) -> QueryDescriptor:
        if isinstance(descriptor, QueryDescriptor):
            return descriptor
        try:
            return QueryDescriptor.model_validate(dict(descriptor or {}))
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid query descriptor: {exc}") from exc

    # ---------------------- QUERY ----------------------

    async def query(
        self,
        primary_key: PrimaryKey,
        table: str,
        descriptor: Union[QueryDescriptor, Mapping[str, Any], None] = None,
    ) -> Optional[PagedResult]:
        """Fetch one page of records matching ``primary_key`` and the filters.

        ``descriptor`` accepts a ``QueryDescriptor`` or the equivalent
        mapping (``rawFilters``, ``limit``, ``pageForward``,
        ``sortAscending``, ``startKey``, ``includeTotal``, ``index``,
        ``select``).
        """
        q = self._descriptor(descriptor)
        params = self.build_query_params(primary_key, table, q)
        retrieve_total = q.include_total

        if q.wants_last_page:
            # Walk from the other end of the index
            params["ScanIndexForward"] = not params["ScanIndexForward"]
            retrieve_total = True
        elif q.start_key is not None:
            params["ExclusiveStartKey"] = q.start_key

        logger.debug("query params: %s", params)

        tasks = [asyncio.ensure_future(self._execute("query", params))]
        if retrieve_total:
            tasks.append(asyncio.ensure_future(self.get_total_count(params)))

        # Under reject_on_fail both tasks raise StoreError, otherwise they
        # return None.  A failure cancels whichever task is still running.
        try:
            responses = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        page = responses[0]
        if page is None:
            # swallowed failure
            return None

        result = PagedResult.from_store_response(copy.deepcopy(page))

        if len(responses) > 1 and responses[1] is not None:
            result.total_count = responses[1]

        if not q.page_forward or q.wants_last_page:
            result.items.reverse()

        if q.wants_last_page:
            self._trim_last_page(result, q.limit)

        return result

    @staticmethod
    def _trim_last_page(result: PagedResult, limit: int) -> None:
        """Cut a reversed page down to the final page of a forward walk.

        Only a full page is trimmed.  A short page already is the whole tail,
        either because fewer than ``limit`` records exist or because the
        filter dropped some of the ``limit`` records read.
        """
        if result.total_count is not None:
            remainder = result.total_count % limit if len(result.items) == limit else 0
            if remainder:
                del result.items[:remainder]
            logger.info(
                "last page: total=%d limit=%d, dropped %d leading items",
                result.total_count, limit, remainder,
            )
        # nothing comes after the last page
        result.continuation_cursor = None

    # ---------------------- TOTAL COUNT ----------------------

    async def get_total_count(
        self,
        params: Mapping[str, Any],
        start_count: int = 0,
    ) -> Optional[int]:
        """Count every record matching ``params``.

        ``params`` are regular query params; ``Limit`` is dropped and
        ``Select=COUNT`` forced.  DynamoDB caps each COUNT response at 1 MB
        of scanned data, so the query is repeated from each
        ``LastEvaluatedKey`` until none is returned.  ``start_count`` is the
        count carried over from earlier pages; when it is 0 the walk starts
        from the beginning of the index.
        """
        total = start_count or 0
        count_params = {**params, "Select": COUNT_SELECT}
        count_params.pop("Limit", None)

        if total == 0:
            count_params.pop("ExclusiveStartKey", None)

        pages = 0
        try:
            while True:
                if self.max_count_pages and pages >= self.max_count_pages:
                    logger.warning(
                        "count for %s hit the %d page bound",
                        count_params.get("TableName"), self.max_count_pages,
                    )
                    raise CountLimitExceeded(self.max_count_pages, total)

                response = await self.adapter.query(dict(count_params))
                pages += 1
                total += response.get("Count", 0)

                if not response.get("LastEvaluatedKey"):
                    break
                count_params["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except Exception as exc:
            return self._handle_failure("count", exc)

        logger.debug("counted %d records in %d pages", total, pages)
        return total

    async def close(self) -> None:
        """Release the adapter's connection, if it holds one."""
        close = getattr(self.adapter, "close", None)
        if close is not None:
            await close()
