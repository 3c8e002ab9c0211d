"""
Request / response models for the paginated query engine.

Both models accept the camelCase spellings used by callers that build
descriptors as JSON (``pageForward``, ``startKey``, …) as well as the
snake_case field names.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_LIMIT

LAST_PAGE = "last"

Cursor = Dict[str, Any]


class QueryDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    raw_filters: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        alias="rawFilters",
        description="Filters keyed by name; each entry holds a 'condition' or a 'group'",
    )
    limit: int = Field(default=DEFAULT_LIMIT, gt=0, description="Results per page")
    page_forward: bool = Field(default=True, alias="pageForward")
    sort_ascending: bool = Field(default=True, alias="sortAscending")
    start_key: Optional[Union[Literal["last"], Cursor]] = Field(
        default=None,
        alias="startKey",
        description="Exclusive start cursor, or 'last' to jump to the final page",
    )
    include_total: bool = Field(default=False, alias="includeTotal")
    index: Optional[str] = None
    select: Optional[str] = Field(
        default=None,
        description="Passed through as the store's Select parameter",
    )

    @property
    def wants_last_page(self) -> bool:
        return self.start_key == LAST_PAGE


class PagedResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[Dict[str, Any]] = Field(default_factory=list)
    continuation_cursor: Optional[Cursor] = Field(
        default=None,
        alias="continuationCursor",
    )
    total_count: Optional[int] = Field(default=None, alias="totalCount")
    count: Optional[int] = None
    scanned_count: Optional[int] = Field(default=None, alias="scannedCount")

    @classmethod
    def from_store_response(cls, response: Dict[str, Any]) -> "PagedResult":
        """Build a result from a raw DynamoDB query response."""
        return cls(
            items=list(response.get("Items") or []),
            continuation_cursor=response.get("LastEvaluatedKey"),
            count=response.get("Count"),
            scanned_count=response.get("ScannedCount"),
        )
