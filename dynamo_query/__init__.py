"""Expression compiler and keyset pagination engine for DynamoDB."""

from .attribute_normalizer import (
    AttributeNormalizer,
    Bare,
    Tagged,
    normalize_condition,
    normalize_data_values,
    normalize_expression_attribute,
    normalize_group,
)
from .errors import (
    CountLimitExceeded,
    DynamoQueryError,
    InvalidOperatorValue,
    MissingName,
    MissingValue,
    StoreError,
    UnsupportedConjunction,
    UnsupportedOperator,
    ValidationError,
)
from .expression_compiler import (
    MISSING,
    build_condition_expression,
    build_create_condition,
    build_expression_placeholders,
    build_update_expression,
    value_is_empty,
)
from .models import PagedResult, QueryDescriptor
from .query_engine import DocumentStore
from .store_adapter import BotoStoreAdapter, StoreAdapter

__version__ = "1.0.0"
