"""
Attribute normalizer: the single validation gate in front of the compiler.

Raw filters, primary keys and record data arrive in several shapes:

  - a bare value                 ``"abc"``, ``42``, ``["a", "b"]``
  - a tagged record              ``{"value": "abc", "path": "meta.owner"}``
  - a group declaration          ``{"conjunction": "OR"}``

Each is resolved exactly once into the canonical dict consumed by
``expression_compiler``::

    {"name": ..., "value": ..., "path"?: ..., "operator"?: ...,
     "memberOf"?: ..., "negate"?: ...}

The ``AttributeNormalizer`` instance is what the engine is handed, so a
caller can swap normalization rules without touching the engine.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import MissingName, MissingValue, UnsupportedConjunction
from .expression_compiler import MISSING, value_is_empty

ALLOWED_CONJUNCTIONS = ("AND", "OR")
DEFAULT_CONJUNCTION = "AND"
DEFAULT_OPERATOR = "="

# Keys a normalized condition may carry; anything else is dropped
CONDITION_PROPS = ("name", "path", "operator", "value", "memberOf", "negate")


# ---------------------- RAW INPUT SHAPES ----------------------


@dataclass(frozen=True)
class Bare:
    """A raw input that is the value itself."""

    value: Any


@dataclass(frozen=True)
class Tagged:
    """A raw input that is a record carrying a ``value`` key."""

    record: Mapping[str, Any]


RawAttribute = Union[Bare, Tagged]


def resolve_raw(raw_value: Any) -> RawAttribute:
    """Decide whether ``raw_value`` is a bare value or a tagged record."""
    if isinstance(raw_value, Mapping) and "value" in raw_value:
        return Tagged(raw_value)
    return Bare(raw_value)


# ---------------------- NORMALIZER ----------------------


class AttributeNormalizer:
    """Turns raw attribute, condition and group inputs into canonical dicts."""

    def normalize_expression_attribute(
        self,
        raw_value: Any = MISSING,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        if name is None:
            raise MissingName()

        raw = resolve_raw(raw_value)
        if isinstance(raw, Tagged):
            attribute = dict(raw.record)
        else:
            attribute = {"value": raw.value}

        if attribute["value"] is MISSING:
            raise MissingValue(name)

        return {"name": name, **attribute}

    def normalize_condition(
        self,
        raw_condition: Any,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Normalize a filter or key condition, defaulting the operator to ``=``."""
        condition = {
            "operator": DEFAULT_OPERATOR,
            **self.normalize_expression_attribute(raw_condition, name),
        }
        return {k: condition[k] for k in CONDITION_PROPS if k in condition}

    def normalize_group(
        self,
        raw_group: Optional[Mapping[str, Any]],
        name: str,
    ) -> Dict[str, Any]:
        conjunction = DEFAULT_CONJUNCTION

        if raw_group and "conjunction" in raw_group:
            conjunction = raw_group["conjunction"]
            if conjunction not in ALLOWED_CONJUNCTIONS:
                raise UnsupportedConjunction(conjunction, ALLOWED_CONJUNCTIONS)

        return {"name": name, "conjunction": conjunction}

    def normalize_data_values(self, data: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """One attribute per non-empty top-level value of ``data``.

        Empty values are skipped because the store rejects them on write.
        """
        return [
            self.normalize_expression_attribute({"value": value}, name)
            for name, value in data.items()
            if not value_is_empty(value)
        ]


# ---------------------- MODULE-LEVEL HELPERS ----------------------

default_normalizer = AttributeNormalizer()


def normalize_expression_attribute(
    raw_value: Any = MISSING,
    name: Optional[str] = None,
) -> Dict[str, Any]:
    return default_normalizer.normalize_expression_attribute(raw_value, name)


def normalize_condition(raw_condition: Any, name: Optional[str] = None) -> Dict[str, Any]:
    return default_normalizer.normalize_condition(raw_condition, name)


def normalize_group(raw_group: Optional[Mapping[str, Any]], name: str) -> Dict[str, Any]:
    return default_normalizer.normalize_group(raw_group, name)


def normalize_data_values(data: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return default_normalizer.normalize_data_values(data)
