"""
Attribute-to-DynamoDB expression compiler.

Every attribute name and path segment is replaced by a ``#`` alias and every
value by a ``:`` placeholder, so reserved words and odd characters never
reach the expression string itself:

  - plain attribute ``status``            → ``#status`` / ``:status``
  - dotted path ``meta.owner`` on ``own`` → ``#own_meta.#own_owner`` / ``:own``
  - list value on ``tags``                → ``:tags0``, ``:tags1``, …

Aliases of path segments are prefixed with the attribute's own name, so two
attributes that share a segment (``a.value`` and ``b.value``) never collide.

Attributes are the canonical dicts produced by ``attribute_normalizer``.
"""

from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .errors import InvalidOperatorValue, UnsupportedOperator
from .logger import logger


class _Missing:
    """Absence sentinel: the attribute has no value at all."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

NAME_CHAR = "#"
VALUE_CHAR = ":"

# Operators rendered as ``#alias <op> :name``
SIMPLE_OPERATORS = frozenset({"=", "<", ">", "<=", ">="})

# Operators whose value must be a list
SEQUENCE_OPERATORS = frozenset({"in", "notin", "between"})


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def value_is_empty(value: Any) -> bool:
    """Whether DynamoDB would refuse to store ``value``.

    Missing values, empty strings and empty lists are empty.  ``None``,
    ``0``, ``False`` and empty maps are real values.
    """
    if value is MISSING:
        return True
    if isinstance(value, str):
        return value == ""
    return _is_sequence(value) and len(value) < 1


# ---------------------- ALIASES ----------------------


def _alias_path(attribute: Mapping[str, Any]) -> str:
    """Aliased document path of an attribute, without the leading ``#``."""
    name = attribute["name"]
    if attribute.get("path") is None:
        return str(name)
    return f".{NAME_CHAR}".join(
        f"{name}_{segment}" for segment in str(attribute["path"]).split(".")
    )


# ---------------------- UPDATE EXPRESSIONS ----------------------


def build_update_expression(attributes: Sequence[Mapping[str, Any]]) -> str:
    """Build a ``SET`` update expression, one clause per attribute."""
    clauses = [
        f"{NAME_CHAR}{_alias_path(attribute)} = {VALUE_CHAR}{attribute['name']}"
        for attribute in attributes
    ]
    return "SET " + ", ".join(clauses)


def build_create_condition(primary_key: Mapping[str, Any]) -> str:
    """Guard that makes a put fail when the record already exists."""
    return " OR ".join(
        f"attribute_not_exists({NAME_CHAR}{name})" for name in primary_key
    )


# ---------------------- PLACEHOLDERS ----------------------


def build_expression_placeholders(
    attributes: Iterable[Mapping[str, Any]],
    substitution_char: str,
) -> Dict[str, Any]:
    """Build ``ExpressionAttributeNames`` (``#``) or ``ExpressionAttributeValues`` (``:``).

    The name pass maps one alias to each path segment, or to the bare
    attribute name when there is no path.  The value pass maps one
    placeholder to each scalar value and one indexed placeholder to each
    element of a list value, keeping element order.
    """
    if substitution_char not in (NAME_CHAR, VALUE_CHAR):
        raise ValueError(
            f"Unsupported substitution character {substitution_char!r}; "
            f"use '{NAME_CHAR}' or '{VALUE_CHAR}'"
        )

    placeholders: Dict[str, Any] = {}

    for attribute in attributes:
        name = attribute["name"]

        if substitution_char == NAME_CHAR:
            if attribute.get("path") is not None:
                for segment in str(attribute["path"]).split("."):
                    placeholders[f"{NAME_CHAR}{name}_{segment}"] = str(segment)
            else:
                placeholders[f"{NAME_CHAR}{name}"] = str(name)
        elif attribute.get("operator") == "exists":
            # rendered as attribute_exists()/attribute_not_exists(), no value
            continue
        elif _is_sequence(attribute.get("value")):
            for i, element in enumerate(attribute["value"]):
                placeholders[f"{VALUE_CHAR}{name}{i}"] = element
        else:
            placeholders[f"{VALUE_CHAR}{name}"] = attribute.get("value")

    return placeholders


# ---------------------- CONDITION EXPRESSIONS ----------------------


def _build_clause(condition: Mapping[str, Any]) -> str:
    """Render a single condition, without the surrounding parentheses."""
    name = condition["name"]
    operator = condition.get("operator", "=")
    value = condition.get("value")
    path = f"{NAME_CHAR}{_alias_path(condition)}"
    placeholder = f"{VALUE_CHAR}{name}"

    prefix = "NOT " if condition.get("negate") else ""

    if operator in SIMPLE_OPERATORS:
        return f"{prefix}{path} {operator} {placeholder}"

    if operator in SEQUENCE_OPERATORS:
        minimum = 2 if operator == "between" else 1
        if not _is_sequence(value) or len(value) < minimum:
            raise InvalidOperatorValue(operator)

    if operator == "!=":
        # no native != in condition syntax
        return f"{prefix}NOT {path} = {placeholder}"

    if operator in ("in", "notin"):
        listed = ", ".join(f"{placeholder}{i}" for i in range(len(value)))
        negation = "NOT " if operator == "notin" else ""
        return f"{prefix}{negation}{path} IN ({listed})"

    if operator == "between":
        if len(value) > 2:
            logger.warning(
                "between condition '%s' has %d values; only the first two are used",
                name, len(value),
            )
        return f"{prefix}{path} BETWEEN {placeholder}0 AND {placeholder}1"

    if operator == "contains":
        return f"{prefix}contains({path}, {placeholder})"

    if operator == "startswith":
        return f"{prefix}begins_with({path}, {placeholder})"

    if operator == "exists":
        function = "attribute_exists" if value else "attribute_not_exists"
        return f"{prefix}{function}({path})"

    raise UnsupportedOperator(operator)


def build_condition_expression(
    conditions: Sequence[Mapping[str, Any]],
    group_operator: str = "AND",
) -> str:
    """Join one parenthesised clause per condition with ``group_operator``.

    More than one condition gets one extra pair of parentheses around the
    whole join, so the result can be combined with other expressions as a
    single term.
    """
    group_operator = group_operator or "AND"
    clauses: List[str] = [f"({_build_clause(c)})" for c in conditions]
    expression = f" {group_operator} ".join(clauses)

    if len(clauses) > 1:
        expression = f"({expression})"

    return expression
