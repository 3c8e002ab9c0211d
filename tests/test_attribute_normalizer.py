import pytest

from dynamo_query import (
    MISSING,
    AttributeNormalizer,
    Bare,
    MissingName,
    MissingValue,
    Tagged,
    UnsupportedConjunction,
    normalize_condition,
    normalize_data_values,
    normalize_expression_attribute,
    normalize_group,
)
from dynamo_query.attribute_normalizer import resolve_raw


def test_resolve_raw_bare_and_tagged():
    assert resolve_raw("abc") == Bare("abc")
    assert resolve_raw({"other": 1}) == Bare({"other": 1})
    assert isinstance(resolve_raw({"value": 1, "path": "a.b"}), Tagged)


def test_normalize_expression_attribute():
    data = {
        "some": "simple value",
        "someOther": {"value": "more complex value"},
    }
    result = [normalize_expression_attribute(value, name) for name, value in data.items()]
    assert result == [
        {"name": "some", "value": "simple value"},
        {"name": "someOther", "value": "more complex value"},
    ]


def test_normalize_expression_attribute_keeps_path():
    result = normalize_expression_attribute({"value": 1, "path": "a.b"}, "ab")
    assert result == {"name": "ab", "value": 1, "path": "a.b"}


def test_normalize_expression_attribute_without_name():
    with pytest.raises(MissingName) as err:
        normalize_expression_attribute({})
    assert str(err.value) == "Attribute is missing a name."


@pytest.mark.parametrize("raw", [MISSING, {"value": MISSING}])
def test_normalize_expression_attribute_without_value(raw):
    with pytest.raises(MissingValue) as err:
        normalize_expression_attribute(raw, "noValue")
    assert str(err.value) == 'Attribute "noValue" is missing a value.'


def test_explicit_none_is_a_value():
    assert normalize_expression_attribute(None, "nothing") == {"name": "nothing", "value": None}


def test_normalize_condition():
    data = [
        ("defaultOperator", {"value": "equals"}),
        ("allProps", {
            "name": "overriddenName",
            "path": "nested.value",
            "operator": "between",
            "value": [1, 2, 3],
            "memberOf": "someGroup",
            "negate": 1,
        }),
        ("disallowedProps", {
            "you": "cannot",
            "see": "any of",
            "these": "properties",
            "value": "you can see me",
        }),
    ]
    result = [normalize_condition(raw, name) for name, raw in data]
    assert result == [
        {"name": "defaultOperator", "value": "equals", "operator": "="},
        {
            "name": "overriddenName",
            "path": "nested.value",
            "operator": "between",
            "value": [1, 2, 3],
            "memberOf": "someGroup",
            "negate": 1,
        },
        {"name": "disallowedProps", "value": "you can see me", "operator": "="},
    ]


def test_normalize_condition_from_bare_value():
    assert normalize_condition("123456", "userId") == {
        "name": "userId",
        "value": "123456",
        "operator": "=",
    }


def test_normalize_group():
    data = [
        ("defaultConjunction", {}),
        ("andConjunction", {"conjunction": "AND"}),
        ("orConjunction", {"conjunction": "OR"}),
    ]
    assert [normalize_group(raw, name) for name, raw in data] == [
        {"name": "defaultConjunction", "conjunction": "AND"},
        {"name": "andConjunction", "conjunction": "AND"},
        {"name": "orConjunction", "conjunction": "OR"},
    ]


def test_normalize_group_unsupported_conjunction():
    with pytest.raises(UnsupportedConjunction) as err:
        normalize_group({"conjunction": "junctionwhatsyourfunction"}, "unsupportedConjunction")
    assert str(err.value) == (
        "Unsupported group conjunction: junctionwhatsyourfunction. "
        "Allowed conjunctions: AND, OR."
    )


def test_normalize_data_values_drops_empty_values():
    data = {
        "id": "123",
        "attributes": {"userId": "345", "nestedMap": {"someOther": "thing"}},
        "skipMe": MISSING,
        "blank": "",
        "noTags": [],
        "zero": 0,
    }
    assert normalize_data_values(data) == [
        {"name": "id", "value": "123"},
        {"name": "attributes", "value": {"userId": "345", "nestedMap": {"someOther": "thing"}}},
        {"name": "zero", "value": 0},
    ]


def test_normalizer_can_be_replaced():
    class UpperNames(AttributeNormalizer):
        def normalize_expression_attribute(self, raw_value=MISSING, name=None):
            attribute = super().normalize_expression_attribute(raw_value, name)
            attribute["name"] = attribute["name"].upper()
            return attribute

    assert UpperNames().normalize_condition("x", "status") == {
        "name": "STATUS",
        "value": "x",
        "operator": "=",
    }
