"""
Error taxonomy.

``ValidationError`` subclasses are raised synchronously while a request is
being compiled, before anything is sent to the store, and always reach the
caller.  ``StoreError`` wraps anything the store adapter raised and is
subject to the engine's ``reject_on_fail`` policy.
"""


class DynamoQueryError(Exception):
    """Base class for every error raised by dynamo_query."""


# ---------------------- VALIDATION ----------------------


class ValidationError(DynamoQueryError, ValueError):
    """A request could not be compiled into a store expression."""


class MissingName(ValidationError):
    def __init__(self) -> None:
        super().__init__("Attribute is missing a name.")


class MissingValue(ValidationError):
    def __init__(self, name: str) -> None:
        super().__init__(f'Attribute "{name}" is missing a value.')
        self.name = name


class UnsupportedConjunction(ValidationError):
    def __init__(self, conjunction, allowed) -> None:
        super().__init__(
            f"Unsupported group conjunction: {conjunction}. "
            f"Allowed conjunctions: {', '.join(allowed)}."
        )
        self.conjunction = conjunction


class UnsupportedOperator(ValidationError):
    def __init__(self, operator) -> None:
        super().__init__(f"Unsupported operator: {operator}")
        self.operator = operator


class InvalidOperatorValue(ValidationError):
    def __init__(self, operator: str) -> None:
        super().__init__(
            f'Value must be an array when using the "{operator}" operator.'
        )
        self.operator = operator


# ---------------------- STORE ----------------------


class StoreError(DynamoQueryError):
    """The store adapter failed to execute a request."""

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation


class CountLimitExceeded(StoreError):
    """Total-count aggregation needed more COUNT pages than allowed."""

    def __init__(self, max_pages: int, partial_count: int) -> None:
        super().__init__(
            f"Total count aggregation stopped after {max_pages} pages "
            f"(counted {partial_count} so far).",
            operation="count",
        )
        self.max_pages = max_pages
        self.partial_count = partial_count
