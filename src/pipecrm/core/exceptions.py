"""
Custom exceptions for pipecrm.

Exception Hierarchy:
    PipecrmError (base)
    ├── ValidationError (a mutation would break a data-model invariant)
    ├── NotFoundError (unknown account or checklist item id)
    └── PersistenceError (backing store problems)
        ├── PersistenceTransientError (adapter call failed; never blocking)
        └── CorruptStateError (local cache blob unreadable at load time)

Example:
    >>> from pipecrm.core.exceptions import NotFoundError
    >>> try:
    ...     raise NotFoundError("Account not found", account_id="abc")
    ... except NotFoundError as e:
    ...     print(e.context["account_id"])
    abc
"""


class PipecrmError(Exception):
    """
    Base exception for all pipecrm errors.

    Attributes:
        message: Human-readable error message
        context: Additional context about the failure
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ValidationError(PipecrmError):
    """
    Raised when a mutation violates a data-model invariant.

    Reported synchronously to the caller; the store is left untouched.
    """


class NotFoundError(PipecrmError):
    """
    Raised when a mutation targets a nonexistent account or checklist item.

    Callers may treat this as a no-op; it is never fatal.
    """


class PersistenceError(PipecrmError):
    """
    Base exception for backing store errors.

    Attributes:
        adapter: Name of the adapter that failed (e.g., "local", "remote")
    """

    def __init__(self, adapter: str, message: str, **context: object) -> None:
        super().__init__(message, adapter=adapter, **context)
        self.adapter = adapter

    def __str__(self) -> str:
        return f"[{self.adapter}] {self.message}"


class PersistenceTransientError(PersistenceError):
    """
    Raised when a persistence call fails (network, auth, malformed response).

    The optimistic local state stands; the failure is only reported.
    """


class CorruptStateError(PersistenceError):
    """
    Raised when the local cache blob fails to parse or has the wrong shape.

    The workspace recovers by starting from an empty state.
    """
