from typing import Generic, TypeVar

from streamctl.shared.api.utils import ApiFailure, ApiSuccess

T = TypeVar("T")


class CwOut(ApiSuccess, Generic[T]):
    """Standard API envelope used by public routers."""

    results: T  # type: ignore[valid-type]


class CwFailureOut(ApiFailure, Generic[T]):
    """Failure envelope that still carries the operation's result (rollback state, warnings)."""

    results: T | None = None  # type: ignore[valid-type]
