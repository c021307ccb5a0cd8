"""
Result type shared by the task and session stores.

Every store operation returns either Success(value) or Failure(reason, error)
so callers can react on the return value, while the same failure is also
broadcast through the store's error signal.
"""
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar('T')


@dataclass(frozen=True)
class Success(Generic[T]):
    """A store operation that completed."""

    value: T
    from_cache: bool = False

    @property
    def ok(self):
        return True

    def unwrap_or(self, default):
        return self.value


@dataclass(frozen=True)
class Failure:
    """A store operation that failed, with a human-readable reason."""

    reason: str
    error: Optional[BaseException] = None

    @property
    def ok(self):
        return False

    @property
    def value(self) -> Any:
        return None

    @property
    def is_network_error(self):
        from tasktracker.errors import NetworkError
        return isinstance(self.error, NetworkError)

    def unwrap_or(self, default):
        return default
