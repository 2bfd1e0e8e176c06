"""Retry policy for authentication attempts."""

from collections.abc import Callable
from dataclasses import dataclass, field

from pymongo.errors import ConnectionFailure, ExecutionTimeout

from dndtracker.config import Config
from dndtracker.errors import TransientFailureError

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (TransientFailureError, ConnectionFailure, ExecutionTimeout, OSError)


def exponential_backoff(base: float = 0.1, cap: float = 1.0) -> Callable[[int], float]:
    """Delay after the given 1-based attempt: base, 2*base, 4*base ... capped."""

    def backoff(attempt: int) -> float:
        return min(base * 2 ** (attempt - 1), cap)

    return backoff


def is_transient_error(error: BaseException) -> bool:
    return isinstance(error, TRANSIENT_ERRORS)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=exponential_backoff)
    is_retryable: Callable[[BaseException], bool] = is_transient_error

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay(self, attempt: int) -> float:
        return self.backoff(attempt)

    @classmethod
    def from_config(cls, config: Config) -> "RetryPolicy":
        return cls(
            max_attempts=config.auth_max_attempts,
            backoff=exponential_backoff(config.auth_backoff_base, config.auth_backoff_cap),
        )
