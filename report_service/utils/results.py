"""Value-or-failure wrapper for best-effort pipeline steps"""
import logging
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Callable, Awaitable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StepResult(Generic[T]):
    """
    Outcome of a step whose failure must not abort the pipeline.

    Exactly one of ``value`` and ``error`` is meaningful. Call sites decide
    which default to substitute when the step failed.
    """
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "StepResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "StepResult[T]":
        return cls(error=error)

    def value_or(self, default: T, step: str = "step") -> T:
        """Return the value, or log the failure and return ``default``"""
        if self.ok:
            return self.value
        logger.warning(f"{step} failed, using default: {self.error}")
        return default


def run_step(step: str, func: Callable[..., T], *args, **kwargs) -> StepResult[T]:
    """Run a synchronous step and capture any failure"""
    try:
        return StepResult.success(func(*args, **kwargs))
    except Exception as e:
        logger.error(f"{step} raised {type(e).__name__}: {e}")
        return StepResult.failure(f"{type(e).__name__}: {e}")


async def run_async_step(step: str, coro: Awaitable[T]) -> StepResult[T]:
    """Await a step and capture any failure"""
    try:
        return StepResult.success(await coro)
    except Exception as e:
        logger.error(f"{step} raised {type(e).__name__}: {e}")
        return StepResult.failure(f"{type(e).__name__}: {e}")
