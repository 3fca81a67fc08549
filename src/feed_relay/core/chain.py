"""Ordered best-effort lookups.

A ``FallbackChain`` tries each strategy in turn. A strategy returns a value
to stop the chain or None to pass to the next one; exceptions raised by a
strategy are logged and treated as None. When every strategy passes, the
terminal fallback decides the result.
"""

import inspect
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Strategy = Callable[[], Union[Optional[T], Awaitable[Optional[T]]]]


class FallbackChain(Generic[T]):
    """Run strategies in order until one produces a value."""

    def __init__(
        self,
        name: str,
        strategies: list[tuple[str, Strategy]],
        fallback: Callable[[], Optional[T]] = lambda: None,
    ) -> None:
        self.name = name
        self.strategies = strategies
        self.fallback = fallback

    async def run(self) -> Optional[T]:
        for label, strategy in self.strategies:
            try:
                result: Any = strategy()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                logger.warning("Lookup step failed", chain=self.name, step=label, error=str(e))
                continue

            if result is not None:
                logger.debug("Lookup step succeeded", chain=self.name, step=label)
                return result

        return self.fallback()
