"""Named server-side procedures invoked as black boxes.

Handlers take a JSON-like ``body`` dict and return a JSON-like summary::

    functions = FunctionRegistry()

    @functions.register("learning-engine")
    def learn(body):
        return {"learned": 3}

    functions.invoke("learning-engine", {})
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ashen.core.errors import BackendError

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], dict[str, Any]]


class FunctionRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str) -> Callable[[Handler], Handler]:
        def decorator(fn: Handler) -> Handler:
            self._handlers[name] = fn
            return fn

        return decorator

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def invoke(self, name: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        handler = self._handlers.get(name)
        if handler is None:
            raise BackendError(f"Function {name!r} is not deployed")
        logger.info("Invoking function %s", name)
        try:
            result = handler(dict(body or {}))
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"Function {name!r} failed: {e}") from e
        if not isinstance(result, dict):
            raise BackendError(f"Function {name!r} returned {type(result).__name__}, expected dict")
        return result
