"""Tests for the server-side function registry."""

from __future__ import annotations

import pytest

from ashen.backend import FunctionRegistry
from ashen.core.errors import BackendError


def _make_registry() -> FunctionRegistry:
    functions = FunctionRegistry()

    @functions.register("echo")
    def echo(body):
        return {"got": body}

    @functions.register("broken")
    def broken(body):
        raise KeyError("missing")

    @functions.register("wrong-shape")
    def wrong_shape(body):
        return ["not", "a", "dict"]

    return functions


class TestFunctionRegistry:
    def test_names(self):
        assert _make_registry().names() == ["broken", "echo", "wrong-shape"]

    def test_invoke(self):
        assert _make_registry().invoke("echo", {"a": 1}) == {"got": {"a": 1}}

    def test_invoke_without_body(self):
        assert _make_registry().invoke("echo") == {"got": {}}

    def test_body_is_copied(self):
        body = {"a": 1}
        result = _make_registry().invoke("echo", body)
        result["got"]["a"] = 2
        assert body == {"a": 1}

    def test_unknown_function(self):
        with pytest.raises(BackendError, match="not deployed"):
            _make_registry().invoke("ui-visual-inspector")

    def test_handler_error_wrapped(self):
        with pytest.raises(BackendError, match="broken"):
            _make_registry().invoke("broken")

    def test_non_dict_result(self):
        with pytest.raises(BackendError, match="expected dict"):
            _make_registry().invoke("wrong-shape")

    def test_decorator_returns_function(self):
        functions = FunctionRegistry()

        def handler(body):
            return {}

        assert functions.register("x")(handler) is handler
