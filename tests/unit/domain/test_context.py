"""
actionflow — unit tests for the per-dispatch context objects

File: tests/unit/domain/test_context.py
Last updated: 2026-10-19

Purpose
- Validate ``RequestData``, ``Response``, ``MemorySession`` and ``ActionContext`` behaviour.

What this test file should cover
- Header normalization, referer/path/text/json helpers.
- Response variables, redirects, data defaulting and output contracts.
- Context variable lookup distinguishes missing from falsy values.
"""

from __future__ import annotations

import pytest

from actionflow.config.accessor import Config
from actionflow.domain.context import (
    ActionContext,
    ConfigAccessor,
    MemorySession,
    RequestData,
    Response,
    SessionStore,
    UploadedFile,
)
from actionflow.domain.signals import Route
from actionflow.observability.debug import DebugCollector


def test_request_normalizes_method_headers_and_body() -> None:
    request = RequestData(method=" post ", headers={"Referer": " https://a.test/x "}, body="é")

    assert request.method == "POST"
    assert request.header("REFERER") == " https://a.test/x "
    assert request.referer == "https://a.test/x"
    assert request.body == "é".encode()
    assert request.text == "é"


def test_request_path_and_json() -> None:
    request = RequestData(url="https://a.test/shop/cart?x=1", body=b'{"a": 1}')

    assert request.path == "/shop/cart"
    assert RequestData(url="https://a.test").path == "/"
    assert request.json() == {"a": 1}
    with pytest.raises(ValueError):
        RequestData(body=b"{oops").json()


def test_request_replacement_copies_values() -> None:
    source = {"id": 1}
    request = RequestData()
    request.replace_query(source)
    source["id"] = 2

    assert request.query == {"id": 1}


def test_uploaded_file_size() -> None:
    assert UploadedFile("a.txt", b"abc").size == 3


def test_response_variables_redirect_and_data() -> None:
    response = Response({"title": "Cart"})
    response["items"] = []

    assert dict(response) == {"title": "Cart", "items": []}
    assert response.data is not None and response.data["title"] == "Cart"
    response.data = {"only": True}
    assert response.data == {"only": True}
    assert response.redirect_url is None
    response.redirect("/login", permanent=True)
    assert (response.redirect_url, response.redirect_permanent) == ("/login", True)
    del response["items"]
    assert len(response) == 1


def test_response_output_contracts_accumulate() -> None:
    response = Response()
    response.add_output_contract("a")
    response.add_output_contract("b")

    assert response.output_contracts == ("a", "b")


def test_memory_session_protocol() -> None:
    session = MemorySession({"a": 1})
    session.set("b", 2)
    session.unset("a")
    session.unset("missing")

    assert isinstance(session, SessionStore)
    assert "a" not in session
    assert session.get("b") == 2
    assert session.as_dict() == {"b": 2}


def test_context_variables_distinguish_missing_from_falsy() -> None:
    config = Config()
    ctx = ActionContext(
        route=Route("shop", "index"),
        request=RequestData(method="head"),
        session=MemorySession(),
        config=config,
        debug=DebugCollector("req"),
    )
    ctx.set_var("empty", "")

    assert isinstance(config, ConfigAccessor)
    assert ctx.lookup("empty") == ("", True)
    assert ctx.lookup("missing") == (None, False)
    assert ctx.lookup(None) == (None, False)
    assert ctx.has_var("empty") and not ctx.has_var("missing")
    assert ctx.get_var("missing", "fallback") == "fallback"
    assert (ctx.controller, ctx.action, ctx.method) == ("shop", "index", "HEAD")
    assert ctx.xtra("dispatch", "maxReboots") == 10
    assert ctx.contracts is None
