"""
actionflow — unit tests for the Check policy

File: tests/unit/policies/test_check_policy.py
Last updated: 2026-10-19

Purpose
- Validate request checks against contracts for each target and their failure handling.

What this test file should cover
- GET/POST maps replaced with coerced values on success.
- PAYLOAD: JSON bodies and raw-text leaf contracts.
- FILES: uploads validated as binaries.
- OUTPUT: contracts deferred to the render phase.
- On failure: flash of raw input under ``__<flash_var>`` and redirect, or the error propagates.
"""

from __future__ import annotations

import pytest

from actionflow.domain.context import MemorySession, UploadedFile
from actionflow.domain.errors import ContractSyntaxError, ValidationError
from actionflow.domain.signals import CONTINUE, HALT
from actionflow.policies import Check, CheckTarget
from actionflow.validation import ContractRegistry, Leaf

from . import make_context


def test_params_check_coerces_query_values() -> None:
    ctx = make_context(query={"id": "7"})

    assert Check.params({"id": "int; min:1"}).apply(ctx) == CONTINUE
    assert ctx.request.query == {"id": 7}


def test_params_check_failure_reports_field_and_reason() -> None:
    ctx = make_context(query={"id": "0"})

    with pytest.raises(ValidationError) as excinfo:
        Check.params({"id": "int; min:1"}).apply(ctx)

    assert (excinfo.value.field, excinfo.value.reason) == ("id", "min")
    assert ctx.request.query == {"id": "0"}


def test_post_check_drops_undeclared_fields_non_strict() -> None:
    ctx = make_context(method="POST", form={"email": " a@b.io ", "csrf": "t"})

    Check.post({"email": "email"}).apply(ctx)

    assert ctx.request.form == {"email": "a@b.io"}


def test_strict_check_rejects_extra_fields() -> None:
    ctx = make_context(form={"email": "a@b.io", "csrf": "t"})

    with pytest.raises(ValidationError) as excinfo:
        Check.post({"email": "email"}, strict=True).apply(ctx)
    assert excinfo.value.reason == "extra"


def test_failure_flashes_raw_input_and_redirects() -> None:
    session = MemorySession()
    ctx = make_context(form={"age": "old"}, session=session, security={"checkRedirect": "/form"})

    assert Check.post({"age": "int"}, flash_var="signup").apply(ctx) == HALT
    assert ctx.response.redirect_url == "/form"
    assert session.get("__signup") == {"age": "old"}


def test_failure_can_redirect_back_to_referer() -> None:
    ctx = make_context(query={"page": "x"}, headers={"Referer": "https://app.example.com/list"})

    Check.get({"page": "int"}, redirect_referer=True).apply(ctx)

    assert ctx.response.redirect_url == "https://app.example.com/list"
    assert ctx.session.get("__form") == {"page": "x"}


def test_payload_json_body_is_validated_into_request_payload() -> None:
    ctx = make_context(method="POST", body=b'{"name": "Ada", "age": "36"}')

    Check.payload({"name": "string", "age": "int"}).apply(ctx)

    assert ctx.request.payload == {"name": "Ada", "age": 36}


def test_payload_invalid_json() -> None:
    ctx = make_context(method="POST", body=b"{nope")

    with pytest.raises(ValidationError) as excinfo:
        Check.payload({"name": "string"}).apply(ctx)
    assert (excinfo.value.field, excinfo.value.reason) == ("", "json")


def test_payload_leaf_contract_validates_raw_text() -> None:
    ctx = make_context(method="POST", body="hello-world")

    Check.payload("slug").apply(ctx)

    assert ctx.request.payload == "hello-world"


def test_payload_failure_flashes_body_text() -> None:
    ctx = make_context(body=b"[1, 2]", security={"redirect": "/back"})

    assert Check.payload({"name": "string"}).apply(ctx) == HALT
    assert ctx.session.get("__form") == "[1, 2]"


def test_files_check_validates_uploads() -> None:
    upload = UploadedFile("avatar.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 8)
    ctx = make_context(files={"avatar": upload})

    Check.files({"avatar": "binary; mime: image; maxLen: 1M"}).apply(ctx)

    assert ctx.request.files["avatar"]["mime"] == "image/png"
    assert ctx.request.files["avatar"]["filename"] == "avatar.png"


def test_files_failure_flashes_file_descriptions_not_content() -> None:
    upload = UploadedFile("notes.txt", b"plain text", "text/plain")
    ctx = make_context(files={"avatar": upload}, security={"redirect": "/upload"})

    assert Check.files({"avatar": "binary; mime: image"}).apply(ctx) == HALT
    assert ctx.session.get("__form") == {
        "avatar": {"filename": "notes.txt", "size": 10, "content_type": "text/plain"}
    }


def test_output_check_defers_contract_to_render_phase() -> None:
    ctx = make_context()
    check = Check.output({"id": "int"})

    assert check.target is CheckTarget.OUTPUT
    assert check.apply(ctx) == CONTINUE
    assert ctx.response.output_contracts == (check.contract,)
    assert ctx.debug.categories() == ["check"]


def test_named_contract_is_resolved_through_context_registry() -> None:
    registry = ContractRegistry({"paging": {"page": "int; default: 1", "size": "int; max: 50; default: 20"}})
    ctx = make_context(query={"size": "10"}, contracts=registry)

    Check.get("paging").apply(ctx)

    assert ctx.request.query == {"page": 1, "size": 10}


def test_structured_contracts_are_built_eagerly() -> None:
    assert Check.get({"id": "int"}).contract.field("id") == Leaf("int")
    with pytest.raises(ContractSyntaxError):
        Check.get({"type": "assoc"})


def test_leaf_contract_on_a_field_map_target_is_a_contract_error() -> None:
    with pytest.raises(ContractSyntaxError):
        Check.get("int").apply(make_context(query={"id": "1"}))
