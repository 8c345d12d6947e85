"""Request validation against contracts: query, form, payload, files, output."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from actionflow.constants import DEFAULT_FLASH_VAR, FLASH_PREFIX, KEY_CHECK_REDIRECT
from actionflow.domain.context import ActionContext, UploadedFile
from actionflow.domain.errors import ValidationError
from actionflow.domain.signals import CONTINUE, Flow
from actionflow.policies.base import PolicyAttribute, redirect_or_raise, resolve_redirect
from actionflow.validation.contract import Leaf, from_structure
from actionflow.validation.engine import coerce_contract, validate, validate_fields

logger = logging.getLogger(__name__)


class CheckTarget(StrEnum):
    GET = "get"
    POST = "post"
    PAYLOAD = "payload"
    FILES = "files"
    OUTPUT = "output"


@dataclass(frozen=True, slots=True)
class Check(PolicyAttribute):
    """Validate one part of the request and replace it with the coerced values.

    A string ``contract`` is first looked up as a named contract in the
    context's registry, then parsed as an expression. ``OUTPUT`` does not
    validate anything yet: it registers the contract for the render phase.
    """

    contract: Any
    target: CheckTarget = CheckTarget.GET
    strict: bool = False
    redirect: str | None = None
    redirect_var: str | None = None
    redirect_referer: bool = False
    flash_var: str = DEFAULT_FLASH_VAR

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", CheckTarget(self.target))
        if not isinstance(self.contract, str):
            object.__setattr__(self, "contract", from_structure(self.contract))

    # -- shorthands ---------------------------------------------------------

    @classmethod
    def params(cls, contract: Any, **options: Any) -> Check:
        return cls(contract, CheckTarget.GET, **options)

    @classmethod
    def get(cls, contract: Any, **options: Any) -> Check:
        return cls(contract, CheckTarget.GET, **options)

    @classmethod
    def post(cls, contract: Any, **options: Any) -> Check:
        return cls(contract, CheckTarget.POST, **options)

    @classmethod
    def payload(cls, contract: Any, **options: Any) -> Check:
        return cls(contract, CheckTarget.PAYLOAD, **options)

    @classmethod
    def files(cls, contract: Any, **options: Any) -> Check:
        return cls(contract, CheckTarget.FILES, **options)

    @classmethod
    def output(cls, contract: Any) -> Check:
        return cls(contract, CheckTarget.OUTPUT)

    # -- evaluation ---------------------------------------------------------

    def apply(self, ctx: ActionContext) -> Flow:
        if self.target is CheckTarget.OUTPUT:
            ctx.response.add_output_contract(self.contract)
            ctx.debug.note("check", "output contract registered")
            return CONTINUE

        try:
            self._validate(ctx)
        except ValidationError as exc:
            logger.warning(
                "Check(%s) rejected %s: field=%s reason=%s", self.target, ctx.route, exc.field, exc.reason
            )
            target = resolve_redirect(
                ctx,
                url=self.redirect,
                var=self.redirect_var,
                config_key=KEY_CHECK_REDIRECT,
                use_referer=self.redirect_referer,
            )
            if target:
                ctx.session.set(FLASH_PREFIX + self.flash_var, self._raw_input(ctx))
            return redirect_or_raise(ctx, exc, target, policy="Check")
        return CONTINUE

    def _validate(self, ctx: ActionContext) -> None:
        request = ctx.request
        contract = coerce_contract(self.contract, ctx.contracts)

        if self.target is CheckTarget.PAYLOAD:
            if isinstance(contract, Leaf):
                request.payload = validate(request.text, contract, self.strict, registry=ctx.contracts)
                return
            try:
                decoded = request.json()
            except ValueError:
                raise ValidationError("", "json", request.text) from None
            request.payload = validate(decoded, contract, self.strict, registry=ctx.contracts)
            return

        if self.target is CheckTarget.GET:
            request.replace_query(validate_fields(request.query, contract, self.strict, registry=ctx.contracts))
        elif self.target is CheckTarget.POST:
            request.replace_form(validate_fields(request.form, contract, self.strict, registry=ctx.contracts))
        else:
            request.replace_files(validate_fields(request.files, contract, self.strict, registry=ctx.contracts))

    def _raw_input(self, ctx: ActionContext) -> Any:
        request = ctx.request
        if self.target is CheckTarget.GET:
            return dict(request.query)
        if self.target is CheckTarget.POST:
            return dict(request.form)
        if self.target is CheckTarget.PAYLOAD:
            return request.text
        return {name: _describe_file(value) for name, value in request.files.items()}


def _describe_file(value: Any) -> Any:
    if isinstance(value, UploadedFile):
        return {"filename": value.filename, "size": value.size, "content_type": value.content_type}
    if isinstance(value, Mapping):
        return {key: item for key, item in value.items() if not isinstance(item, bytes)}
    if isinstance(value, bytes):
        return {"size": len(value)}
    return value


__all__ = ["Check", "CheckTarget"]
