"""Per-dispatch context and the narrow collaborator interfaces it wraps.

The transport layer builds a ``RequestData``; the session store, config
accessor and renderer are supplied by the host application. ``ActionContext``
ties them together for exactly one dispatch attempt.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable
from urllib.parse import urlsplit

from actionflow.domain.signals import Route

if TYPE_CHECKING:
    from actionflow.observability.debug import DebugCollector
    from actionflow.validation.registry import ContractRegistry

_MISSING = object()


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class ConfigAccessor(Protocol):
    """Read-only extended configuration lookup."""

    def xtra(self, namespace: str, key: str | None = None, default: Any = None) -> Any: ...


@runtime_checkable
class SessionStore(Protocol):
    """Externally synchronized session storage.

    Every call may block on I/O. Sequences of calls are not atomic.
    """

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def unset(self, key: str) -> None: ...


@runtime_checkable
class RedirectSink(Protocol):
    def redirect(self, url: str, *, permanent: bool = False) -> None: ...


@runtime_checkable
class Renderer(Protocol):
    """Serializes the final output of a dispatch.

    ``data`` is the only render source: it has passed every deferred output
    contract. The response mapping may still hold unchecked context variables.
    """

    def render(self, ctx: ActionContext, data: Any) -> None: ...


class MemorySession:
    """Dictionary-backed session store for tests and CLI runs."""

    __slots__ = ("_data",)

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def unset(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def as_dict(self) -> dict[str, Any]:
        return dict(self._data)


# ---------------------------------------------------------------------------
# Request view
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """One uploaded file as delivered by the transport layer."""

    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(slots=True)
class RequestData:
    """Request view handed to the dispatcher.

    ``query`` and ``form`` hold GET and POST parameters. ``payload`` is filled
    by payload checks with the validated (JSON-decoded) body.
    """

    method: str = "GET"
    url: str = "/"
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    form: Mapping[str, Any] = field(default_factory=dict)
    body: bytes = b""
    files: Mapping[str, Any] = field(default_factory=dict)
    secure: bool = False
    server_name: str = "localhost"
    payload: Any = None

    def __post_init__(self) -> None:
        self.method = self.method.strip().upper()
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        self.headers = {str(key).lower(): str(value) for key, value in self.headers.items()}
        self.query = dict(self.query)
        self.form = dict(self.form)
        self.files = dict(self.files)

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    @property
    def referer(self) -> str | None:
        value = self.header("referer")
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON; raises ``ValueError`` on malformed input."""

        return json.loads(self.body.decode("utf-8"))

    def replace_query(self, values: Mapping[str, Any]) -> None:
        self.query = dict(values)

    def replace_form(self, values: Mapping[str, Any]) -> None:
        self.form = dict(values)

    def replace_files(self, values: Mapping[str, Any]) -> None:
        self.files = dict(values)


# ---------------------------------------------------------------------------
# Response sink
# ---------------------------------------------------------------------------


class Response(MutableMapping[str, Any]):
    """Outgoing side of one dispatch: template variables, redirect, output checks.

    Template variables double as the context variables policies read
    (``redirect_var``, ``currentUser`` ...). ``data`` is what a renderer
    serializes; it defaults to the template variables themselves and is
    replaced by the coerced value once output contracts have run.
    """

    def __init__(self, variables: Mapping[str, Any] | None = None) -> None:
        self._variables: dict[str, Any] = dict(variables or {})
        self._redirect_url: str | None = None
        self._redirect_permanent = False
        self._output_contracts: list[object] = []
        self._data: Any = _MISSING
        self.template: str | None = None
        self.status_code: int | None = None

    # MutableMapping protocol over template variables.
    def __getitem__(self, key: str) -> Any:
        return self._variables[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._variables[key] = value

    def __delitem__(self, key: str) -> None:
        del self._variables[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    def redirect(self, url: str, *, permanent: bool = False) -> None:
        self._redirect_url = url
        self._redirect_permanent = permanent

    @property
    def redirect_url(self) -> str | None:
        return self._redirect_url

    @property
    def redirect_permanent(self) -> bool:
        return self._redirect_permanent

    @property
    def data(self) -> Any:
        if self._data is _MISSING:
            return self._variables
        return self._data

    @data.setter
    def data(self, value: Any) -> None:
        self._data = value

    def add_output_contract(self, contract: object) -> None:
        self._output_contracts.append(contract)

    @property
    def output_contracts(self) -> tuple[object, ...]:
        return tuple(self._output_contracts)


# ---------------------------------------------------------------------------
# Action context
# ---------------------------------------------------------------------------


class ActionContext:
    """Everything a policy, hook or action sees during one dispatch attempt."""

    __slots__ = ("config", "contracts", "debug", "request", "response", "route", "session")

    def __init__(
        self,
        *,
        route: Route,
        request: RequestData,
        session: SessionStore,
        config: ConfigAccessor,
        debug: DebugCollector,
        response: Response | None = None,
        contracts: ContractRegistry | None = None,
    ) -> None:
        self.route = route
        self.request = request
        self.session = session
        self.config = config
        self.debug = debug
        self.response = response if response is not None else Response()
        self.contracts = contracts

    @property
    def controller(self) -> str:
        return self.route.controller

    @property
    def action(self) -> str:
        return self.route.action

    @property
    def method(self) -> str:
        return self.request.method

    def lookup(self, name: str | None) -> tuple[Any, bool]:
        """Return ``(value, found)`` for a context variable."""

        if not name or name not in self.response:
            return None, False
        return self.response[name], True

    def get_var(self, name: str | None, default: Any = None) -> Any:
        value, found = self.lookup(name)
        return value if found else default

    def has_var(self, name: str | None) -> bool:
        return self.lookup(name)[1]

    def set_var(self, name: str, value: Any) -> None:
        self.response[name] = value

    def xtra(self, namespace: str, key: str | None = None, default: Any = None) -> Any:
        return self.config.xtra(namespace, key, default)


__all__ = [
    "ActionContext",
    "ConfigAccessor",
    "MemorySession",
    "RedirectSink",
    "Renderer",
    "RequestData",
    "Response",
    "SessionStore",
    "UploadedFile",
]
