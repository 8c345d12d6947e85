"""Scalar type validators.

Each validator receives the raw value, the leaf parameters, the effective
strictness and the concrete type name it was looked up under. It returns the
coerced value or raises ``ValidationError`` with an empty field path; the
engine prefixes the path.

Range and length constraints reject out-of-range values in both modes.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import ipaddress
import json
import math
import mimetypes
import re
import unicodedata
from collections.abc import Callable, Mapping
from datetime import date, datetime, time, timezone
from typing import Any, Final
from urllib.parse import urlsplit

from actionflow.domain.context import UploadedFile
from actionflow.domain.errors import ContractSyntaxError, ValidationError

Validator = Callable[[Any, "LeafParams", bool, str], Any]

_FALSE_TOKENS: Final[frozenset[str]] = frozenset({"", "0", "false", "no", "off", "n", "f"})
_SIZE_SUFFIXES: Final[dict[str, int]] = {"K": 1024, "M": 1024**2, "G": 1024**3}
_EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$"
)
_COLOR_PATTERN: Final[re.Pattern[str]] = re.compile(r"^#?(?:[0-9a-fA-F]{3}){1,2}$")
_UUID_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_SLUG_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_HEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[0-9a-fA-F]+$")
_URL_SCHEMES: Final[frozenset[str]] = frozenset({"http", "https", "ftp", "ftps"})

# Leading bytes of common upload formats, checked when no type is declared.
_MAGIC_SIGNATURES: Final[tuple[tuple[bytes, str], ...]] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b", "application/gzip"),
)

_DEFAULT_FORMATS: Final[dict[str, str]] = {
    "date": "%Y-%m-%d",
    "time": "%H:%M:%S",
    "datetime": "%Y-%m-%d %H:%M:%S",
}


class LeafParams:
    """Typed access to a leaf's parameters; malformed values are contract errors."""

    __slots__ = ("_type_name", "_values")

    def __init__(self, values: Mapping[str, Any], type_name: str) -> None:
        self._values = dict(values)
        self._type_name = type_name

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def raw(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def number(self, name: str, *, integral: bool) -> int | float | None:
        value = self._values.get(name)
        if value is None:
            return None
        if isinstance(value, bool):
            raise self._bad(name, value)
        if isinstance(value, (int, float)):
            return int(value) if integral and float(value).is_integer() else value
        try:
            parsed = float(str(value).strip())
        except ValueError as exc:
            raise self._bad(name, value) from exc
        if integral and parsed.is_integer():
            return int(parsed)
        return parsed

    def size(self, name: str) -> int | None:
        """Length parameter; accepts ``K``/``M``/``G`` suffixes (``2M``)."""

        value = self._values.get(name)
        if value is None:
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        text = str(value).strip().upper()
        multiplier = 1
        if text and text[-1] in _SIZE_SUFFIXES:
            multiplier = _SIZE_SUFFIXES[text[-1]]
            text = text[:-1].strip()
        try:
            return int(text) * multiplier
        except ValueError as exc:
            raise self._bad(name, value) from exc

    def items(self, name: str) -> tuple[str, ...] | None:
        value = self._values.get(name)
        if value is None:
            return None
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        if isinstance(value, (list, tuple)):
            return tuple(str(part).strip() for part in value)
        raise self._bad(name, value)

    def pattern(self, name: str) -> re.Pattern[str] | None:
        value = self._values.get(name)
        if value is None or value == "":
            return None
        try:
            return re.compile(str(value))
        except re.error as exc:
            raise ContractSyntaxError(f"{self._type_name}: invalid {name} pattern: {exc}") from exc

    def _bad(self, name: str, value: Any) -> ContractSyntaxError:
        return ContractSyntaxError(f"{self._type_name}: bad {name!r} parameter {value!r}")


def _reject(reason: str, value: Any, message: str | None = None) -> ValidationError:
    return ValidationError("", reason, value, message)


def _check_range(number: int | float, params: LeafParams, *, integral: bool, original: Any) -> None:
    minimum = params.number("min", integral=integral)
    maximum = params.number("max", integral=integral)
    if minimum is not None and number < minimum:
        raise _reject("min", original)
    if maximum is not None and number > maximum:
        raise _reject("max", original)


def _check_length(length: int, params: LeafParams, original: Any) -> None:
    min_len = params.size("minLen")
    max_len = params.size("maxLen")
    if min_len is not None and length < min_len:
        raise _reject("minLen", original)
    if max_len is not None and length > max_len:
        raise _reject("maxLen", original)


def _check_mask(text: str, params: LeafParams, original: Any) -> None:
    mask = params.pattern("mask")
    if mask is not None and mask.search(text) is None:
        raise _reject("mask", original)


def _as_text(value: Any, strict: bool) -> str:
    if isinstance(value, str):
        return value
    if strict:
        raise _reject("type", value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise _reject("type", value)


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def validate_any(value: Any, params: LeafParams, strict: bool, type_name: str) -> Any:
    return value


def validate_null(value: Any, params: LeafParams, strict: bool, type_name: str) -> None:
    if value is None or (not strict and value == ""):
        return None
    raise _reject("type", value)


def validate_bool(value: Any, params: LeafParams, strict: bool, type_name: str) -> bool:
    if isinstance(value, bool):
        result = value
    elif strict:
        raise _reject("type", value)
    elif isinstance(value, str):
        result = value.strip().lower() not in _FALSE_TOKENS
    else:
        result = bool(value)
    if type_name == "true" and result is not True:
        raise _reject("values", value)
    if type_name == "false" and result is not False:
        raise _reject("values", value)
    return result


def validate_int(value: Any, params: LeafParams, strict: bool, type_name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        number = value
    elif strict:
        raise _reject("type", value)
    elif isinstance(value, bool):
        number = int(value)
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise _reject("type", value)
        number = int(value)
    elif isinstance(value, str):
        number = _parse_int_text(value)
    else:
        raise _reject("type", value)

    _check_range(number, params, integral=True, original=value)
    if type_name == "port" and not 1 <= number <= 65535:
        raise _reject("min" if number < 1 else "max", value)
    return number


def _parse_int_text(text: str) -> int:
    stripped = text.strip().replace("_", "")
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        parsed = float(stripped)
    except ValueError:
        raise _reject("type", text) from None
    if not math.isfinite(parsed) or not parsed.is_integer():
        raise _reject("type", text)
    return int(parsed)


def validate_float(value: Any, params: LeafParams, strict: bool, type_name: str) -> float:
    if isinstance(value, bool):
        if strict:
            raise _reject("type", value)
        number = 1.0 if value else 0.0
    elif isinstance(value, (int, float)):
        number = float(value)
    elif strict:
        raise _reject("type", value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace("_", ""))
        except ValueError:
            raise _reject("type", value) from None
    else:
        raise _reject("type", value)
    if not math.isfinite(number):
        raise _reject("type", value)
    _check_range(number, params, integral=False, original=value)
    return number


def validate_string(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    text = _as_text(value, strict)
    _check_length(len(text), params, value)
    _check_mask(text, params, value)
    return text


def validate_email(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    text = _as_text(value, strict)
    if not strict:
        text = text.strip()
    if len(text) > 254 or not _EMAIL_PATTERN.fullmatch(text):
        raise _reject("format", value)
    _check_length(len(text), params, value)
    _check_mask(text, params, value)
    return text


def validate_url(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    text = _as_text(value, strict)
    if not strict:
        text = text.strip()
    try:
        parts = urlsplit(text)
    except ValueError:
        raise _reject("format", value) from None
    if not parts.scheme or not parts.netloc or parts.scheme.lower() not in _URL_SCHEMES:
        raise _reject("format", value)
    schemes = params.items("scheme")
    if schemes is not None and parts.scheme.lower() not in {scheme.lower() for scheme in schemes}:
        raise _reject("scheme", value)
    hosts = params.items("host")
    if hosts is not None and (parts.hostname or "") not in {host.lower() for host in hosts}:
        raise _reject("host", value)
    _check_length(len(text), params, value)
    _check_mask(text, params, value)
    return text


def validate_enum(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    allowed = params.items("values")
    if not allowed:
        raise ContractSyntaxError("enum contract needs a non-empty 'values' parameter")
    text = _as_text(value, strict)
    if not strict:
        text = text.strip()
    if text not in allowed:
        raise _reject("values", value)
    return text


def validate_color(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    if not isinstance(value, str):
        raise _reject("type", value)
    text = value if strict else value.strip()
    if not _COLOR_PATTERN.fullmatch(text):
        raise _reject("format", value)
    digits = text.lstrip("#").lower()
    if len(digits) == 3:
        digits = "".join(char * 2 for char in digits)
    return f"#{digits}"


def validate_uuid(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    if not isinstance(value, str):
        raise _reject("type", value)
    text = value if strict else value.strip()
    if not _UUID_PATTERN.fullmatch(text):
        raise _reject("format", value)
    return text.lower()


def validate_slug(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    text = _as_text(value, strict)
    _check_length(len(text), params, value)
    _check_mask(text, params, value)
    if not strict:
        text = slugify(text)
    if not _SLUG_PATTERN.fullmatch(text):
        raise _reject("format", value)
    return text


def slugify(text: str) -> str:
    """ASCII-fold, lowercase and hyphenate ``text``."""

    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", folded.lower()).strip("-")


def validate_temporal(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    """``date``, ``time`` and ``datetime``: parse with ``format``, return the formatted text."""

    fmt = str(params.raw("format", _DEFAULT_FORMATS[type_name]))
    parsed = _parse_temporal(value, fmt, strict, type_name)
    for bound, reason in (("min", "min"), ("max", "max")):
        raw_bound = params.raw(bound)
        if raw_bound is None:
            continue
        try:
            limit = _parse_temporal(raw_bound, fmt, False, type_name)
        except ValidationError as exc:
            raise ContractSyntaxError(f"{type_name}: bad {bound!r} parameter {raw_bound!r}") from exc
        if (reason == "min" and parsed < limit) or (reason == "max" and parsed > limit):
            raise _reject(reason, value)
    return parsed.strftime(fmt)


def _parse_temporal(value: Any, fmt: str, strict: bool, type_name: str) -> Any:
    if type_name == "datetime" and isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if type_name == "date" and isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time())
    if type_name == "time" and isinstance(value, time):
        return datetime.combine(date(1900, 1, 1), value)
    if not strict and isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
    if not isinstance(value, str):
        raise _reject("type", value)
    text = value if strict else value.strip()
    try:
        return datetime.strptime(text, fmt)
    except ValueError:
        pass
    if not strict:
        try:
            return datetime.fromisoformat(text).replace(tzinfo=None)
        except ValueError:
            pass
    raise _reject("format", value)


# ---------------------------------------------------------------------------
# Network and encodings
# ---------------------------------------------------------------------------


def validate_ip(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    if not isinstance(value, str):
        raise _reject("type", value)
    try:
        address = ipaddress.ip_address(value if strict else value.strip())
    except ValueError:
        raise _reject("format", value) from None
    if type_name == "ipv4" and address.version != 4:
        raise _reject("format", value)
    if type_name == "ipv6" and address.version != 6:
        raise _reject("format", value)
    return str(address)


def validate_json(value: Any, params: LeafParams, strict: bool, type_name: str) -> Any:
    if not isinstance(value, str) or not value:
        raise _reject("type", value)
    _check_length(len(value), params, value)
    try:
        return json.loads(value)
    except ValueError:
        raise _reject("json", value) from None


def validate_base64(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    if not isinstance(value, str) or not value:
        raise _reject("type", value)
    try:
        decoded = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise _reject("format", value) from None
    if strict and base64.b64encode(decoded).decode("ascii") != value:
        raise _reject("format", value)
    _check_length(len(decoded), params, value)
    _check_mime(sniff_mime(decoded), params, value)
    return value


def validate_hash(value: Any, params: LeafParams, strict: bool, type_name: str) -> str:
    algorithms = params.items("algo") or ((type_name,) if type_name != "hash" else ())
    if not algorithms:
        raise ContractSyntaxError("hash contract needs an 'algo' parameter")
    if not isinstance(value, str) or not _HEX_PATTERN.fullmatch(value):
        raise _reject("format", value)
    source = params.raw("source")
    for algo in algorithms:
        try:
            hasher = hashlib.new(algo)
        except ValueError as exc:
            raise ContractSyntaxError(f"unknown hash algorithm {algo!r}") from exc
        if len(value) != hasher.digest_size * 2:
            continue
        if source is None:
            return value.lower()
        hasher.update(str(source).encode("utf-8"))
        if hasher.hexdigest() == value.lower():
            return value.lower()
    raise _reject("format", value)


# ---------------------------------------------------------------------------
# Binary uploads
# ---------------------------------------------------------------------------


def validate_binary(value: Any, params: LeafParams, strict: bool, type_name: str) -> dict[str, Any]:
    """Uploaded file or raw bytes; returns ``{"binary", "mime", "filename"}``."""

    content, declared, filename = _binary_parts(value, strict)
    if not content:
        raise _reject("empty", value)
    _check_length(len(content), params, value)
    mime = declared or _guess_mime(filename) or sniff_mime(content)
    _check_mime(mime, params, value)
    return {"binary": content, "mime": mime, "filename": filename}


def _binary_parts(value: Any, strict: bool) -> tuple[bytes, str | None, str | None]:
    if isinstance(value, UploadedFile):
        return value.content, value.content_type, value.filename
    if isinstance(value, (bytes, bytearray)):
        return bytes(value), None, None
    if isinstance(value, Mapping):
        raw = value.get("binary", value.get("content"))
        declared = value.get("mime", value.get("content_type"))
        filename = value.get("filename")
        if isinstance(raw, str) and not strict:
            raw = raw.encode("utf-8")
        if isinstance(raw, (bytes, bytearray)):
            return (
                bytes(raw),
                str(declared) if declared else None,
                str(filename) if filename else None,
            )
    if isinstance(value, str) and not strict:
        return value.encode("utf-8"), None, None
    raise _reject("type", value)


def _guess_mime(filename: str | None) -> str | None:
    if not filename:
        return None
    guessed, _ = mimetypes.guess_type(filename)
    return guessed


def sniff_mime(content: bytes) -> str:
    """Best-effort MIME detection from leading bytes."""

    for signature, mime in _MAGIC_SIGNATURES:
        if content.startswith(signature):
            return mime
    try:
        content[:1024].decode("utf-8")
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain"


def _check_mime(mime: str, params: LeafParams, original: Any) -> None:
    accepted = params.items("mime")
    if not accepted:
        return
    detected = mime.split(";", 1)[0].strip().lower()
    for candidate in accepted:
        wanted = candidate.lower()
        if detected == wanted or detected.startswith(f"{wanted}/"):
            return
    raise _reject("mime", original)


BUILTIN_VALIDATORS: Final[dict[str, Validator]] = {
    "any": validate_any,
    "null": validate_null,
    "bool": validate_bool,
    "true": validate_bool,
    "false": validate_bool,
    "int": validate_int,
    "port": validate_int,
    "float": validate_float,
    "string": validate_string,
    "email": validate_email,
    "url": validate_url,
    "enum": validate_enum,
    "color": validate_color,
    "uuid": validate_uuid,
    "slug": validate_slug,
    "date": validate_temporal,
    "time": validate_temporal,
    "datetime": validate_temporal,
    "ip": validate_ip,
    "ipv4": validate_ip,
    "ipv6": validate_ip,
    "json": validate_json,
    "base64": validate_base64,
    "hash": validate_hash,
    "md5": validate_hash,
    "sha1": validate_hash,
    "sha256": validate_hash,
    "sha512": validate_hash,
    "binary": validate_binary,
}


__all__ = [
    "BUILTIN_VALIDATORS",
    "LeafParams",
    "Validator",
    "slugify",
    "sniff_mime",
]
