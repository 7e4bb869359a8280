"""Immutable description of the HTTP request a run repeats."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from multidict import CIMultiDict, CIMultiDictProxy
from yarl import URL

from loadburst._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from loadburst._internal.types import BodyInput, HeaderPair

_ALLOWED_SCHEMES = frozenset({"http", "https"})


class HttpMethod(str, Enum):
    """HTTP verbs a template may use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, value: str | HttpMethod) -> HttpMethod:
        """Return the member for ``value``, case-insensitively.

        Raises:
            ConfigError: If ``value`` is not a supported method.
        """
        if isinstance(value, HttpMethod):
            return value
        try:
            return cls(value.strip().upper())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            msg = f"Unsupported HTTP method {value!r}. Choose from: {allowed}"
            raise ConfigError(msg) from None


def parse_header(raw: str) -> HeaderPair:
    """Split a ``"Key: value"`` string into a header pair.

    Args:
        raw: Header line as typed on the command line.

    Returns:
        ``(key, value)`` with surrounding whitespace removed.

    Raises:
        ConfigError: If there is no colon or the key is empty.
    """
    key, sep, value = raw.partition(":")
    key = key.strip()
    if not sep or not key:
        msg = f"Header must look like 'Key: value', got: {raw!r}"
        raise ConfigError(msg)
    if any(ch in key for ch in " \t\r\n"):
        msg = f"Header name must not contain whitespace, got: {key!r}"
        raise ConfigError(msg)
    return key, value.strip()


def _validate_url(raw: str | URL) -> URL:
    try:
        url = raw if isinstance(raw, URL) else URL(raw)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid target URL {str(raw)!r}: {exc}"
        raise ConfigError(msg) from None

    if not url.is_absolute() or url.scheme not in _ALLOWED_SCHEMES:
        msg = f"Target URL must be an absolute http(s) URL, got: {str(raw)!r}"
        raise ConfigError(msg)
    if not url.host:
        msg = f"Target URL has no host: {str(raw)!r}"
        raise ConfigError(msg)
    return url


@dataclass(frozen=True)
class RequestTemplate:
    """The request sent on every attempt of a run.

    Build instances with :meth:`build`, which validates its input. The
    header view is read-only, keeps insertion order, compares keys
    case-insensitively and allows repeated keys.

    Attributes:
        url: Absolute http(s) target URL.
        method: HTTP method.
        headers: Read-only, case-insensitive multi-mapping of headers.
        body: Raw request body, or None for no body.
    """

    url: URL
    method: HttpMethod
    headers: CIMultiDictProxy[str]
    body: bytes | None = None

    @classmethod
    def build(
        cls,
        url: str | URL,
        method: str | HttpMethod = HttpMethod.GET,
        headers: Mapping[str, str] | Iterable[HeaderPair] = (),
        body: BodyInput = None,
    ) -> RequestTemplate:
        """Validate the parts of a request and freeze them into a template.

        Args:
            url: Absolute http or https URL.
            method: HTTP method, case-insensitive.
            headers: Mapping or iterable of ``(key, value)`` pairs. Repeated
                keys are kept in order.
            body: Request body. ``str`` is encoded as UTF-8.

        Returns:
            A validated, immutable RequestTemplate.

        Raises:
            ConfigError: If any part is invalid.
        """
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        header_dict: CIMultiDict[str] = CIMultiDict()
        for key, value in pairs:
            if not key or not key.strip():
                msg = "Header name must not be empty"
                raise ConfigError(msg)
            header_dict.add(key.strip(), value)

        encoded = body.encode("utf-8") if isinstance(body, str) else body

        return cls(
            url=_validate_url(url),
            method=HttpMethod.parse(method),
            headers=CIMultiDictProxy(header_dict),
            body=encoded,
        )

    def describe(self) -> str:
        """Return a short human-readable description, e.g. ``GET http://host/path``."""
        return f"{self.method.value} {self.url}"
