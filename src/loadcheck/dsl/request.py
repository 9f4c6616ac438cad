"""Request descriptors and the templated request builder."""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING
from urllib.parse import quote

from loadcheck._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from loadcheck._internal.types import Headers, TemplateValues
    from loadcheck.dsl.params import ParamStrategy


@dataclass(frozen=True)
class Cookie:
    """A cookie attached to every request.

    Attributes:
        value: Cookie value.
        replace: If True, this value overrides a cookie of the same name
            already held by the transport's cookie jar. If False, it is only
            sent when the jar holds no cookie of that name.
    """

    value: str
    replace: bool = True


@dataclass(frozen=True)
class RequestSpec:
    """A concrete HTTP request, built once per iteration.

    Attributes:
        method: HTTP method (GET, POST, etc.).
        url: Absolute URL with query string already interpolated.
        headers: Request headers.
        cookies: Cookies keyed by name.
        body: Raw request body, or None.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, Cookie] = field(default_factory=dict)
    body: bytes | None = None


def render_value(value: object) -> str:
    """Render a template value as a percent-encoded query string component.

    Booleans render as ``true``/``false``; everything else goes through
    ``str()``.
    """
    text = ("true" if value else "false") if isinstance(value, bool) else str(value)
    return quote(text, safe="")


class RequestBuilder:
    """Builds a RequestSpec from a URL template and a parameter strategy.

    The template uses ``str.format`` placeholders. Values come from
    ``constants`` overlaid with whatever the ``params`` generator returns on
    each build, so a generator can derive one value from another::

        def task_params(p: ParamStrategy) -> dict[str, object]:
            status = p.random_int(0, 1)
            return {"status": status, "is_epic": status == 1}

        builder = RequestBuilder(
            "https://api.example.com/task?status={status}&is_epic={is_epic}",
            params=task_params,
        )

    Building performs no I/O and holds no mutable state, so one builder can
    be shared by every virtual user.
    """

    def __init__(
        self,
        url_template: str,
        *,
        method: str = "GET",
        params: Callable[[ParamStrategy], TemplateValues] | None = None,
        constants: TemplateValues | None = None,
        headers: Headers | None = None,
        cookies: Mapping[str, Cookie | str] | None = None,
        body: bytes | None = None,
    ) -> None:
        if not url_template:
            msg = "url_template must not be empty"
            raise ConfigError(msg)
        self.url_template = url_template
        self.method = method.upper()
        self.placeholders = _template_placeholders(url_template)
        self._params = params
        self._constants = dict(constants or {})
        if params is None:
            self._require_values(self._constants)
        self._headers = MappingProxyType(dict(headers or {}))
        self._cookies = MappingProxyType(
            {
                name: value if isinstance(value, Cookie) else Cookie(value)
                for name, value in (cookies or {}).items()
            }
        )
        self._body = body

    def build(self, params: ParamStrategy) -> RequestSpec:
        """Assemble one request.

        Args:
            params: Strategy supplying the randomized values.

        Returns:
            A new immutable RequestSpec.

        Raises:
            ConfigError: If the template references a name with no value.
        """
        values: dict[str, object] = dict(self._constants)
        if self._params is not None:
            values.update(self._params(params))

        self._require_values(values)
        rendered = {name: render_value(value) for name, value in values.items()}
        url = self.url_template.format_map(rendered)

        return RequestSpec(
            method=self.method,
            url=url,
            headers=self._headers,
            cookies=self._cookies,
            body=self._body,
        )

    def _require_values(self, values: TemplateValues) -> None:
        missing = sorted(self.placeholders.difference(values))
        if missing:
            msg = f"URL template placeholder {missing[0]!r} has no value"
            raise ConfigError(msg)


def _template_placeholders(url_template: str) -> frozenset[str]:
    """Return the named fields of ``url_template``.

    Only plain names are allowed: positional (``{}``, ``{0}``), attribute
    (``{a.b}``) and index (``{a[0]}``) fields are rejected, as are nested
    fields inside a format spec.

    Raises:
        ConfigError: If the template is malformed or has an unsupported field.
    """
    names: set[str] = set()
    try:
        fields = list(string.Formatter().parse(url_template))
    except ValueError as exc:
        msg = f"invalid URL template {url_template!r}: {exc}"
        raise ConfigError(msg) from None

    for _literal, name, format_spec, _conversion in fields:
        if name is None:
            continue
        if not name or name.isdigit():
            msg = f"URL template {url_template!r} has a positional field; use named placeholders"
            raise ConfigError(msg)
        if not name.isidentifier():
            msg = f"URL template placeholder {name!r} must be a plain name"
            raise ConfigError(msg)
        if format_spec and "{" in format_spec:
            msg = f"URL template placeholder {name!r} has a nested field in its format spec"
            raise ConfigError(msg)
        names.add(name)
    return frozenset(names)
