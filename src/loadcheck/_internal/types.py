"""Shared type aliases for loadcheck."""

from __future__ import annotations

from collections.abc import Mapping

# HTTP headers mapping.
Headers = Mapping[str, str]

# Values interpolated into a URL template, keyed by placeholder name.
TemplateValues = Mapping[str, object]
