"""Shared type aliases for loadburst."""

from __future__ import annotations

# A single header as given on the command line, e.g. ("Accept", "application/json").
HeaderPair = tuple[str, str]

# Request body as accepted by RequestTemplate.build().
BodyInput = bytes | str | None
