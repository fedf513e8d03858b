"""
sqlbridge/core/validator.py
===========================

Checks caller-supplied arguments against a tool's declared input schema.

Rules, applied in order
-----------------------
1. **Required fields**: every name in ``inputSchema.required`` must be
   present, and a string value must not be empty or whitespace-only.
2. **Array coercion**: a property declared as ``"type": "array"`` that
   arrives as a string is parsed as JSON.  If that fails (or does not yield a
   list) the string is split on commas and each piece is stripped.  This
   fallback never raises; callers typing ``a, b`` into a prompt get
   ``["a", "b"]``.
3. **Passthrough**: fields the schema does not declare are kept as-is in
   ``ToolArguments.extra`` rather than rejected.

The raw mapping passed in is never modified; a new ``ToolArguments`` is built.
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Union

from ..errors import MissingRequiredArgument
from .registry import ToolDescriptor

# JSON value kinds a declared argument can hold.
ArgumentValue = Union[str, int, float, bool, None, list, dict]


@dataclass(frozen=True)
class ToolArguments(Mapping[str, Any]):
    """Validated arguments: schema-declared values plus undeclared passthrough."""

    declared: Mapping[str, ArgumentValue] = field(default_factory=dict)
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "declared", MappingProxyType(dict(self.declared)))
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def __getitem__(self, key: str) -> Any:
        if key in self.declared:
            return self.declared[key]
        return self.extra[key]

    def __iter__(self) -> Iterator[str]:
        yield from self.declared
        yield from (k for k in self.extra if k not in self.declared)

    def __len__(self) -> int:
        return len(set(self.declared) | set(self.extra))

    def to_dict(self) -> dict[str, Any]:
        return dict(self.items())


def coerce_array(value: str) -> list:
    """Turn a user-typed string into a list, preferring JSON."""
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return parsed
    return [segment.strip() for segment in value.split(",")]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate(descriptor: ToolDescriptor, raw_args: Mapping[str, Any] | None) -> ToolArguments:
    """Validate ``raw_args`` for ``descriptor`` and return coerced arguments.

    Raises
    ------
    MissingRequiredArgument
        If a required field is absent or blank.
    """
    raw_args = raw_args or {}

    for name in descriptor.required:
        if name not in raw_args or _is_blank(raw_args[name]):
            raise MissingRequiredArgument(name)

    properties = descriptor.properties
    declared: dict[str, ArgumentValue] = {}
    extra: dict[str, Any] = {}
    for name, value in raw_args.items():
        if name not in properties:
            extra[name] = value
            continue
        if properties[name].get("type") == "array" and isinstance(value, str):
            value = coerce_array(value)
        declared[name] = value

    return ToolArguments(declared=declared, extra=extra)
