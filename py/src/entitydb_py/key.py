from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .errors import InvalidKeyTemplateError, MissingInterpolationAttributeError

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


@dataclass(frozen=True)
class Placeholder:
    name: str


type Fragment = str | Placeholder


@dataclass(frozen=True)
class KeyPattern:
    """A parsed key template such as ``USER#{{id}}#ORG#{{org_id}}``."""

    template: str
    fragments: tuple[Fragment, ...]

    @property
    def attributes(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fragments if isinstance(f, Placeholder))

    def references(self, attribute_name: str) -> bool:
        return attribute_name in self.attributes


def parse_key_template(template: str) -> KeyPattern:
    if not isinstance(template, str) or not template:
        raise InvalidKeyTemplateError(template=str(template), reason="template must be a non-empty string")

    fragments: list[Fragment] = []
    pos = 0
    for match in _PLACEHOLDER.finditer(template):
        literal = template[pos : match.start()]
        if literal:
            fragments.append(_check_literal(template, literal))
        fragments.append(Placeholder(match.group(1)))
        pos = match.end()

    tail = template[pos:]
    if tail:
        fragments.append(_check_literal(template, tail))

    return KeyPattern(template=template, fragments=tuple(fragments))


def _check_literal(template: str, literal: str) -> str:
    if "{" in literal or "}" in literal:
        raise InvalidKeyTemplateError(template=template, reason="unbalanced or empty placeholder")
    return literal


def interpolate(pattern: KeyPattern, attributes: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for fragment in pattern.fragments:
        if isinstance(fragment, Placeholder):
            value = attributes.get(fragment.name)
            if value is None:
                raise MissingInterpolationAttributeError(template=pattern.template, attribute=fragment.name)
            parts.append(str(value))
        else:
            parts.append(fragment)
    return "".join(parts)


@dataclass(frozen=True)
class KeySchema:
    """Key templates keyed by the physical key attribute they produce (e.g. ``PK``/``SK``)."""

    templates: Mapping[str, str]
    interpolations: Mapping[str, KeyPattern]

    @classmethod
    def from_templates(cls, templates: Mapping[str, str]) -> KeySchema:
        if not templates:
            raise InvalidKeyTemplateError(template="", reason="at least one key template is required")
        return cls(
            templates=MappingProxyType(dict(templates)),
            interpolations=MappingProxyType({k: parse_key_template(v) for k, v in templates.items()}),
        )

    @property
    def attributes(self) -> tuple[str, ...]:
        out: list[str] = []
        for pattern in self.interpolations.values():
            for name in pattern.attributes:
                if name not in out:
                    out.append(name)
        return tuple(out)

    def build(self, attributes: Mapping[str, Any]) -> dict[str, str]:
        return {key: interpolate(pattern, attributes) for key, pattern in self.interpolations.items()}

    def can_build(self, attributes: Mapping[str, Any]) -> bool:
        return all(attributes.get(name) is not None for name in self.attributes)


def is_used_for_primary_key(primary_key: KeySchema, attribute_name: str) -> bool:
    return any(pattern.references(attribute_name) for pattern in primary_key.interpolations.values())


def build_primary_key(primary_key: KeySchema, attributes: Mapping[str, Any]) -> dict[str, str]:
    return primary_key.build(attributes)
