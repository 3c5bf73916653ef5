"""
Axis template tables.

A family is described by a handful of independent axes (archetype, quality,
size, material, ...). Each axis maps a discrete key to an immutable
AxisTemplate holding multipliers, base values, colour roles and feature tags.
Tables are looked up, never mutated.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from itemforge.errors import UnknownAxisValue

UNLIMITED = -1

RGB = Tuple[int, int, int]


def hex_to_rgb(value: str) -> RGB:
    """'#FF4500' -> (255, 69, 0)"""
    value = value.lstrip("#")
    if len(value) != 6:
        raise ValueError(f"Not an RGB hex colour: {value!r}")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def rgb_to_hex(rgb: RGB) -> str:
    return "#{:02X}{:02X}{:02X}".format(*rgb)


def _frozen(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class AxisTemplate:
    key: str
    name: str = ""
    description: str = ""
    prefix: str = ""
    multipliers: Mapping[str, float] = field(default_factory=dict)
    base_values: Mapping[str, float] = field(default_factory=dict)
    colors: Mapping[str, str] = field(default_factory=dict)
    features: Tuple[str, ...] = ()
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # frozen dataclass: bypass __setattr__ to swap in read-only views
        object.__setattr__(self, "multipliers", _frozen(self.multipliers))
        object.__setattr__(self, "base_values", _frozen(self.base_values))
        object.__setattr__(self, "colors", _frozen(self.colors))
        object.__setattr__(self, "attributes", _frozen(self.attributes))
        object.__setattr__(self, "features", tuple(self.features))

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        # immutable, and MappingProxyType cannot be deep-copied
        return self

    def multiplier(self, stat: str) -> float:
        return self.multipliers.get(stat, 1.0)

    def attr(self, name: str, default=None):
        return self.attributes.get(name, default)

    def rgb(self, role: str) -> RGB:
        return hex_to_rgb(self.colors[role])


class AxisTable:
    """Ordered key -> AxisTemplate mapping for one axis of one family."""

    def __init__(self, axis: str, templates: Mapping[str, AxisTemplate], default: str):
        if default not in templates:
            raise ValueError(f"Default {axis} '{default}' missing from table")
        self.axis = axis
        self.default = default
        self._templates = dict(templates)

    @classmethod
    def from_dict(cls, axis: str, entries: Mapping[str, Mapping[str, Any]], default: str) -> "AxisTable":
        """Build a table from plain content dicts (one dict of AxisTemplate fields per key)."""
        templates = {key: AxisTemplate(key=key, **spec) for key, spec in entries.items()}
        return cls(axis, templates, default)

    def lookup(self, key, config=None) -> AxisTemplate:
        try:
            return self._templates[key]
        except (KeyError, TypeError):
            raise UnknownAxisValue(self.axis, key, self.keys(), config=config) from None

    def keys(self) -> Tuple[str, ...]:
        return tuple(self._templates)

    def __contains__(self, key) -> bool:
        try:
            return key in self._templates
        except TypeError:
            return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def next_key(self, key: str) -> str:
        """Key after `key` in table order, saturating at the last entry."""
        keys = self.keys()
        index = keys.index(key)
        return keys[min(index + 1, len(keys) - 1)]

    def __repr__(self):
        return f"AxisTable({self.axis!r}, {len(self)} entries, default={self.default!r})"


@dataclass(frozen=True)
class StatRules:
    """How composed stats are finalised.

    ratios:    stats kept fractional (rounded to `precision` places)
    unlimited: stats where -1 means "never runs out"
    """
    ratios: frozenset = frozenset()
    unlimited: frozenset = frozenset()
    precision: int = 2

    def __post_init__(self):
        object.__setattr__(self, "ratios", frozenset(self.ratios))
        object.__setattr__(self, "unlimited", frozenset(self.unlimited))
