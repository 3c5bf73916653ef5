"""
Template composition: configuration -> ComposedItem.

Each family declares an ordered list of axes. The first axis is the
archetype. For every stat the first axis that declares a base value supplies
it, and every axis contributes a multiplier (1.0 when silent). The result is
rounded half-up for whole-unit stats and kept fractional for ratios.
"""

import hashlib
import json
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from itemforge.errors import ConfigValidationError
from itemforge.templates import UNLIMITED, AxisTable, AxisTemplate, StatRules

RESERVED_KEYS = ("seed", "phase", "name", "width", "height")


def canonical_key(config: Mapping[str, Any]) -> str:
    """Sorted-key JSON encoding used for cache keys and item ids."""
    return json.dumps(config, sort_keys=True, separators=(",", ":"), default=str)


def config_digest(config: Mapping[str, Any]) -> str:
    return hashlib.sha1(canonical_key(config).encode("utf-8")).hexdigest()


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; 22.5 must give 23
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Effect:
    type: str
    power: float
    duration: float
    instant: bool = False
    radius: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "power": self.power, "duration": self.duration, "instant": self.instant}
        if self.radius is not None:
            data["radius"] = self.radius
        return data


@dataclass(frozen=True)
class ComposedItem:
    id: str
    family: str
    archetype: str
    name: str
    description: str
    config: Mapping[str, Any]
    templates: Mapping[str, AxisTemplate]
    stats: Mapping[str, float]
    features: Tuple[str, ...]
    appearance: Mapping[str, Any]
    effects: Tuple[Effect, ...]
    extras: Mapping[str, Any] = field(default_factory=dict)
    seed: int = 0

    def template(self, axis: str) -> AxisTemplate:
        return self.templates[axis]

    @property
    def phase(self) -> float:
        return float(self.config.get("phase", 0.0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "family": self.family,
            "archetype": self.archetype,
            "name": self.name,
            "description": self.description,
            "config": dict(self.config),
            "stats": dict(self.stats),
            "features": list(self.features),
            "appearance": dict(self.appearance),
            "effects": [e.to_dict() for e in self.effects],
            "extras": _plain(self.extras),
            "seed": self.seed,
        }


def _plain(value):
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class TemplateComposer:
    """Resolves a configuration against a family's axis tables.

    Subclasses set `family`, `axes` and `rules` and override the describe /
    appearance / effects / extras hooks. `options` holds non-axis keys with
    their defaults (e.g. {"is_open": False}).
    """

    family = "item"
    axes: Sequence[Tuple[str, AxisTable]] = ()
    rules = StatRules()
    options: Mapping[str, Any] = {}

    @property
    def archetype_axis(self) -> str:
        return self.axes[0][0]

    def table(self, axis: str) -> AxisTable:
        for name, table in self.axes:
            if name == axis:
                return table
        raise KeyError(axis)

    def axis_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.axes)

    def defaults(self) -> Dict[str, Any]:
        config = {name: table.default for name, table in self.axes}
        config.update(self.options)
        return config

    def with_defaults(self, config: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        merged = self.defaults()
        merged.update(config or {})
        return merged

    # ── resolution ──────────────────────────────────────────────────────────

    def resolve(self, config: Mapping[str, Any]) -> Dict[str, AxisTemplate]:
        """Look up every axis; raises UnknownAxisValue on the first miss."""
        templates = {}
        for name, table in self.axes:
            templates[name] = table.lookup(config.get(name, table.default), config=config)
        return templates

    def check_structure(self, templates: Mapping[str, AxisTemplate], config: Mapping[str, Any]):
        """Cross-axis constraints. Raise ConfigValidationError to reject."""

    def check_reserved(self, config: Mapping[str, Any]):
        """`seed` must read as an integer and `phase` as a number."""
        for key, cast in (("seed", int), ("phase", float)):
            value = config.get(key)
            if value is None:
                continue
            try:
                cast(value)
            except (TypeError, ValueError):
                raise ConfigValidationError(
                    f"Invalid {key}: {value!r}", config, field=key, value=value
                ) from None

    def validate(self, config: Mapping[str, Any]) -> Dict[str, AxisTemplate]:
        self.check_reserved(config)
        templates = self.resolve(config)
        self.check_structure(templates, config)
        return templates

    def compute_stat(self, templates: Mapping[str, AxisTemplate], stat: str):
        """base × Π multipliers for one stat, or None when no axis declares it."""
        base = None
        for name, _ in self.axes:
            values = templates[name].base_values
            if stat in values:
                base = values[stat]
                break
        if base is None:
            return None

        multipliers = [templates[name].multiplier(stat) for name, _ in self.axes]
        if stat in self.rules.unlimited:
            if base == UNLIMITED or UNLIMITED in multipliers:
                return UNLIMITED

        value = float(base)
        for m in multipliers:
            value *= m

        if stat in self.rules.ratios:
            return round(value, self.rules.precision)
        return round_half_up(value)

    def stat_names(self, templates: Mapping[str, AxisTemplate]) -> List[str]:
        names = []
        for name, _ in self.axes:
            for stat in templates[name].base_values:
                if stat not in names:
                    names.append(stat)
        return names

    def compute_stats(self, templates: Mapping[str, AxisTemplate]) -> Dict[str, float]:
        return {stat: self.compute_stat(templates, stat) for stat in self.stat_names(templates)}

    def estimate(self, config: Mapping[str, Any], stat: str):
        """Analytic value of one stat; no names, effects or pixels."""
        config = self.with_defaults(config)
        return self.compute_stat(self.resolve(config), stat)

    # ── hooks ───────────────────────────────────────────────────────────────

    def name_suffix(self, templates, config) -> str:
        return ""

    def build_name(self, templates, config) -> str:
        if config.get("name"):
            return str(config["name"])
        parts = [
            templates["quality"].prefix if "quality" in templates else "",
            templates["size"].prefix if "size" in templates else "",
            templates[self.archetype_axis].name,
            self.name_suffix(templates, config),
        ]
        return " ".join(" ".join(parts).split())

    def describe(self, templates, stats, config) -> str:
        return templates[self.archetype_axis].description

    def build_appearance(self, templates, config) -> Dict[str, Any]:
        appearance = {}
        for name, _ in self.axes:
            appearance.update(templates[name].colors)
        appearance["quality"] = config.get("quality")
        return appearance

    def build_effects(self, templates, stats, config) -> List[Effect]:
        return []

    def build_extras(self, templates, stats, config, rng: random.Random) -> Dict[str, Any]:
        return {}

    # ── composition ─────────────────────────────────────────────────────────

    def seed_for(self, config: Mapping[str, Any]) -> int:
        if config.get("seed") is not None:
            return int(config["seed"])
        return int(config_digest(config)[:8], 16)

    def compose(self, config: Optional[Mapping[str, Any]] = None) -> ComposedItem:
        config = self.with_defaults(config)
        templates = self.validate(config)
        stats = self.compute_stats(templates)
        seed = self.seed_for(config)
        rng = random.Random(seed)

        features = []
        for name, _ in self.axes:
            features.extend(templates[name].features)

        return ComposedItem(
            id=f"{self.family}_{config_digest(config)[:9]}",
            family=self.family,
            archetype=config[self.archetype_axis],
            name=self.build_name(templates, config),
            description=self.describe(templates, stats, config),
            config=dict(config),
            templates=dict(templates),
            stats=stats,
            features=tuple(features),
            appearance=self.build_appearance(templates, config),
            effects=tuple(self.build_effects(templates, stats, config)),
            extras=self.build_extras(templates, stats, config, rng),
            seed=seed,
        )

    def config_errors(self, config: Mapping[str, Any]) -> List[str]:
        """Every problem with `config`, collected instead of raised."""
        errors = []
        for name, table in self.axes:
            if name in config and config[name] not in table:
                errors.append(f"Invalid {name}: {config[name]}")
        if errors:
            return errors
        merged = self.with_defaults(config)
        try:
            self.check_reserved(merged)
            self.check_structure(self.resolve(merged), merged)
        except ConfigValidationError as e:
            errors.append(e.message)
        return errors
