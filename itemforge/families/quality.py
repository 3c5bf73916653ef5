"""
Quality tiers shared by every family.

The multipliers differ per family, the halo does not: common and uncommon
draw nothing, rare and up get a progressively wider and stronger glow.
"""

from typing import Any, Dict, Mapping

from itemforge.templates import AxisTable

TIERS = ("common", "uncommon", "rare", "epic", "legendary", "mythical")

# gaussian sigma (px) and peak alpha factor of the halo
GLOW = {
    "rare":      {"sigma": 1.0, "strength": 0.5},
    "epic":      {"sigma": 1.5, "strength": 0.65},
    "legendary": {"sigma": 2.0, "strength": 0.8},
    "mythical":  {"sigma": 2.5, "strength": 1.0},
}

GLOW_COLORS = {
    "rare":      "#4A90E2",   # blue
    "epic":      "#A335EE",   # purple
    "legendary": "#FF8000",   # orange
    "mythical":  "#FF1493",   # hot pink
}

RARITY = {tier: i + 1 for i, tier in enumerate(TIERS)}


def quality_table(entries: Mapping[str, Mapping[str, Any]], default: str = "common") -> AxisTable:
    """Build a quality AxisTable, attaching halo settings and the rarity base value."""
    out: Dict[str, Dict[str, Any]] = {}
    for key, spec in entries.items():
        spec = dict(spec)
        attributes = dict(spec.pop("attributes", {}))
        colors = dict(spec.pop("colors", {}))
        base_values = dict(spec.pop("base_values", {}))
        base_values.setdefault("rarity", RARITY[key])
        if key in GLOW:
            attributes["glow"] = GLOW[key]
            colors.setdefault("glow", GLOW_COLORS[key])
        out[key] = dict(spec, attributes=attributes, colors=colors, base_values=base_values)
    return AxisTable.from_dict("quality", out, default)
