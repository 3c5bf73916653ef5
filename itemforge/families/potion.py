"""
Potion generator.

The archetype axis flattens the potion kinds into one key: `minor_health`,
`mana`, `speed`, `poison`, ... Each kind belongs to a category (health,
mana, buff, debuff, utility) that decides the primary effect, and names a
liquid colour. The bottle material decides the silhouette painter.
"""

import math
from enum import Enum

from opensimplex import OpenSimplex

from itemforge.composer import Effect, TemplateComposer
from itemforge.families.quality import quality_table
from itemforge.generator import ItemGenerator
from itemforge.raster import Compositor, apply_glow, ensure_exhaustive, scale_rgb
from itemforge.templates import AxisTable, StatRules, hex_to_rgb, rgb_to_hex

# --- Liquid palettes ---

POTION_COLORS = {
    "red":         {"liquid": "#FF0000", "glow": "#FF4444", "bubbles": "#FF6666"},
    "blue":        {"liquid": "#0000FF", "glow": "#4444FF", "bubbles": "#6666FF"},
    "green":       {"liquid": "#00FF00", "glow": "#44FF44", "bubbles": "#66FF66"},
    "yellow":      {"liquid": "#FFFF00", "glow": "#FFFF44", "bubbles": "#FFFF66"},
    "purple":      {"liquid": "#800080", "glow": "#A044A0", "bubbles": "#C066C0"},
    "pink":        {"liquid": "#FF69B4", "glow": "#FF8BC4", "bubbles": "#FFADD4"},
    "white":       {"liquid": "#FFFFFF", "glow": "#FFFFFF", "bubbles": "#F0F0F0"},
    "black":       {"liquid": "#000000", "glow": "#333333", "bubbles": "#666666"},
    "orange":      {"liquid": "#FFA500", "glow": "#FFB544", "bubbles": "#FFC566"},
    "transparent": {"liquid": "#E6F3FF", "glow": "#FFFFFF", "bubbles": "#FFFFFF"},
}
DEFAULT_COLOR = "red"

# glow brightening for the top tiers
GLOW_BOOST = {"epic": 1.3, "legendary": 1.6, "mythical": 2.0}

BUBBLING = ("buff", "utility")


def _kind(name, description, category, power, duration, cooldown, color, features, effect=None):
    return {
        "name": name,
        "description": description,
        "base_values": {"power": power, "duration": duration, "cooldown": cooldown, "value": 10},
        "features": features,
        "attributes": {"category": category, "effect": effect, "color": color},
    }


TYPES = {
    # restoratives
    "minor_health":    _kind("Minor Health Potion", "Restores a small amount of health", "health",
                             50, 0, 30, "red", ("instant_heal", "common", "red")),
    "health":          _kind("Health Potion", "Restores health", "health",
                             100, 0, 45, "red", ("instant_heal", "versatile", "red")),
    "major_health":    _kind("Major Health Potion", "Restores a large amount of health", "health",
                             200, 0, 60, "red", ("instant_heal", "powerful", "red")),
    "superior_health": _kind("Superior Health Potion", "Restores a massive amount of health", "health",
                             400, 0, 90, "red", ("instant_heal", "premium", "red")),
    "minor_mana":      _kind("Minor Mana Potion", "Restores a small amount of mana", "mana",
                             50, 0, 30, "blue", ("instant_mana", "common", "blue")),
    "mana":            _kind("Mana Potion", "Restores mana", "mana",
                             100, 0, 45, "blue", ("instant_mana", "versatile", "blue")),
    "major_mana":      _kind("Major Mana Potion", "Restores a large amount of mana", "mana",
                             200, 0, 60, "blue", ("instant_mana", "powerful", "blue")),
    "superior_mana":   _kind("Superior Mana Potion", "Restores a massive amount of mana", "mana",
                             400, 0, 90, "blue", ("instant_mana", "premium", "blue")),
    # buffs
    "strength":        _kind("Strength Potion", "Increases physical strength", "buff",
                             5, 300, 60, "red", ("buff", "combat", "red"), effect="strength"),
    "speed":           _kind("Speed Potion", "Increases movement speed", "buff",
                             20, 240, 45, "yellow", ("buff", "mobility", "yellow"), effect="speed"),
    "defense":         _kind("Defense Potion", "Increases physical defense", "buff",
                             10, 360, 75, "green", ("buff", "protection", "green"), effect="defense"),
    "regeneration":    _kind("Regeneration Potion", "Restores health over time", "buff",
                             5, 180, 90, "pink", ("buff", "healing", "pink"), effect="regeneration"),
    # debuffs
    "poison":          _kind("Poison Potion", "Deals damage over time", "debuff",
                             8, 120, 30, "green", ("debuff", "damage", "green"), effect="poison"),
    "slow":            _kind("Slow Potion", "Reduces movement speed", "debuff",
                             15, 180, 45, "purple", ("debuff", "mobility", "purple"), effect="slow"),
    "weakness":        _kind("Weakness Potion", "Reduces physical strength", "debuff",
                             6, 240, 60, "gray", ("debuff", "combat", "gray"), effect="weakness"),
    # utility
    "invisibility":    _kind("Invisibility Potion", "Makes the drinker invisible", "utility",
                             1, 180, 300, "transparent", ("utility", "stealth", "transparent"),
                             effect="invisibility"),
    "teleportation":   _kind("Teleportation Potion", "Allows short-range teleportation", "utility",
                             50, 0, 120, "blue", ("utility", "movement", "blue"), effect="teleportation"),
    "levitation":      _kind("Levitation Potion", "Allows floating and slow flight", "utility",
                             1, 120, 180, "white", ("utility", "movement", "white"), effect="levitation"),
}

BOTTLES = {
    "glass":   {"name": "Glass", "description": "in a glass bottle",
                "base_values": {"durability": 3, "transparency": 0.9, "weight": 0.2},
                "colors": {"bottle": "#E6F3FF", "cork": "#654321"}, "attributes": {"break_chance": 0.1}},
    "ceramic": {"name": "Ceramic", "description": "in a ceramic bottle",
                "base_values": {"durability": 6, "transparency": 0.1, "weight": 0.4},
                "colors": {"bottle": "#F5DEB3", "cork": "#8B4513"}, "attributes": {"break_chance": 0.05}},
    "metal":   {"name": "Metal", "description": "in a metal flask",
                "base_values": {"durability": 10, "transparency": 0.0, "weight": 0.6},
                "colors": {"bottle": "#C0C0C0", "cork": "#8B4513"}, "attributes": {"break_chance": 0.02}},
    "crystal": {"name": "Crystal", "description": "in a crystal vial",
                "base_values": {"durability": 8, "transparency": 0.95, "weight": 0.3},
                "colors": {"bottle": "#B0E0E6", "cork": "#654321"}, "attributes": {"break_chance": 0.15}},
    "wooden":  {"name": "Wooden", "description": "in a wooden flask",
                "base_values": {"durability": 5, "transparency": 0.0, "weight": 0.3},
                "colors": {"bottle": "#8B4513", "cork": "#8B4513"}, "attributes": {"break_chance": 0.08}},
    "skin":    {"name": "Skin", "description": "in a leather skin",
                "base_values": {"durability": 4, "transparency": 0.0, "weight": 0.25},
                "colors": {"bottle": "#D2691E", "cork": "#8B4513"}, "attributes": {"break_chance": 0.12}},
}

QUALITY_TIERS = {
    # prefix, power, duration, value, description
    "common":    ("", 1.0, 1.0, 1.0, "A standard potion"),
    "uncommon":  ("Fine", 1.2, 1.1, 1.8, "A well-crafted potion"),
    "rare":      ("Rare", 1.5, 1.25, 4.0, "A finely made potion"),
    "epic":      ("Epic", 2.0, 1.5, 12.0, "A masterfully crafted potion"),
    "legendary": ("Legendary", 3.0, 2.0, 40.0, "A legendary potion of great power"),
    "mythical":  ("Mythical", 5.0, 3.0, 150.0, "A mythical potion of unimaginable power"),
}

QUALITIES = quality_table({
    key: {"name": key.title(), "prefix": prefix, "description": description,
          "multipliers": {"power": power, "duration": duration, "value": value}}
    for key, (prefix, power, duration, value, description) in QUALITY_TIERS.items()
})

# sizes scale the drawing and the potency, never the name
SIZES = {
    "small":  {"name": "Small", "multipliers": {"power": 0.7, "value": 0.7}, "attributes": {"scale": 0.7}},
    "medium": {"name": "Medium", "multipliers": {"power": 1.0, "value": 1.0}, "attributes": {"scale": 1.0}},
    "large":  {"name": "Large", "multipliers": {"power": 1.3, "value": 1.3}, "attributes": {"scale": 1.3}},
    "huge":   {"name": "Huge", "multipliers": {"power": 1.6, "value": 1.6}, "attributes": {"scale": 1.6}},
}

THEMES = {
    "restoration": {"type": ["minor_health", "health", "major_health", "minor_mana", "mana", "major_mana"],
                    "bottle_type": "glass"},
    "combat":      {"type": ["strength", "speed", "defense", "regeneration"], "bottle_type": ["glass", "metal"]},
    "toxic":       {"type": ["poison", "slow", "weakness"], "bottle_type": ["ceramic", "skin"]},
    "arcane":      {"type": ["invisibility", "teleportation", "levitation"], "bottle_type": "crystal",
                    "enchanted": True},
}


def boost_glow(color: str, quality: str) -> str:
    factor = GLOW_BOOST.get(quality)
    if factor is None:
        return color
    return rgb_to_hex(scale_rgb(hex_to_rgb(color), factor))


class PotionComposer(TemplateComposer):
    family = "potion"
    axes = (
        ("type", AxisTable.from_dict("type", TYPES, "health")),
        ("bottle_type", AxisTable.from_dict("bottle_type", BOTTLES, "glass")),
        ("quality", QUALITIES),
        ("size", AxisTable.from_dict("size", SIZES, "medium")),
    )
    rules = StatRules(ratios={"transparency", "weight"})
    options = {"enchanted": False}

    def describe(self, templates, stats, config):
        return (f"{templates['quality'].description} {templates['bottle_type'].description}. "
                f"{templates['type'].description}.")

    def build_appearance(self, templates, config):
        appearance = super().build_appearance(templates, config)
        kind = templates["type"]
        palette = POTION_COLORS.get(kind.attr("color"), POTION_COLORS[DEFAULT_COLOR])
        appearance["liquid"] = palette["liquid"]
        appearance["bubble_color"] = palette["bubbles"]
        appearance["bubbles"] = kind.attr("category") in BUBBLING
        appearance["enchanted"] = bool(config.get("enchanted"))
        if config.get("enchanted"):
            appearance["glow"] = boost_glow(palette["glow"], config["quality"])
        return appearance

    def build_effects(self, templates, stats, config):
        category = templates["type"].attr("category")
        if category == "health":
            effects = [Effect("heal", stats["power"], stats["duration"], instant=True)]
        elif category == "mana":
            effects = [Effect("restore_mana", stats["power"], stats["duration"], instant=True)]
        else:
            effects = [Effect(templates["type"].attr("effect"), stats["power"], stats["duration"])]
        if stats["cooldown"] > 0:
            effects.append(Effect("cooldown", stats["cooldown"], stats["cooldown"]))
        if config.get("enchanted"):
            effects.append(Effect("enchantment", 1, stats["duration"]))
        return effects


# --- Bottle painters ---
# The bottle is a diamond 12 x 32 (scaled) centred on (x, y).

def _diamond(canvas, x, y, s, color, alpha=255):
    half_w, half_h = 6 * s, 16 * s
    canvas.fill(x, y, (-half_w, half_w), (-half_h, half_h),
                lambda i, j: abs(i) / half_w + abs(j) / half_h <= 1.0, color, alpha)


def draw_glass(canvas, item, x, y, s):
    bottle = item.template("bottle_type")
    alpha = int(bottle.base_values["transparency"] * 0.8 * 255)
    _diamond(canvas, x, y, s, bottle.rgb("bottle"), alpha)


def draw_ceramic(canvas, item, x, y, s):
    _diamond(canvas, x, y, s, item.template("bottle_type").rgb("bottle"))


def draw_metal(canvas, item, x, y, s):
    base = item.template("bottle_type").rgb("bottle")
    shine = scale_rgb(base, 0.8)
    _diamond(canvas, x, y, s, lambda i, j: shine if math.sin(i * 0.5) * math.cos(j * 0.3) > 0.5 else base)


CRYSTAL_BANDS = ((0.7, (255, 0, 0)), (0.3, (0, 255, 0)), (-0.3, (0, 0, 255)), (-0.7, (255, 255, 0)))


def draw_crystal(canvas, item, x, y, s):
    base = item.template("bottle_type").rgb("bottle")

    def rainbow(i, j):
        value = math.sin(i * 0.3) * math.cos(j * 0.4)
        for threshold, rgb in CRYSTAL_BANDS:
            if value > threshold:
                return rgb
        return base

    _diamond(canvas, x, y, s, rainbow)


def draw_wooden(canvas, item, x, y, s):
    base = item.template("bottle_type").rgb("bottle")
    grain = scale_rgb(base, 0.9)
    noise = OpenSimplex(seed=item.seed)
    # stretched vertically so the grain runs along the flask
    _diamond(canvas, x, y, s, lambda i, j: grain if noise.noise2(i * 0.4, j * 0.08) > 0.3 else base)


def draw_skin(canvas, item, x, y, s):
    _diamond(canvas, x, y, s, item.template("bottle_type").rgb("bottle"))


class BottleType(str, Enum):
    GLASS = "glass"
    CERAMIC = "ceramic"
    METAL = "metal"
    CRYSTAL = "crystal"
    WOODEN = "wooden"
    SKIN = "skin"


PAINTERS = {
    BottleType.GLASS: draw_glass,
    BottleType.CERAMIC: draw_ceramic,
    BottleType.METAL: draw_metal,
    BottleType.CRYSTAL: draw_crystal,
    BottleType.WOODEN: draw_wooden,
    BottleType.SKIN: draw_skin,
}
ensure_exhaustive(BottleType, PAINTERS)


class PotionCompositor(Compositor):
    archetypes = BottleType
    painters = PAINTERS

    def canvas_size(self, item):
        return 32, 48

    def scale(self, item):
        return item.template("size").attr("scale")

    def painter_key(self, item):
        return item.config["bottle_type"]

    def paint_secondary(self, canvas, item, x, y, s):
        canvas.fill(x, y - 16 * s, (-2 * s, 2 * s), (0, 3 * s), lambda i, j: True,
                    item.template("bottle_type").rgb("cork"))
        self.paint_liquid(canvas, item, x, y, s)
        if item.appearance["bubbles"]:
            self.paint_bubbles(canvas, item, x, y, s)
        if item.appearance["enchanted"]:
            apply_glow(canvas, hex_to_rgb(item.appearance["glow"]), sigma=1.0, strength=0.6)

    @staticmethod
    def inside_bottle(i, j, s):
        return abs(i) / (6 * s) + abs(j) / (16 * s) <= 0.9

    def paint_liquid(self, canvas, item, x, y, s):
        liquid = hex_to_rgb(item.appearance["liquid"])
        level = 2 * s
        canvas.fill(x, y, (-4 * s, 4 * s), (level, level + 20 * s),
                    lambda i, j: self.inside_bottle(i, j, s), liquid)

    def paint_bubbles(self, canvas, item, x, y, s):
        rng = self.rng_for(item, "bubbles")
        color = hex_to_rgb(item.appearance["bubble_color"])
        width, height, level = 8 * s, 20 * s, 2 * s
        for _ in range(rng.randint(3, 7)):
            bx = (rng.random() - 0.5) * width * 0.8
            by = level + rng.random() * height * 0.6
            radius = rng.random() * 2 + 1
            canvas.fill(x + bx, y + by, (-radius, radius), (-radius, radius),
                        lambda i, j: i * i + j * j <= radius * radius
                        and self.inside_bottle(bx + i, by + j, s),
                        color)


class PotionGenerator(ItemGenerator):
    composer = PotionComposer()
    compositor = PotionCompositor()
    themes = THEMES

    def __init__(self, **kwargs):
        kwargs.setdefault("name", "PotionGenerator")
        kwargs.setdefault("description", "Procedural potion sprites")
        super().__init__(**kwargs)

    def by_category(self, category: str):
        """Potion kinds in one category, in table order."""
        table = self.composer.table("type")
        return tuple(key for key in table if table.lookup(key).attr("category") == category)
