"""
Mount gear generator: saddles, bridles, armour and the rider's own kit.

Gear is validated against the mount it is made for. Rider items (boots,
spurs, care kits) are worn or carried by the rider and fit any mount.
"""

import math
from enum import Enum

from itemforge.composer import Effect, TemplateComposer
from itemforge.errors import ConfigValidationError
from itemforge.families.quality import quality_table
from itemforge.generator import ItemGenerator
from itemforge.raster import Compositor, ensure_exhaustive, scale_rgb, span
from itemforge.templates import UNLIMITED, AxisTable, StatRules

TYPES = {
    "saddle": {
        "name": "Saddle", "description": "A riding saddle for mounts",
        "base_values": {"value": 150, "durability": 200, "weight": 25, "comfort": 8},
        "colors": {"base": "#8B4513", "trim": "#654321", "accent": "#DAA520"},
        "features": ("riding_support", "comfortable", "secure", "adjustable"),
    },
    "bridle": {
        "name": "Bridle", "description": "Headgear and reins for mount control",
        "base_values": {"value": 80, "durability": 150, "weight": 8, "control": 9},
        "colors": {"base": "#654321", "trim": "#8B4513", "accent": "#C0C0C0"},
        "features": ("mount_control", "reins", "bit", "headgear"),
    },
    "saddlebags": {
        "name": "Saddlebags", "description": "Storage bags attached to saddle",
        "base_values": {"value": 120, "durability": 120, "weight": 15, "capacity": 40},
        "colors": {"base": "#8B4513", "trim": "#654321", "accent": "#C0C0C0"},
        "features": ("storage", "cargo", "balanced", "accessible"),
    },
    "riding_boots": {
        "name": "Riding Boots", "description": "Protective boots for riders",
        "base_values": {"value": 200, "durability": 180, "weight": 12, "protection": 6},
        "colors": {"base": "#654321", "trim": "#000000", "accent": "#FFD700"},
        "features": ("rider_protection", "comfortable", "durable", "stylish"),
    },
    "spurs": {
        "name": "Spurs", "description": "Metal attachments for rider control",
        "base_values": {"value": 100, "durability": 250, "weight": 3, "control_bonus": 3},
        "colors": {"base": "#C0C0C0", "trim": "#8B4513", "accent": "#FFD700"},
        "features": ("mount_control", "precision", "traditional", "sharp"),
    },
    "mount_armor": {
        "name": "Mount Armor", "description": "Protective armor for mounts",
        "base_values": {"value": 800, "durability": 400, "weight": 80, "defense": 12},
        "colors": {"base": "#696969", "trim": "#C0C0C0", "accent": "#FFD700"},
        "features": ("mount_protection", "reinforced", "battle_ready", "intimidating"),
    },
    "blanket": {
        "name": "Blanket", "description": "Protective and decorative blanket",
        "base_values": {"value": 60, "durability": 100, "weight": 10, "warmth": 5},
        "colors": {"base": "#DC143C", "trim": "#FFD700", "accent": "#000000"},
        "features": ("warmth", "decoration", "protection", "comfort"),
    },
    "care_items": {
        "name": "Care Items", "description": "Tools and items for mount care",
        "base_values": {"value": 40, "durability": 80, "weight": 5, "care_bonus": 4},
        "colors": {"base": "#8B4513", "trim": "#C0C0C0", "accent": "#654321"},
        "features": ("mount_care", "grooming", "health", "maintenance"),
    },
}

SIZES = {
    "small":  {"name": "Small", "prefix": "Small",
               "multipliers": {"value": 0.7, "weight": 0.7, "capacity": 0.6},
               "features": ("small", "lightweight", "compact"), "attributes": {"pixel_size": 24}},
    "medium": {"name": "Medium",
               "multipliers": {"value": 1.0, "weight": 1.0, "capacity": 1.0},
               "features": ("medium", "standard", "versatile"), "attributes": {"pixel_size": 32}},
    "large":  {"name": "Large", "prefix": "Large",
               "multipliers": {"value": 1.5, "weight": 1.5, "capacity": 1.8},
               "features": ("large", "spacious", "heavy"), "attributes": {"pixel_size": 40}},
    "heavy":  {"name": "Heavy", "prefix": "Heavy",
               "multipliers": {"value": 2.5, "weight": 2.5, "capacity": 3.0},
               "features": ("heavy", "massive", "reinforced"), "attributes": {"pixel_size": 48}},
}

QUALITY_TIERS = {
    # prefix, stat, value, durability, description, features
    "common":    ("", 1.0, 1.0, 1.0, "A standard piece of mount gear",
                  ("common", "standard", "serviceable")),
    "uncommon":  ("Fine", 1.2, 1.5, 1.1, "A well-crafted piece of mount gear",
                  ("uncommon", "well_made", "reliable")),
    "rare":      ("Rare", 1.5, 2.5, 1.25, "A finely made piece of mount gear",
                  ("rare", "exceptional", "high_quality")),
    "epic":      ("Epic", 2.0, 4.0, 1.5, "A masterfully crafted piece of mount gear",
                  ("epic", "masterwork", "elite")),
    "legendary": ("Legendary", 3.0, 8.0, 2.0, "A legendary piece of mount gear",
                  ("legendary", "artifact", "legendary")),
    "mythical":  ("Mythical", 5.0, 20.0, 3.0, "A mythical piece of mount gear",
                  ("mythical", "divine", "ultimate")),
}

# quality scales every gear-specific stat except cargo capacity
GEAR_STATS = ("comfort", "control", "protection", "control_bonus", "defense", "warmth", "care_bonus")

QUALITIES = quality_table({
    key: {
        "name": key.title(), "prefix": prefix, "description": description, "features": features,
        "multipliers": dict({stat_name: stat for stat_name in GEAR_STATS},
                            value=value, durability=durability),
    }
    for key, (prefix, stat, value, durability, description, features) in QUALITY_TIERS.items()
})

MOUNT_GEAR = ("saddle", "bridle", "saddlebags", "blanket", "mount_armor")
RIDER_GEAR = ("riding_boots", "spurs", "care_items")

MOUNTS = {
    "horse":   {"name": "Horse", "attributes": {"gear": MOUNT_GEAR}},
    "unicorn": {"name": "Unicorn", "attributes": {"gear": MOUNT_GEAR}},
    "pegasus": {"name": "Pegasus", "attributes": {"gear": MOUNT_GEAR}},
    "dragon":  {"name": "Dragon", "attributes": {"gear": ("saddle", "bridle", "saddlebags", "mount_armor")}},
    "griffin": {"name": "Griffin", "attributes": {"gear": ("saddle", "bridle", "saddlebags", "mount_armor")}},
    "wolf":    {"name": "Wolf", "attributes": {"gear": ("saddle", "bridle", "saddlebags", "blanket")}},
    "bear":    {"name": "Bear", "attributes": {"gear": ("saddle", "bridle", "saddlebags", "blanket")}},
}

# stat -> effect type
STAT_EFFECTS = (
    ("comfort", "rider_comfort"),
    ("control", "mount_control"),
    ("capacity", "cargo_capacity"),
    ("protection", "rider_protection"),
    ("control_bonus", "control_bonus"),
    ("defense", "mount_defense"),
    ("warmth", "warmth"),
    ("care_bonus", "mount_health"),
)

THEMES = {
    "riding":  {"type": "saddle", "mount_type": ["horse", "unicorn", "pegasus"]},
    "combat":  {"type": "mount_armor", "mount_type": ["horse", "dragon", "griffin"]},
    "luxury":  {"type": "blanket", "mount_type": ["horse", "unicorn", "pegasus"]},
    "utility": {"type": "saddlebags", "mount_type": ["horse", "wolf", "bear"]},
}


def fits(gear: str, mount_template) -> bool:
    return gear in RIDER_GEAR or gear in mount_template.attr("gear", ())


class MountGearComposer(TemplateComposer):
    family = "mount_gear"
    axes = (
        ("type", AxisTable.from_dict("type", TYPES, "saddle")),
        ("size", AxisTable.from_dict("size", SIZES, "medium")),
        ("quality", QUALITIES),
        ("mount_type", AxisTable.from_dict("mount_type", MOUNTS, "horse")),
    )
    rules = StatRules()

    def check_structure(self, templates, config):
        gear, mount = config["type"], config["mount_type"]
        if not fits(gear, templates["mount_type"]):
            raise ConfigValidationError(
                f"Gear type {gear} is not compatible with mount {mount}", config,
                field="mount_type", value=mount,
            )

    def compatible_mounts(self, gear: str):
        table = self.table("mount_type")
        return [key for key in table if fits(gear, table.lookup(key))]

    def describe(self, templates, stats, config):
        return (f"{templates['quality'].description} designed for {config['mount_type']}s. "
                f"{templates['type'].description}.")

    def build_effects(self, templates, stats, config):
        effects = [
            Effect("gear_value", stats["value"], UNLIMITED),
            Effect("durability", stats["durability"], UNLIMITED),
        ]
        for stat, effect in STAT_EFFECTS:
            if stats.get(stat):
                effects.append(Effect(effect, stats[stat], UNLIMITED))
        return effects

    def build_extras(self, templates, stats, config, rng):
        return {"compatible_mounts": self.compatible_mounts(config["type"])}


# --- Painters ---

def _colors(item):
    gear = item.template("type")
    return gear.rgb("base"), gear.rgb("trim"), gear.rgb("accent")


def draw_saddle(canvas, item, x, y, s):
    base, trim, _ = _colors(item)
    w, h = 24 * s, 12 * s
    reach = math.hypot(w, h)
    canvas.fill_rect(x, y, w, -h, h, lambda i, j: scale_rgb(base, 1 - math.hypot(i, j) / reach * 0.3))
    # horn
    canvas.fill(x, y - 6 * s, (-2, 3), (-4, 1), lambda i, j: abs(i) <= 1.5 and j >= -3, trim)


def draw_bridle(canvas, item, x, y, s):
    base, leather, metal = _colors(item)
    canvas.fill(x, y, (-16 * s, 16 * s), (-1, 2), lambda i, j: True, base)
    for i in range(-4, 5):
        canvas.put(x + i, y + 3, metal)
    canvas.fill(x, y + 2, (-20 * s, -16 * s), (-1, 2), lambda i, j: True, leather)


def draw_saddlebags(canvas, item, x, y, s):
    base, _, buckle = _colors(item)
    w, h = 8 * s, 12 * s
    canvas.fill(x - 6 * s, y, (-w, 0), (-h, h), lambda i, j: True, base)
    canvas.fill(x + 6 * s, y, (0, w), (-h, h), lambda i, j: True, base)
    for bx in (x - 6 * s, x + 6 * s):
        canvas.fill(bx, y - 8 * s, (-1, 2), (-1, 2), lambda i, j: True, buckle)


def draw_riding_boots(canvas, item, x, y, s):
    base, trim, _ = _colors(item)
    w, h = 6 * s, 16 * s
    canvas.fill(x - 4 * s, y, (-w, 0), (-h, h), lambda i, j: True, base)
    canvas.fill(x + 4 * s, y, (0, w), (-h, h), lambda i, j: True, base)
    # soles
    canvas.fill(x - 4 * s, y + h - 2, (-w, 0), (0, 2), lambda i, j: True, trim)
    canvas.fill(x + 4 * s, y + h - 2, (0, w), (0, 2), lambda i, j: True, trim)


def draw_spurs(canvas, item, x, y, s):
    base, _, sharp = _colors(item)
    for side in (-1, 1):
        canvas.fill(x + side * 6 * s, y, (-3, 4), (-2, 3), lambda i, j: abs(i) + abs(j) <= 3, base)
        canvas.fill_manhattan(x + side * 8 * s, y - 3, 1, sharp)


def draw_mount_armor(canvas, item, x, y, s):
    base, trim, _ = _colors(item)
    w, h = 28 * s, 20 * s
    reach = math.hypot(w, h)
    canvas.fill_rect(x, y, w, -h, h, lambda i, j: scale_rgb(base, 1 - math.hypot(i, j) / reach * 0.2))
    for i in span(-w, w):
        canvas.put(x + i, y - h + 2, trim)


def draw_blanket(canvas, item, x, y, s):
    base, _, pattern = _colors(item)
    w, h = 26 * s, 18 * s
    canvas.fill_rect(x, y, w, -h, h, base)
    for i in span(-w, w, 4):
        for j in span(-h, h, 4):
            if int(i + j) % 8 == 0:
                canvas.put(x + i, y + j, pattern)


def draw_care_items(canvas, item, x, y, s):
    base, _, bristle = _colors(item)
    canvas.fill(x, y, (-8, 8), (-1, 2), lambda i, j: True, base)
    for i in range(-6, 6, 2):
        for j in range(-4, 0):
            canvas.put(x + i, y + j, bristle)


class GearType(str, Enum):
    SADDLE = "saddle"
    BRIDLE = "bridle"
    SADDLEBAGS = "saddlebags"
    RIDING_BOOTS = "riding_boots"
    SPURS = "spurs"
    MOUNT_ARMOR = "mount_armor"
    BLANKET = "blanket"
    CARE_ITEMS = "care_items"


PAINTERS = {
    GearType.SADDLE: draw_saddle,
    GearType.BRIDLE: draw_bridle,
    GearType.SADDLEBAGS: draw_saddlebags,
    GearType.RIDING_BOOTS: draw_riding_boots,
    GearType.SPURS: draw_spurs,
    GearType.MOUNT_ARMOR: draw_mount_armor,
    GearType.BLANKET: draw_blanket,
    GearType.CARE_ITEMS: draw_care_items,
}
ensure_exhaustive(GearType, PAINTERS)


class MountGearCompositor(Compositor):
    archetypes = GearType
    painters = PAINTERS
    reference_size = 32

    def canvas_size(self, item):
        return 64, 48


class MountGearGenerator(ItemGenerator):
    composer = MountGearComposer()
    compositor = MountGearCompositor()
    themes = THEMES

    def __init__(self, **kwargs):
        kwargs.setdefault("name", "MountGearGenerator")
        kwargs.setdefault("description", "Procedural mount equipment sprites")
        super().__init__(**kwargs)

    def is_compatible(self, gear: str, mount: str) -> bool:
        return not self.composer.config_errors({"type": gear, "mount_type": mount})

    def compatible_gear(self, mount: str):
        return [gear for gear in self.archetypes() if self.is_compatible(gear, mount)]

    def compatible_mounts(self, gear: str):
        return self.composer.compatible_mounts(gear)
