"""
Treasure chest generator.

Axes: type, size, quality, lock_type, plus the `is_open` option. Each chest
carries a seeded list of contents drawn from its type's treasure pool and
its quality's value band.
"""

import math
from enum import Enum

from opensimplex import OpenSimplex

from itemforge.composer import Effect, TemplateComposer
from itemforge.errors import ItemForgeError
from itemforge.families.quality import quality_table
from itemforge.generator import ItemGenerator
from itemforge.raster import BLACK, WHITE, Compositor, ensure_exhaustive, scale_rgb, span
from itemforge.templates import UNLIMITED, AxisTable, StatRules

TYPES = {
    "wooden": {
        "name": "Wooden Chest", "description": "A sturdy wooden chest",
        "base_values": {"value": 50, "durability": 100, "capacity": 20, "weight": 15},
        "colors": {"base": "#8B4513", "trim": "#654321", "lock": "#2F4F4F"},
        "features": ("wooden", "basic", "common", "breakable"),
    },
    "metal": {
        "name": "Metal Chest", "description": "A reinforced metal chest",
        "base_values": {"value": 200, "durability": 300, "capacity": 25, "weight": 35},
        "colors": {"base": "#708090", "trim": "#2F4F4F", "lock": "#FFD700"},
        "features": ("metal", "reinforced", "durable", "heavy"),
    },
    "ornate": {
        "name": "Ornate Chest", "description": "An elaborately decorated chest",
        "base_values": {"value": 1000, "durability": 150, "capacity": 30, "weight": 25},
        "colors": {"base": "#FFD700", "trim": "#B8860B", "lock": "#FF0000", "accent": "#FFD700"},
        "features": ("ornate", "decorative", "valuable", "elegant"),
    },
    "magical": {
        "name": "Magical Chest", "description": "A chest imbued with magical properties",
        "base_values": {"value": 5000, "durability": 500, "capacity": 40, "weight": 20},
        "colors": {"base": "#9370DB", "trim": "#4B0082", "lock": "#FF00FF",
                   "accent": "#FF00FF", "aura": "#DA70D6"},
        "features": ("magical", "enchanted", "mysterious", "powerful"),
    },
    "ancient": {
        "name": "Ancient Chest", "description": "An ancient relic chest",
        "base_values": {"value": 2000, "durability": 200, "capacity": 35, "weight": 30},
        "colors": {"base": "#8B7355", "trim": "#654321", "lock": "#8B0000"},
        "features": ("ancient", "historical", "fragile", "valuable"),
    },
    "pirate": {
        "name": "Pirate Chest", "description": "A weathered pirate treasure chest",
        "base_values": {"value": 300, "durability": 120, "capacity": 25, "weight": 20},
        "colors": {"base": "#654321", "trim": "#2F4F4F", "lock": "#FFD700"},
        "features": ("pirate", "weathered", "nautical", "treasure"),
    },
}

SIZES = {
    "small":  {"name": "Small", "prefix": "Small",
               "multipliers": {"value": 0.5, "weight": 0.5, "capacity": 0.6},
               "features": ("small", "portable", "compact"), "attributes": {"pixel_size": 32}},
    "medium": {"name": "Medium",
               "multipliers": {"value": 1.0, "weight": 1.0, "capacity": 1.0},
               "features": ("medium", "standard", "versatile"), "attributes": {"pixel_size": 48}},
    "large":  {"name": "Large", "prefix": "Large",
               "multipliers": {"value": 2.0, "weight": 2.0, "capacity": 1.8},
               "features": ("large", "spacious", "heavy"), "attributes": {"pixel_size": 64}},
    "huge":   {"name": "Huge", "prefix": "Huge",
               "multipliers": {"value": 4.0, "weight": 4.0, "capacity": 3.0},
               "features": ("huge", "massive", "immobile"), "attributes": {"pixel_size": 80}},
}

QUALITY_TIERS = {
    # prefix, value, durability, description, features
    "common":    ("", 1.0, 1.0, "A standard chest", ("common", "basic", "standard")),
    "uncommon":  ("Fine", 1.5, 1.1, "A well-crafted chest", ("uncommon", "improved", "quality")),
    "rare":      ("Rare", 2.5, 1.25, "A finely made chest", ("rare", "valuable", "superior")),
    "epic":      ("Epic", 4.0, 1.5, "A masterfully crafted chest", ("epic", "masterwork", "legendary")),
    "legendary": ("Legendary", 8.0, 2.0, "A legendary chest of great value",
                  ("legendary", "artifact", "mythical")),
    "mythical":  ("Mythical", 20.0, 3.0, "A mythical chest of unimaginable worth",
                  ("mythical", "divine", "ultimate")),
}

QUALITIES = quality_table({
    key: {"name": key.title(), "prefix": prefix, "description": description,
          "multipliers": {"value": value, "durability": durability}, "features": features}
    for key, (prefix, value, durability, description, features) in QUALITY_TIERS.items()
})

LOCKS = {
    "none":    {"name": "No Lock", "description": "No locking mechanism",
                "base_values": {"security": 0}, "attributes": {"complexity": 0},
                "features": ("unlocked", "open", "accessible")},
    "simple":  {"name": "Simple Lock", "description": "A basic locking mechanism",
                "base_values": {"security": 10}, "attributes": {"complexity": 1},
                "features": ("simple", "basic", "breakable")},
    "complex": {"name": "Complex Lock", "description": "An intricate locking mechanism",
                "base_values": {"security": 25}, "attributes": {"complexity": 3},
                "features": ("complex", "intricate", "secure")},
    "magical": {"name": "Magical Lock", "description": "A lock sealed by magic",
                "base_values": {"security": 50}, "attributes": {"complexity": 5},
                "features": ("magical", "enchanted", "powerful")},
    "cursed":  {"name": "Cursed Lock", "description": "A lock cursed with dark magic",
                "base_values": {"security": 75}, "attributes": {"complexity": 7},
                "features": ("cursed", "dangerous", "trapped")},
}

TREASURE_TYPES = {
    "wooden":  ("coins", "jewelry", "potions", "scrolls"),
    "metal":   ("coins", "gems", "weapons", "armor"),
    "ornate":  ("jewelry", "gems", "artifacts", "gold"),
    "magical": ("mana_crystals", "spellbooks", "artifacts", "enchanted_items"),
    "ancient": ("artifacts", "ancient_coins", "relics", "scrolls"),
    "pirate":  ("gold", "jewelry", "maps", "weapons"),
}

# [low, high) per quality
TREASURE_VALUES = {
    "common":    (1, 50),
    "uncommon":  (50, 200),
    "rare":      (200, 1000),
    "epic":      (1000, 5000),
    "legendary": (5000, 25000),
    "mythical":  (25000, 100000),
}

HINGE = (192, 192, 192)

THEMES = {
    "wooden":  {"type": "wooden", "lock_type": ["none", "simple"]},
    "metal":   {"type": "metal", "lock_type": ["simple", "complex"]},
    "ornate":  {"type": "ornate", "lock_type": ["complex", "magical"]},
    "magical": {"type": "magical", "lock_type": "magical"},
    "ancient": {"type": "ancient", "lock_type": ["complex", "cursed"]},
    "pirate":  {"type": "pirate", "lock_type": ["simple", "complex"]},
}


class ChestComposer(TemplateComposer):
    family = "chest"
    axes = (
        ("type", AxisTable.from_dict("type", TYPES, "wooden")),
        ("size", AxisTable.from_dict("size", SIZES, "medium")),
        ("quality", QUALITIES),
        ("lock_type", AxisTable.from_dict("lock_type", LOCKS, "simple")),
    )
    rules = StatRules()
    options = {"is_open": False}

    def name_suffix(self, templates, config):
        return "(Open)" if config.get("is_open") else ""

    def describe(self, templates, stats, config):
        lock = templates["lock_type"]
        lock_desc = f" secured with a {lock.name.lower()}" if config["lock_type"] != "none" else ""
        state = "open" if config.get("is_open") else "closed"
        return (f"{templates['quality'].description} made of "
                f"{templates['type'].description.lower()}{lock_desc}. The chest is {state}.")

    def build_appearance(self, templates, config):
        appearance = super().build_appearance(templates, config)
        appearance["is_open"] = bool(config.get("is_open"))
        return appearance

    def build_effects(self, templates, stats, config):
        effects = [
            Effect("treasure_value", stats["value"], UNLIMITED),
            Effect("storage_capacity", stats["capacity"], UNLIMITED),
        ]
        if stats["security"] > 0:
            effects.append(Effect("security", stats["security"], UNLIMITED))
        if "magical" in templates["type"].features:
            effects.append(Effect("magical_aura", 1, UNLIMITED))
        if config["lock_type"] == "magical":
            effects.append(Effect("magical_lock", 1, UNLIMITED))
        elif config["lock_type"] == "cursed":
            effects.append(Effect("cursed_lock", 1, UNLIMITED))
        return effects

    def build_extras(self, templates, stats, config, rng):
        capacity = stats["capacity"]
        pool = TREASURE_TYPES[config["type"]]
        low, high = TREASURE_VALUES[config["quality"]]
        count = min(capacity, rng.randrange(max(capacity, 1)) + 1)
        contents = [
            {"type": rng.choice(pool), "value": rng.randrange(low, high), "quantity": rng.randint(1, 5)}
            for _ in range(count)
        ]
        return {"contents": contents}


# --- Painters ---

def draw_box(canvas, item, x, y, s):
    """Body and lid shared by every chest; the lid rises when the chest is open."""
    base = item.template("type").rgb("base")

    body_w, body_h = 24 * s, 16 * s
    body_max = math.hypot(body_w, body_h)
    canvas.fill(x, y + body_h / 2, (-body_w, body_w), (-body_h, body_h),
                lambda i, j: math.hypot(i, j) <= body_max * 0.8,
                lambda i, j: scale_rgb(base, 1 - math.hypot(i, j) / body_max * 0.3))

    lid_w, lid_h = 22 * s, 8 * s
    lid_max = math.hypot(lid_w, lid_h)
    offset = -6 * s if item.config.get("is_open") else 0
    canvas.fill(x, y - lid_h / 2 + offset, (-lid_w, lid_w), (-lid_h, lid_h),
                lambda i, j: math.hypot(i, j) <= lid_max * 0.9,
                lambda i, j: scale_rgb(base, (1 - math.hypot(i, j) / lid_max * 0.2) * 0.9))


def draw_plain(canvas, item, x, y, s):
    draw_box(canvas, item, x, y, s)


def draw_ornate(canvas, item, x, y, s):
    draw_box(canvas, item, x, y, s)
    gold = item.template("type").rgb("accent")
    for cx in (x - 18 * s, x + 18 * s):
        for cy in (y - 6 * s, y + 6 * s):
            canvas.fill_manhattan(cx, cy, 2, gold)


def draw_magical(canvas, item, x, y, s):
    draw_box(canvas, item, x, y, s)
    rune = item.template("type").rgb("accent")
    for k in range(6):
        angle = k / 6 * math.pi * 2
        rx = x + math.cos(angle) * 16 * s
        ry = y + math.sin(angle) * 16 * s
        canvas.fill_rect(rx, ry, 1.5, -1, 2, rune)


def draw_ancient(canvas, item, x, y, s):
    draw_box(canvas, item, x, y, s)
    worn = scale_rgb(item.template("type").rgb("base"), 0.6)
    noise = OpenSimplex(seed=item.seed)
    for j in span(-12 * s, 12 * s, 4):
        for i in span(-20 * s, 20 * s, 4):
            if noise.noise2(i * 0.15, j * 0.15) > 0.2:
                canvas.put(x + i, y + j, worn)


def draw_pirate(canvas, item, x, y, s):
    draw_box(canvas, item, x, y, s)
    canvas.fill(x, y - 10 * s, (-3, 4), (-2, 3),
                lambda i, j: abs(i) <= 2 and abs(j) <= 1.5, WHITE)


class ChestType(str, Enum):
    WOODEN = "wooden"
    METAL = "metal"
    ORNATE = "ornate"
    MAGICAL = "magical"
    ANCIENT = "ancient"
    PIRATE = "pirate"


PAINTERS = {
    ChestType.WOODEN: draw_plain,
    ChestType.METAL: draw_plain,
    ChestType.ORNATE: draw_ornate,
    ChestType.MAGICAL: draw_magical,
    ChestType.ANCIENT: draw_ancient,
    ChestType.PIRATE: draw_pirate,
}
ensure_exhaustive(ChestType, PAINTERS)


class ChestCompositor(Compositor):
    archetypes = ChestType
    painters = PAINTERS
    reference_size = 48

    def canvas_size(self, item):
        pixel_size = item.template("size").attr("pixel_size")
        return pixel_size * 4 // 3, pixel_size

    def paint_secondary(self, canvas, item, x, y, s):
        for hx in (x - 16 * s, x + 16 * s):
            canvas.fill(hx, y, (-1, 2), (-6, 7), lambda i, j: True, HINGE)
        if item.config["lock_type"] == "none":
            return
        lock = item.template("type").rgb("lock")
        size = 4 * s
        canvas.fill(x, y - 8 * s, (-size, size), (-size, size), lambda i, j: True, lock)
        canvas.fill(x, y - 8 * s, (-1, 2), (-2, 3), lambda i, j: abs(i) <= 0.5 and abs(j) <= 1.5, BLACK)


class ChestGenerator(ItemGenerator):
    composer = ChestComposer()
    compositor = ChestCompositor()
    themes = THEMES

    def __init__(self, **kwargs):
        kwargs.setdefault("name", "TreasureChestGenerator")
        kwargs.setdefault("description", "Procedural treasure chests with seeded contents")
        super().__init__(**kwargs)

    def _toggle(self, source, is_open: bool, **kwargs):
        item = self.item_for(source)
        if bool(item.config.get("is_open")) == is_open:
            state = "open" if is_open else "closed"
            raise ItemForgeError(f"Chest is already {state}", item.config)
        # pin the seed so the contents survive the state change
        config = dict(item.config, is_open=is_open, seed=item.seed)
        return self.generate(config, **kwargs)

    def open_chest(self, source, **kwargs):
        return self._toggle(source, True, **kwargs)

    def close_chest(self, source, **kwargs):
        return self._toggle(source, False, **kwargs)

    def total_treasure_value(self, source) -> int:
        contents = self.item_for(source).extras.get("contents", [])
        return sum(entry["value"] * entry["quantity"] for entry in contents)

    def capacity_info(self, source):
        item = self.item_for(source)
        used = len(item.extras.get("contents", []))
        total = item.stats["capacity"]
        return {
            "used": used,
            "total": total,
            "available": total - used,
            "percentage": round(used / total * 100) if total else 0,
        }
