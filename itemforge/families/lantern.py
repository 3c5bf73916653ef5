"""
Lantern generator.

Seven axes: type, flame_type, size, quality, material, fuel, glass_type.
The type supplies the light stats, the material supplies durability and
weight, the fuel stretches the burn time (eternal fuel never runs out) and
the flame scales brightness. Sprites are drawn on a tall canvas, frame
first, then glass panels and the flame on top.
"""

import math
from enum import Enum

from itemforge.composer import Effect, TemplateComposer, round_half_up
from itemforge.families.quality import quality_table
from itemforge.generator import ItemGenerator
from itemforge.raster import Compositor, draw_flame, ensure_exhaustive, scale_rgb, span
from itemforge.templates import UNLIMITED, AxisTable, StatRules, hex_to_rgb

# --- Lantern types ---
# frame: main silhouette colour, detail: chains / handles / runes / ribs
# body: (half width, top, height) of the glass housing in scale units
# flame: (pattern, half width, height, base offset) in scale units

TYPES = {
    "hanging_lantern": {
        "name": "Hanging Lantern",
        "description": "Lantern suspended from chains or ropes for overhead lighting",
        "base_values": {"brightness": 18, "duration": 240, "fuel_consumption": 1,
                        "light_radius": 10, "weather_resistance": 6},
        "colors": {"frame": "#8B4513", "detail": "#2F4F4F"},
        "features": ("suspended", "overhead_light", "swaying"),
        "attributes": {"body": (7, 0, 20), "flame": ("flickering", 3, 6, 14)},
    },
    "portable_lantern": {
        "name": "Portable Lantern",
        "description": "Handheld lantern for exploration and travel",
        "base_values": {"brightness": 14, "duration": 180, "fuel_consumption": 2,
                        "light_radius": 7, "weather_resistance": 4},
        "colors": {"frame": "#2F4F4F", "detail": "#654321"},
        "features": ("handheld", "portable", "exploration"),
        "attributes": {"body": (6, 0, 16), "flame": ("flickering", 3, 6, 12)},
    },
    "storm_lantern": {
        "name": "Storm Lantern",
        "description": "Weatherproof lantern built to stay lit in wind and rain",
        "base_values": {"brightness": 16, "duration": 300, "fuel_consumption": 1,
                        "light_radius": 8, "weather_resistance": 10},
        "colors": {"frame": "#654321", "detail": "#2F4F4F"},
        "features": ("weatherproof", "durable", "nautical"),
        "attributes": {"body": (7, 4, 18), "flame": ("steady", 3, 6, 18)},
    },
    "street_lantern": {
        "name": "Street Lantern",
        "description": "Tall lantern mounted on a pole to light public streets",
        "base_values": {"brightness": 22, "duration": 360, "fuel_consumption": 2,
                        "light_radius": 12, "weather_resistance": 8},
        "colors": {"frame": "#654321", "detail": "#2F4F4F"},
        "features": ("public", "street_light", "communal"),
        "attributes": {"body": (6, 0, 14), "flame": ("flickering", 3, 6, 11)},
    },
    "magic_lantern": {
        "name": "Magic Lantern",
        "description": "Enchanted orb of light that never needs refuelling",
        "base_values": {"brightness": 25, "duration": UNLIMITED, "fuel_consumption": 0,
                        "light_radius": 11, "weather_resistance": 12},
        "colors": {"frame": "#9370DB", "detail": "#FFD700"},
        "features": ("magical", "eternal", "enchanted"),
        "attributes": {"body": None, "flame": ("pulsing", 6, 6, 15)},
    },
    "paper_lantern": {
        "name": "Paper Lantern",
        "description": "Delicate paper lantern stretched over bamboo ribs",
        "base_values": {"brightness": 12, "duration": 120, "fuel_consumption": 3,
                        "light_radius": 6, "weather_resistance": 2},
        "colors": {"frame": "#F5DEB3", "detail": "#8B4513"},
        "features": ("delicate", "ornamental", "festive"),
        "attributes": {"body": None, "flame": ("gentle", 4, 8, 14)},
    },
    "crystal_lantern": {
        "name": "Crystal Lantern",
        "description": "Faceted crystal housing that scatters the light",
        "base_values": {"brightness": 20, "duration": 280, "fuel_consumption": 1,
                        "light_radius": 9, "weather_resistance": 7},
        "colors": {"frame": "#E6E6FA", "detail": "#B0E0E6"},
        "features": ("elegant", "crystal", "refined"),
        "attributes": {"body": (5, 0, 16), "flame": ("flickering", 3, 6, 11)},
    },
    "skeleton_lantern": {
        "name": "Skeleton Lantern",
        "description": "Cage of bones with a flame burning inside",
        "base_values": {"brightness": 15, "duration": 200, "fuel_consumption": 2,
                        "light_radius": 7, "weather_resistance": 5},
        "colors": {"frame": "#F5F5DC", "detail": "#2F2F2F"},
        "features": ("macabre", "bone", "dark"),
        "attributes": {"body": (7, 0, 18), "flame": ("flickering", 3, 6, 13)},
    },
}

FLAMES = {
    "normal": {
        "name": "Normal Flame",
        "description": "An ordinary warm flame",
        "multipliers": {"brightness": 1.0},
        "base_values": {"stability": 0.8},
        "colors": {"core": "#FF4500", "mid": "#FFA500", "outer": "#FFFF00"},
        "features": ("flickering", "warm", "natural"),
        "attributes": {"intensity": 1.0, "magical": False},
    },
    "magical": {
        "name": "Magical Flame",
        "description": "A cold arcane flame",
        "multipliers": {"brightness": 1.5},
        "base_values": {"stability": 1.0},
        "colors": {"core": "#9370DB", "mid": "#00FFFF", "outer": "#FFFFFF"},
        "features": ("arcane", "cold_light", "mystical"),
        "attributes": {"intensity": 1.5, "magical": True},
    },
    "colored": {
        "name": "Colored Flame",
        "description": "A flame burning in shifting colours",
        "multipliers": {"brightness": 1.2},
        "base_values": {"stability": 0.9},
        "colors": {"core": "#FF1493", "mid": "#00FF00", "outer": "#4169E1"},
        "features": ("colorful", "festive", "alchemical"),
        "attributes": {"intensity": 1.2, "magical": True},
    },
    "eternal": {
        "name": "Eternal Flame",
        "description": "A flame that never dies",
        "multipliers": {"brightness": 1.8},
        "base_values": {"stability": 1.0},
        "colors": {"core": "#FFD700", "mid": "#FFFFFF", "outer": "#F0F8FF"},
        "features": ("eternal", "radiant", "holy"),
        "attributes": {"intensity": 1.8, "magical": True},
    },
    "unstable": {
        "name": "Unstable Flame",
        "description": "A violent flame that sputters and flares",
        "multipliers": {"brightness": 2.0},
        "base_values": {"stability": 0.3},
        "colors": {"core": "#8B0000", "mid": "#FF0000", "outer": "#FFFF00"},
        "features": ("volatile", "dangerous", "intense"),
        "attributes": {"intensity": 2.0, "magical": True},
    },
    "soulfire": {
        "name": "Soulfire",
        "description": "A flame fed on trapped souls",
        "multipliers": {"brightness": 1.3},
        "base_values": {"stability": 0.9},
        "colors": {"core": "#2F2F2F", "mid": "#8B0000", "outer": "#DC143C"},
        "features": ("necrotic", "haunting", "dark_magic"),
        "attributes": {"intensity": 1.3, "magical": True},
    },
}

SIZES = {
    "small": {
        "name": "Small", "prefix": "Small",
        "multipliers": {"brightness": 0.7, "duration": 0.8, "light_radius": 0.6, "weight": 0.6},
        "features": ("small", "discreet", "compact"),
        "attributes": {"pixel_size": 20},
    },
    "medium": {
        "name": "Medium",
        "multipliers": {"brightness": 1.0, "duration": 1.0, "light_radius": 1.0, "weight": 1.0},
        "features": ("medium", "standard", "balanced"),
        "attributes": {"pixel_size": 30},
    },
    "large": {
        "name": "Large", "prefix": "Large",
        "multipliers": {"brightness": 1.3, "duration": 1.2, "light_radius": 1.5, "weight": 1.5},
        "features": ("large", "prominent", "powerful"),
        "attributes": {"pixel_size": 40},
    },
    "extra_large": {
        "name": "Extra Large", "prefix": "Grand",
        "multipliers": {"brightness": 1.8, "duration": 1.5, "light_radius": 2.2, "weight": 2.2},
        "features": ("extra_large", "massive", "dominant"),
        "attributes": {"pixel_size": 50},
    },
}


def _quality(name, prefix, stat, bright, duration, description, features):
    return {
        "name": name, "prefix": prefix, "description": description,
        "multipliers": {"brightness": bright, "duration": duration,
                        "fuel_consumption": stat, "light_radius": stat},
        "features": features,
    }


QUALITIES = quality_table({
    "common":    _quality("Common", "", 1.0, 1.0, 1.0, "A standard lantern",
                          ("common", "standard", "reliable")),
    "uncommon":  _quality("Uncommon", "Fine", 1.2, 1.1, 1.3, "A well-crafted lantern",
                          ("uncommon", "enhanced", "improved")),
    "rare":      _quality("Rare", "Ornate", 1.5, 1.3, 1.8, "An ornate lantern",
                          ("rare", "exceptional", "superior")),
    "epic":      _quality("Epic", "Magnificent", 2.0, 1.6, 2.5, "A magnificent lantern",
                          ("epic", "masterwork", "elite")),
    "legendary": _quality("Legendary", "Legendary", 3.0, 2.0, 4.0, "A legendary lantern",
                          ("legendary", "artifact", "legendary")),
    "mythical":  _quality("Mythical", "Mythical", 5.0, 3.0, 8.0, "A mythical lantern",
                          ("mythical", "divine", "ultimate")),
})

MATERIALS = {
    "metal":   {"name": "Metal", "base_values": {"durability": 250, "heat_resistance": 120,
                                                 "weight": 20, "transparency": 0.0},
                "features": ("durable", "conductive", "heavy")},
    "glass":   {"name": "Glass", "base_values": {"durability": 80, "heat_resistance": 40,
                                                 "weight": 8, "transparency": 0.9},
                "features": ("transparent", "fragile", "clear")},
    "wood":    {"name": "Wood", "base_values": {"durability": 120, "heat_resistance": 30,
                                                "weight": 12, "transparency": 0.0},
                "features": ("natural", "flexible", "warm")},
    "paper":   {"name": "Paper", "base_values": {"durability": 30, "heat_resistance": 10,
                                                 "weight": 2, "transparency": 0.7},
                "features": ("delicate", "flexible", "ornamental")},
    "crystal": {"name": "Crystal", "base_values": {"durability": 180, "heat_resistance": 80,
                                                   "weight": 15, "transparency": 0.95},
                "features": ("pure", "amplifying", "elegant")},
    "bone":    {"name": "Bone", "base_values": {"durability": 100, "heat_resistance": 50,
                                                "weight": 6, "transparency": 0.3},
                "features": ("organic", "ritualistic", "macabre")},
    "magical": {"name": "Magical", "base_values": {"durability": 400, "heat_resistance": 200,
                                                   "weight": 5, "transparency": 0.8},
                "features": ("magical", "eternal", "mystical")},
}

# burn_time in minutes; duration multiplier is burn_time / 60
FUELS = {
    "oil":        {"name": "Oil", "burn_time": 240, "brightness": 1.0, "smoke": 3,
                   "features": ("clean", "bright", "efficient")},
    "wax":        {"name": "Wax", "burn_time": 300, "brightness": 0.9, "smoke": 1,
                   "features": ("clean", "steady", "long_burning")},
    "magical":    {"name": "Magical Essence", "burn_time": 400, "brightness": 1.4, "smoke": 0,
                   "features": ("magical", "bright", "smokeless")},
    "eternal":    {"name": "Eternal Ember", "burn_time": UNLIMITED, "brightness": 1.6, "smoke": 0,
                   "features": ("eternal", "divine", "perfect")},
    "soul":       {"name": "Soul Essence", "burn_time": 500, "brightness": 1.2, "smoke": 8,
                   "features": ("soul_bound", "dark", "powerful")},
    "alchemical": {"name": "Alchemical Oil", "burn_time": 350, "brightness": 1.3, "smoke": 2,
                   "features": ("chemical", "bright", "unstable")},
}


def _fuel(spec):
    burn = spec["burn_time"]
    return {
        "name": spec["name"],
        "multipliers": {"brightness": spec["brightness"],
                        "duration": UNLIMITED if burn == UNLIMITED else burn / 60},
        "base_values": {"smoke": spec["smoke"]},
        "features": spec["features"],
        "attributes": {"burn_time": burn},
    }


GLASS = {
    "clear":    {"name": "Clear Glass", "colors": {"tint": "#FFFFFF"}, "attributes": {"opacity": 0.1}},
    "frosted":  {"name": "Frosted Glass", "colors": {"tint": "#F5F5F5"}, "attributes": {"opacity": 0.3}},
    "colored":  {"name": "Colored Glass", "colors": {"tint": "#87CEEB"}, "attributes": {"opacity": 0.2}},
    "stained":  {"name": "Stained Glass", "colors": {"tint": "#9370DB"}, "attributes": {"opacity": 0.25}},
    "magical":  {"name": "Magical Glass", "colors": {"tint": "#00FFFF"}, "attributes": {"opacity": 0.15}},
}

THEMES = {
    "dungeon":  {"material": "metal", "fuel": "oil", "flame_type": "normal", "glass_type": "frosted"},
    "castle":   {"material": "metal", "fuel": "wax", "flame_type": "normal", "glass_type": "clear"},
    "magical":  {"material": "magical", "fuel": "magical", "flame_type": "magical", "glass_type": "magical"},
    "noble":    {"material": "crystal", "fuel": "wax", "flame_type": "normal", "glass_type": "stained"},
    "nautical": {"type": "storm_lantern", "material": "metal", "fuel": "oil",
                 "flame_type": "normal", "glass_type": "clear"},
    "festive":  {"material": "paper", "fuel": "wax", "flame_type": "colored", "glass_type": "colored"},
}


class LanternComposer(TemplateComposer):
    family = "lantern"
    axes = (
        ("type", AxisTable.from_dict("type", TYPES, "hanging_lantern")),
        ("flame_type", AxisTable.from_dict("flame_type", FLAMES, "normal")),
        ("size", AxisTable.from_dict("size", SIZES, "medium")),
        ("quality", QUALITIES),
        ("material", AxisTable.from_dict("material", MATERIALS, "metal")),
        ("fuel", AxisTable.from_dict("fuel", {k: _fuel(v) for k, v in FUELS.items()}, "oil")),
        ("glass_type", AxisTable.from_dict("glass_type", GLASS, "clear")),
    )
    rules = StatRules(ratios={"stability", "transparency"}, unlimited={"duration"})

    def name_suffix(self, templates, config):
        return f"with {templates['flame_type'].name}"

    def describe(self, templates, stats, config):
        return (f"{templates['quality'].description} made of {templates['material'].name.lower()} "
                f"fueled by {templates['fuel'].name.lower()}. {templates['type'].description}.")

    def build_appearance(self, templates, config):
        appearance = super().build_appearance(templates, config)
        appearance["primary_color"] = templates["flame_type"].colors["core"]
        appearance["secondary_color"] = "#C0C0C0" if config["material"] == "metal" else "#8B4513"
        appearance["glass_color"] = templates["glass_type"].colors["tint"]
        appearance["glass_opacity"] = templates["glass_type"].attr("opacity")
        return appearance

    def build_effects(self, templates, stats, config):
        flame = templates["flame_type"]
        brightness = stats["brightness"]
        effects = [
            Effect("light_source", brightness, stats["duration"], radius=stats["light_radius"]),
            Effect("heat_source", round_half_up(brightness * 0.3), stats["duration"]),
        ]
        if flame.attr("magical"):
            effects.append(Effect("magical_illumination",
                                  round_half_up(brightness * flame.attr("intensity")), stats["duration"]))
        effects.append(Effect("weather_resistance", stats["weather_resistance"], UNLIMITED))
        return effects

    def build_extras(self, templates, stats, config, rng):
        flame = templates["flame_type"]
        return {
            "light_data": {
                "brightness": stats["brightness"],
                "radius": stats["light_radius"],
                "color": flame.colors["core"],
                "flicker": stats["stability"] < 1.0,
                "magical": flame.attr("magical"),
                "duration": stats["duration"],
                "fuel_consumption": stats["fuel_consumption"],
                "weather_resistance": stats["weather_resistance"],
            }
        }


# --- Painters ---
# (x, y) is the top centre of the lantern body; the body hangs downward.

def draw_hanging(canvas, item, x, y, s):
    colors = item.template("type")
    frame, chain = colors.rgb("frame"), colors.rgb("detail")
    for side in (-1, 1):
        cx = x + side * 7 * s * 0.6
        for j in span(-8 * s, 0):
            canvas.put(cx, y + j, chain)
    canvas.fill_rect(x, y, 8 * s, -9 * s, -8 * s, chain)
    canvas.fill_trapezoid(x, y, 12 * s, 14 * s, 20 * s, frame, window=8 * s)


def draw_portable(canvas, item, x, y, s):
    colors = item.template("type")
    body, handle = colors.rgb("frame"), colors.rgb("detail")
    # arched handle
    for i in span(-6 * s, 6 * s):
        arch = math.sqrt(max(0.0, 36 * s * s - i * i)) * 0.6
        canvas.put(x + i, y - arch, handle)
        canvas.put(x + i, y - arch - 1, handle)
    canvas.fill_rect(x, y, 6 * s, 0, 16 * s, body)


def draw_storm(canvas, item, x, y, s):
    colors = item.template("type")
    body, guard = colors.rgb("frame"), colors.rgb("detail")
    canvas.fill_rect(x, y, 8 * s, 0, 4 * s, guard)
    canvas.fill_rect(x, y, 7 * s, 4 * s, 22 * s, body)
    # wire guard bars over the glass
    for i in (-4 * s, 0, 4 * s):
        for j in span(6 * s, 20 * s):
            canvas.put(x + i, y + j, guard)


def draw_street(canvas, item, x, y, s):
    colors = item.template("type")
    body, pole = colors.rgb("frame"), colors.rgb("detail")
    canvas.fill_rect(x, y, 1.5 * s, 14 * s, 39 * s, pole)
    canvas.fill_rect(x, y, 8 * s, -2 * s, 0, pole)
    canvas.fill_rect(x, y, 6 * s, 0, 14 * s, body)


def draw_magic(canvas, item, x, y, s):
    colors = item.template("type")
    orb, rune = colors.rgb("frame"), colors.rgb("detail")
    radius = 12 * s
    cy = y + radius
    canvas.fill_circle(x, cy, radius, lambda i, j: scale_rgb(orb, 1 - math.hypot(i, j) / radius * 0.4))
    for k in range(12):
        angle = k * math.pi / 6
        canvas.put(x + math.cos(angle) * (radius + 2), cy + math.sin(angle) * (radius + 2), rune)


def draw_paper(canvas, item, x, y, s):
    colors = item.template("type")
    paper, bamboo = colors.rgb("frame"), colors.rgb("detail")
    canvas.fill_rounded_rect(x, y, 7 * s, 18 * s, 3 * s, paper)
    for j in span(0, 18 * s, 4):
        for i in span(-7 * s + 1, 7 * s - 1):
            canvas.put(x + i, y + j, bamboo)


def draw_crystal(canvas, item, x, y, s):
    colors = item.template("type")
    crystal, facet = colors.rgb("frame"), colors.rgb("detail")

    def shade(i, j):
        return facet if int(abs(i) + j) % 4 == 0 else crystal

    canvas.fill_diamond(x, y + 8 * s, 5 * s, 8 * s, shade)


def draw_skeleton(canvas, item, x, y, s):
    colors = item.template("type")
    bone = colors.rgb("frame")

    def lattice(i, j):
        a, b = int(i + j) % 8, int(i - j) % 8
        return bone if a < 2 or b < 2 else None

    canvas.fill_rect(x, y, 7 * s, 0, 18 * s, lattice)
    # skull cap
    canvas.fill_rect(x, y, 8 * s, -2 * s, 0, bone)


class LanternType(str, Enum):
    HANGING = "hanging_lantern"
    PORTABLE = "portable_lantern"
    STORM = "storm_lantern"
    STREET = "street_lantern"
    MAGIC = "magic_lantern"
    PAPER = "paper_lantern"
    CRYSTAL = "crystal_lantern"
    SKELETON = "skeleton_lantern"


PAINTERS = {
    LanternType.HANGING: draw_hanging,
    LanternType.PORTABLE: draw_portable,
    LanternType.STORM: draw_storm,
    LanternType.STREET: draw_street,
    LanternType.MAGIC: draw_magic,
    LanternType.PAPER: draw_paper,
    LanternType.CRYSTAL: draw_crystal,
    LanternType.SKELETON: draw_skeleton,
}
ensure_exhaustive(LanternType, PAINTERS)


class LanternCompositor(Compositor):
    archetypes = LanternType
    painters = PAINTERS
    reference_size = 30

    def canvas_size(self, item):
        pixel_size = item.template("size").attr("pixel_size")
        return pixel_size * 2, pixel_size * 3

    def anchor(self, canvas, item):
        # leave room above for chains and handles
        return canvas.width / 2, canvas.height / 3

    def paint_secondary(self, canvas, item, x, y, s):
        body = item.template("type").attr("body")
        if body:
            self.paint_glass(canvas, item, x, y, s, body)
        pattern, half_w, height, base = item.template("type").attr("flame")
        draw_flame(canvas, x, y + base * s, half_w * s, height * s, pattern,
                   item.template("flame_type").colors, item.phase)

    def paint_glass(self, canvas, item, x, y, s, body):
        half_w, top, height = (v * s for v in body)
        glass = item.template("glass_type")
        tint = scale_rgb(glass.rgb("tint"), glass.attr("opacity"))
        for side in (-1, 1):
            px = x + side * (half_w - 2)
            for j in span(top + 2, top + height - 2):
                for i in range(-2, 2):
                    canvas.put(px + i, y + j, tint)


class LanternGenerator(ItemGenerator):
    composer = LanternComposer()
    compositor = LanternCompositor()
    themes = THEMES

    def __init__(self, **kwargs):
        kwargs.setdefault("name", "LanternGenerator")
        kwargs.setdefault("description", "Procedural lantern sprites with light data")
        super().__init__(**kwargs)

    def performance_report(self, source):
        """Scores out of 100 per stat plus their rounded mean."""
        item = self.item_for(source)
        stats = item.stats
        duration = 100 if stats["duration"] == UNLIMITED else stats["duration"] / 300 * 100
        scores = {
            "brightness": min(100, stats["brightness"] / 50 * 100),
            "duration": min(100, duration),
            "light_radius": min(100, stats["light_radius"] / 20 * 100),
            "weather_resistance": min(100, stats["weather_resistance"] / 15 * 100),
            "stability": min(100, stats["stability"] * 100),
        }
        scores = {k: round(v, 1) for k, v in scores.items()}
        scores["overall"] = round_half_up(sum(scores.values()) / len(scores))
        return scores

    def maintenance_cost(self, source) -> int:
        item = self.item_for(source)
        factor = {"magical": 5, "crystal": 3, "glass": 2}.get(item.config["material"], 1)
        return round_half_up(item.stats["brightness"] * 0.15 * factor)

    def upgrade_options(self, source):
        item = self.item_for(source)
        config = item.config
        brightness = item.stats["brightness"]
        options = []

        def offer(axis, target, factor, benefits):
            if config[axis] != target:
                options.append({
                    "type": axis,
                    "current": config[axis],
                    "upgrade": target,
                    "cost": round_half_up(brightness * factor),
                    "benefits": benefits,
                })

        offer("quality", self.composer.table("quality").next_key(config["quality"]), 2.5,
              ["Increased brightness", "Longer duration", "Larger light radius"])
        offer("size", self.composer.table("size").next_key(config["size"]), 2,
              ["Larger light radius", "Increased brightness"])
        offer("flame_type", "eternal", 6, ["Maximum brightness", "Perfect stability", "Magical light"])
        offer("glass_type", "magical", 3, ["Magical tint", "Enchanted glow"])
        return options

    def light_color(self, source):
        """RGB of the flame core, as a light source would use it."""
        return hex_to_rgb(self.item_for(source).extras["light_data"]["color"])
