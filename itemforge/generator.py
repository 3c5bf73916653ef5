"""
ItemGenerator: a BaseGenerator driven by a TemplateComposer and a Compositor.

Also hosts the family-level operations that sit on top of single generation:
criteria search, themed collections, config validation without raising, and
PNG + JSON export.
"""

import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from PIL import Image

from itemforge import settings
from itemforge.composer import ComposedItem, TemplateComposer
from itemforge.errors import ConfigValidationError
from itemforge.pipeline import Asset, BaseGenerator, RenderResult
from itemforge.raster import Compositor, check_canvas_size

log = logging.getLogger(__name__)


class ItemGenerator(BaseGenerator):
    """Sprite generator for one item family."""

    composer: TemplateComposer
    compositor: Compositor
    # theme name -> fixed axes; lists are sampled per item
    themes: Mapping[str, Mapping[str, Any]] = {}

    def __init__(self, **kwargs):
        kwargs.setdefault("asset_type", self.composer.family)
        kwargs.setdefault("default_config", self.composer.defaults())
        super().__init__(**kwargs)

    # ── pipeline hooks ──────────────────────────────────────────────────────

    def validate_config_internal(self, config):
        self.composer.validate(config)
        if "width" in config or "height" in config:
            check_canvas_size(config.get("width", 1), config.get("height", 1), config)

    def generate_asset(self, config, options) -> RenderResult:
        item = self.composer.compose(config)
        canvas = self.compositor.rasterize(item)
        return RenderResult(item=item, image=canvas.to_image())

    def resize_asset(self, result: RenderResult, dimensions) -> RenderResult:
        width, height = (int(v) for v in dimensions)
        check_canvas_size(width, height, result.item.config if result.item else None)
        image = result.image.resize((width, height), Image.NEAREST)
        return RenderResult(item=result.item, image=image, extra=dict(result.extra))

    # ── family operations ───────────────────────────────────────────────────

    def archetypes(self) -> Tuple[str, ...]:
        return self.composer.table(self.composer.archetype_axis).keys()

    def compose(self, config=None):
        return self.composer.compose(config)

    def item_for(self, source) -> ComposedItem:
        """Accept an Asset, a ComposedItem or a plain config."""
        if isinstance(source, ComposedItem):
            return source
        if isinstance(source, Asset):
            return source.item if source.item is not None else self.composer.compose(source.config)
        return self.composer.compose(source)

    def estimate(self, config, stat: str):
        return self.composer.estimate(config, stat)

    def validate_family_config(self, config: Mapping[str, Any]) -> Tuple[bool, List[str]]:
        """(valid, errors) without raising."""
        if not isinstance(config, Mapping):
            return False, [f"Configuration must be a mapping, got {type(config).__name__}"]
        errors = self.composer.config_errors(config)
        return not errors, errors

    def generate_by_criteria(self, criteria: Mapping[str, Any], **kwargs) -> Asset:
        """Generate from whichever known axes/options the criteria name; the rest default."""
        known = set(self.composer.axis_names()) | set(self.composer.options) | {"seed", "phase", "name"}
        config = {k: v for k, v in criteria.items() if k in known and v is not None}
        return self.generate(config, **kwargs)

    def search_by_stat(self, stat: str, minimum: float, maximum: float,
                       fixed: Optional[Mapping[str, Any]] = None, max_attempts: Optional[int] = None,
                       seed: Optional[int] = None, **kwargs) -> Asset:
        """Rejection-sample unfixed axes until the estimated stat lands in [minimum, maximum].

        Falls back to the default quality and size with the fixed axes when no
        sample qualifies; never raises for an unreachable range.
        """
        fixed = dict(fixed or {})
        max_attempts = settings.SEARCH_MAX_ATTEMPTS if max_attempts is None else max_attempts
        rng = random.Random(seed)
        free = [(name, table) for name, table in self.composer.axes if name not in fixed]

        for attempt in range(max_attempts):
            candidate = dict(fixed)
            for name, table in free:
                candidate[name] = rng.choice(table.keys())
            try:
                value = self.composer.estimate(candidate, stat)
            except ConfigValidationError as e:
                log.debug("search sample rejected: %s", e.message)
                continue
            if value is not None and minimum <= value <= maximum:
                try:
                    self.composer.validate(self.composer.with_defaults(candidate))
                except ConfigValidationError:
                    continue
                log.info("search %s in [%s, %s]: hit %s after %d attempt(s)",
                         stat, minimum, maximum, value, attempt + 1)
                return self.generate(candidate, **kwargs)

        log.info("search %s in [%s, %s]: no hit in %d attempts, using fallback",
                 stat, minimum, maximum, max_attempts)
        return self.generate(self.fallback_config(fixed), **kwargs)

    def fallback_config(self, fixed: Mapping[str, Any]) -> Dict[str, Any]:
        config = dict(fixed)
        for axis in ("quality", "size"):
            try:
                config[axis] = self.composer.table(axis).default
            except KeyError:
                pass
        return config

    def random_configs(self, count: int, seed: Optional[int] = None,
                       fixed: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """`count` configs with every unfixed axis sampled; structurally invalid draws are redrawn."""
        fixed = dict(fixed or {})
        rng = random.Random(seed)
        configs = []
        attempts = 0
        while len(configs) < count:
            attempts += 1
            if attempts > count * 50:
                raise ConfigValidationError(
                    f"Could not draw {count} valid {self.composer.family} configs around {fixed}", fixed
                )
            config = dict(fixed)
            for name, table in self.composer.axes:
                if name not in fixed:
                    config[name] = rng.choice(table.keys())
            if self.composer.config_errors(config):
                continue
            configs.append(config)
        return configs

    def generate_themed_collection(self, theme: str = "mixed", count: int = 8,
                                   seed: Optional[int] = None, **kwargs) -> List[Asset]:
        """Items sharing a theme's fixed axes; list-valued axes are sampled per item."""
        rng = random.Random(seed)
        theme_axes = self.themes.get(theme, {})
        if theme not in self.themes and theme != "mixed":
            log.warning("Unknown %s theme '%s'; generating a mixed collection", self.composer.family, theme)

        collection = []
        for i in range(count):
            config = {}
            for axis, choice in theme_axes.items():
                config[axis] = rng.choice(choice) if isinstance(choice, (list, tuple)) else choice
            if self.composer.archetype_axis not in config:
                config[self.composer.archetype_axis] = rng.choice(self.archetypes())
            if seed is not None:
                config["seed"] = seed + i
            collection.append(self.generate(config, **kwargs))
        return collection

    def family_statistics(self) -> Dict[str, Any]:
        counts = {f"total_{name}": len(table) for name, table in self.composer.axes}
        counts["themes"] = sorted(self.themes)
        return counts

    def export_item_data(self, asset: Asset, output_path) -> Path:
        """Write the sprite PNG at output_path and a JSON sidecar next to it."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if asset.sprite is not None:
            output_path.write_bytes(asset.sprite.data)

        data = asset.to_dict(embed_sprite=False)
        if asset.item is not None:
            data["item"] = asset.item.to_dict()
        data["sprite_path"] = str(output_path)
        data_path = output_path.with_suffix(".json")
        data_path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        return data_path
