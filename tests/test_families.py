"""Tests for the four item families and their family-level helpers"""

import json

import pytest
from conftest import decode

from itemforge.errors import ConfigValidationError, ItemForgeError
from itemforge.families import FAMILIES, get_generator
from itemforge.families.potion import POTION_COLORS, boost_glow
from itemforge.templates import UNLIMITED


class TestRegistry:

    @pytest.mark.parametrize("family", list(FAMILIES))
    def test_default_generation(self, family):
        gen = get_generator(family, cache_enabled=False)
        asset = gen.generate()
        assert asset.type == family
        image = decode(asset)
        assert image.mode == "RGBA"
        assert image.getextrema()[3][1] == 255
        assert asset.item.id.startswith(f"{family}_")

    def test_unknown_family(self):
        with pytest.raises(ValueError, match="Unknown family"):
            get_generator("wand")

    @pytest.mark.parametrize("family", list(FAMILIES))
    def test_every_painter_draws(self, family):
        gen = get_generator(family)
        painted = gen.compositor.archetypes
        axis = gen.composer.archetype_axis if family != "potion" else "bottle_type"
        for key in (member.value for member in painted):
            canvas = gen.compositor.rasterize(gen.compose({axis: key}))
            assert not canvas.is_blank(), key
        assert set(m.value for m in painted) == set(gen.composer.table(axis).keys())

    @pytest.mark.parametrize("family", list(FAMILIES))
    def test_random_configs_are_valid(self, family):
        gen = get_generator(family)
        configs = gen.random_configs(20, seed=3)
        assert len(configs) == 20
        assert configs == gen.random_configs(20, seed=3)
        for config in configs:
            assert gen.validate_family_config(config) == (True, [])


class TestFamilyHelpers:

    def test_validate_family_config(self, lantern_gen):
        assert lantern_gen.validate_family_config({"quality": "rare"}) == (True, [])
        assert lantern_gen.validate_family_config({"quality": "super-rare"}) == \
            (False, ["Invalid quality: super-rare"])
        valid, errors = lantern_gen.validate_family_config("rare")
        assert not valid and errors

    def test_archetypes(self, lantern_gen):
        assert "magic_lantern" in lantern_gen.archetypes()
        assert len(lantern_gen.archetypes()) == 8

    def test_family_statistics(self, lantern_gen):
        stats = lantern_gen.family_statistics()
        assert stats["total_type"] == 8
        assert stats["total_quality"] == 6
        assert stats["themes"] == sorted(stats["themes"])

    def test_themed_collection(self, lantern_gen):
        items = lantern_gen.generate_themed_collection("nautical", count=3, seed=5)
        assert [a.config["type"] for a in items] == ["storm_lantern"] * 3
        assert [a.config["seed"] for a in items] == [5, 6, 7]
        assert all(a.config["glass_type"] == "clear" for a in items)

    def test_unknown_theme_is_mixed(self, chest_gen, caplog):
        items = chest_gen.generate_themed_collection("volcanic", count=2, seed=1)
        assert len(items) == 2
        assert "Unknown chest theme" in caplog.text

    def test_export_item_data(self, lantern_gen, tmp_path):
        asset = lantern_gen.generate({"type": "crystal_lantern"})
        data_path = lantern_gen.export_item_data(asset, tmp_path / "out" / "lamp.png")
        png_path = tmp_path / "out" / "lamp.png"
        assert png_path.read_bytes() == asset.sprite.data
        assert data_path == tmp_path / "out" / "lamp.json"
        data = json.loads(data_path.read_text(encoding="utf-8"))
        assert data["stats"]["brightness"] == asset.stats["brightness"]
        assert data["item"]["extras"]["light_data"]["color"] == "#FF4500"
        assert "data" not in data["sprite"]
        assert data["sprite_path"] == str(png_path)

    def test_random_configs_unsatisfiable(self, mount_gen):
        with pytest.raises(ConfigValidationError):
            mount_gen.random_configs(2, fixed={"type": "blanket", "mount_type": "dragon"})


class TestLantern:

    def test_light_data(self, lantern_gen):
        item = lantern_gen.compose({"flame_type": "eternal"})
        light = item.extras["light_data"]
        assert light["flicker"] is False
        assert light["magical"] is True
        assert lantern_gen.light_color(item) == (255, 215, 0)

    def test_performance_report(self, lantern_gen):
        report = lantern_gen.performance_report({"type": "magic_lantern"})
        assert report["duration"] == 100
        assert isinstance(report["overall"], int)
        assert all(0 <= v <= 100 for v in report.values())

    def test_maintenance_cost(self, lantern_gen):
        # 18 x 0.15 = 2.7
        assert lantern_gen.maintenance_cost({}) == 3
        assert lantern_gen.maintenance_cost({"material": "crystal"}) == 8

    def test_upgrade_options(self, lantern_gen):
        options = {o["type"]: o for o in lantern_gen.upgrade_options(lantern_gen.generate({}))}
        assert options["quality"]["upgrade"] == "uncommon"
        assert options["size"]["upgrade"] == "large"
        assert options["flame_type"]["upgrade"] == "eternal"
        assert options["quality"]["cost"] == 45

    def test_fully_upgraded(self, lantern_gen):
        config = {"quality": "mythical", "size": "extra_large", "flame_type": "eternal",
                  "glass_type": "magical"}
        assert lantern_gen.upgrade_options(config) == []

    def test_sprite_size_follows_size_axis(self, lantern_gen):
        asset = lantern_gen.generate({"size": "small"})
        assert (asset.sprite.width, asset.sprite.height) == (40, 60)


class TestChest:

    def test_open_and_close(self, chest_gen):
        closed = chest_gen.generate({"type": "pirate", "quality": "rare"})
        opened = chest_gen.open_chest(closed)
        assert opened.appearance["is_open"] is True
        assert opened.name == "Rare Pirate Chest (Open)"
        assert "The chest is open." in opened.description
        assert opened.item.extras["contents"] == closed.item.extras["contents"]
        assert opened.sprite.data != closed.sprite.data
        reclosed = chest_gen.close_chest(opened)
        assert reclosed.item.extras["contents"] == closed.item.extras["contents"]

    def test_already_open(self, chest_gen):
        opened = chest_gen.generate({"is_open": True})
        with pytest.raises(ItemForgeError, match="already open"):
            chest_gen.open_chest(opened)
        with pytest.raises(ItemForgeError, match="already closed"):
            chest_gen.close_chest(chest_gen.generate({}))

    def test_contents(self, chest_gen):
        item = chest_gen.compose({"type": "magical", "quality": "epic", "seed": 11})
        contents = item.extras["contents"]
        assert 1 <= len(contents) <= item.stats["capacity"]
        for entry in contents:
            assert entry["type"] in ("mana_crystals", "spellbooks", "artifacts", "enchanted_items")
            assert 1000 <= entry["value"] < 5000
        assert chest_gen.total_treasure_value(item) >= 1000
        info = chest_gen.capacity_info(item)
        assert info["used"] + info["available"] == info["total"]

    def test_stats_and_effects(self, chest_gen):
        item = chest_gen.compose({"type": "metal", "size": "large", "lock_type": "cursed"})
        assert item.stats["value"] == 400
        assert item.stats["capacity"] == 45
        assert item.stats["security"] == 75
        types = [e.type for e in item.effects]
        assert "cursed_lock" in types
        assert all(e.duration == UNLIMITED for e in item.effects)

    def test_no_lock(self, chest_gen):
        item = chest_gen.compose({"lock_type": "none"})
        assert "security" not in [e.type for e in item.effects]
        assert "secured" not in item.description

    def test_canvas(self, chest_gen):
        asset = chest_gen.generate({"size": "medium"})
        assert (asset.sprite.width, asset.sprite.height) == (64, 48)


class TestPotion:

    def test_health_is_instant(self, potion_gen):
        effects = potion_gen.compose({"type": "health"}).effects
        assert effects[0].type == "heal"
        assert effects[0].instant is True
        assert effects[0].power == 100
        assert effects[1].type == "cooldown"
        assert effects[1].power == 45

    def test_buff(self, potion_gen):
        effect = potion_gen.compose({"type": "speed", "quality": "rare"}).effects[0]
        assert effect.type == "speed"
        assert effect.instant is False
        assert effect.power == 30
        # 240 x 1.25
        assert effect.duration == 300

    def test_size_scales_power_not_name(self, potion_gen):
        item = potion_gen.compose({"type": "mana", "size": "huge"})
        assert item.stats["power"] == 160
        assert item.name == "Mana Potion"

    def test_enchanted_glow(self, potion_gen):
        item = potion_gen.compose({"type": "health", "enchanted": True, "quality": "legendary"})
        assert item.appearance["glow"] == "#FF6C6C"
        assert item.effects[-1].type == "enchantment"
        assert boost_glow("#FF4444", "common") == "#FF4444"

    def test_missing_palette_falls_back(self, potion_gen):
        item = potion_gen.compose({"type": "weakness"})
        assert item.appearance["liquid"] == POTION_COLORS["red"]["liquid"]

    def test_bubbles_only_for_buffs_and_utility(self, potion_gen):
        assert potion_gen.compose({"type": "speed"}).appearance["bubbles"] is True
        assert potion_gen.compose({"type": "health"}).appearance["bubbles"] is False

    def test_by_category(self, potion_gen):
        assert potion_gen.by_category("mana") == ("minor_mana", "mana", "major_mana", "superior_mana")
        assert potion_gen.by_category("nothing") == ()

    def test_reproducible_sprite(self, potion_gen):
        config = {"type": "levitation", "bottle_type": "wooden", "enchanted": True}
        a = potion_gen.generate(config, use_cache=False)
        b = potion_gen.generate(config, use_cache=False)
        assert a.sprite.data == b.sprite.data


class TestMountGear:

    def test_incompatible_mount(self, mount_gen):
        with pytest.raises(ConfigValidationError, match="not compatible") as exc:
            mount_gen.generate({"type": "blanket", "mount_type": "dragon"})
        assert exc.value.field == "mount_type"
        assert mount_gen.stats.total_generated == 0

    def test_rider_gear_fits_any_mount(self, mount_gen):
        asset = mount_gen.generate({"type": "spurs", "mount_type": "dragon"})
        assert asset.stats["control_bonus"] == 3

    def test_compatibility_helpers(self, mount_gen):
        assert "blanket" not in mount_gen.compatible_gear("dragon")
        assert "riding_boots" in mount_gen.compatible_gear("dragon")
        assert mount_gen.compatible_mounts("blanket") == ["horse", "unicorn", "pegasus", "wolf", "bear"]
        assert mount_gen.is_compatible("mount_armor", "griffin")
        assert not mount_gen.is_compatible("mount_armor", "wolf")

    def test_effects(self, mount_gen):
        item = mount_gen.compose({"type": "saddlebags", "size": "large"})
        types = {e.type: e.power for e in item.effects}
        assert types["cargo_capacity"] == 72
        assert item.extras["compatible_mounts"] == list(mount_gen.compatible_mounts("saddlebags"))

    def test_quality_scales_gear_stat(self, mount_gen):
        item = mount_gen.compose({"type": "saddle", "quality": "epic"})
        assert item.stats["comfort"] == 16
        assert item.stats["value"] == 600
        assert item.description.startswith("A masterfully crafted piece of mount gear designed for horses.")
