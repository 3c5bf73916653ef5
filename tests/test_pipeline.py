"""Tests for the generation pipeline: cache, statistics, events, batch"""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import EventRecorder, decode

from itemforge.errors import ConfigValidationError, ItemForgeError, UnknownAxisValue
from itemforge.events import EventBus, GenerationEvent
from itemforge.families.chest import ChestGenerator
from itemforge.families.lantern import LanternGenerator
from itemforge.pipeline import AssetCache, BaseGenerator, CancellationToken


class TestSingleGeneration:

    def test_asset_envelope(self, lantern_gen):
        asset = lantern_gen.generate({"quality": "rare"})
        assert asset.type == "lantern"
        assert asset.name == "Ornate Hanging Lantern with Normal Flame"
        assert asset.stats["brightness"] == 23
        assert asset.generator == {"name": "LanternGenerator", "version": "1.0.0", "type": "lantern"}
        assert asset.sprite.format == "png"
        assert decode(asset).size == (asset.sprite.width, asset.sprite.height)
        assert lantern_gen.validate_asset(asset)

    def test_to_dict_shape(self, lantern_gen):
        data = lantern_gen.generate({}).to_dict()
        for key in ("id", "name", "type", "config", "stats", "features", "description",
                    "appearance", "effects", "sprite", "metadata", "generated", "generator"):
            assert key in data
        assert set(data["effects"][0]) >= {"type", "power", "duration", "instant"}
        assert isinstance(data["sprite"]["data"], bytes)

    def test_metadata(self, lantern_gen):
        asset = lantern_gen.generate({}, tags=("demo",), asset_id="lamp-1")
        assert asset.id == "lamp-1"
        assert asset.metadata["tags"] == ["demo"]
        assert asset.metadata["quality"] == "common"
        assert asset.metadata["generator"] == "LanternGenerator"

    def test_validate_asset(self, lantern_gen):
        asset = lantern_gen.generate({})
        asset.name = ""
        with pytest.raises(ItemForgeError, match="name"):
            lantern_gen.validate_asset(asset)

    def test_config_must_be_mapping(self, lantern_gen):
        with pytest.raises(ConfigValidationError):
            lantern_gen.generate(["quality", "rare"])

    def test_unknown_value_fails_before_drawing(self, lantern_gen, recorder):
        with pytest.raises(UnknownAxisValue):
            lantern_gen.generate({"quality": "super-rare"})
        assert recorder.count(GenerationEvent.GENERATION_START) == 0
        assert recorder.count(GenerationEvent.GENERATION_ERROR) == 0
        assert lantern_gen.stats.total_generated == 0
        assert lantern_gen.cache_size() == 0

    @pytest.mark.parametrize("config", [{"seed": "abc"}, {"phase": "fast"}, {"seed": [1]}])
    def test_bad_seed_or_phase_fails_before_drawing(self, lantern_gen, recorder, config):
        with pytest.raises(ConfigValidationError) as exc:
            lantern_gen.generate(config)
        assert exc.value.field == next(iter(config))
        assert recorder.count(GenerationEvent.GENERATION_START) == 0
        assert recorder.count(GenerationEvent.GENERATION_ERROR) == 0
        assert lantern_gen.stats.total_generated == 0
        assert lantern_gen.stats.failures == 0

    def test_event_order(self, lantern_gen, recorder):
        lantern_gen.generate({})
        assert recorder.names() == ["generationStart", "preGenerate", "generationSuccess"]

    def test_not_implemented_base(self):
        base = BaseGenerator()
        seen = EventRecorder(base)
        with pytest.raises(NotImplementedError):
            base.generate({})
        assert seen.count(GenerationEvent.GENERATION_ERROR) == 1
        assert seen.payloads(GenerationEvent.GENERATION_ERROR)[0]["error_type"] == "NotImplementedError"
        assert base.stats.failures == 1


class TestCache:

    def test_round_trip(self, lantern_gen, recorder):
        first = lantern_gen.generate({"type": "storm_lantern"})
        second = lantern_gen.generate({"type": "storm_lantern"})
        assert first.to_dict() == second.to_dict()
        assert first.sprite.data == second.sprite.data
        assert recorder.count(GenerationEvent.GENERATION_START) == 1
        assert recorder.count(GenerationEvent.GENERATION_SUCCESS) == 1
        assert recorder.count(GenerationEvent.CACHE_HIT) == 1

    def test_hits_are_not_counted(self, lantern_gen):
        lantern_gen.generate({})
        lantern_gen.generate({})
        assert lantern_gen.stats.total_generated == 1

    def test_cached_asset_is_a_copy(self, lantern_gen):
        lantern_gen.generate({})
        hit = lantern_gen.generate({})
        hit.stats["brightness"] = 0
        assert lantern_gen.generate({}).stats["brightness"] == 18

    def test_defaults_share_a_key(self, lantern_gen, recorder):
        lantern_gen.generate({})
        lantern_gen.generate({"quality": "common"})
        assert recorder.count(GenerationEvent.CACHE_HIT) == 1

    def test_disabled(self, recorder, lantern_gen):
        lantern_gen.cache_enabled = False
        lantern_gen.generate({})
        lantern_gen.generate({})
        assert recorder.count(GenerationEvent.GENERATION_START) == 2
        assert recorder.count(GenerationEvent.CACHE_HIT) == 0

    def test_use_cache_false(self, lantern_gen, recorder):
        lantern_gen.generate({})
        lantern_gen.generate({}, use_cache=False)
        assert recorder.count(GenerationEvent.CACHE_HIT) == 0

    def test_evicts_oldest_insertion(self):
        gen = LanternGenerator(cache_enabled=True, cache_max_size=2)
        seen = EventRecorder(gen)
        gen.generate({"quality": "common"})
        gen.generate({"quality": "uncommon"})
        # a hit does not refresh the entry
        gen.generate({"quality": "common"})
        gen.generate({"quality": "rare"})
        assert gen.cache_size() == 2
        gen.generate({"quality": "common"})
        assert seen.count(GenerationEvent.CACHE_HIT) == 1
        assert seen.count(GenerationEvent.GENERATION_START) == 4

    def test_clear(self, lantern_gen, recorder):
        lantern_gen.generate({})
        lantern_gen.clear_cache()
        assert lantern_gen.cache_size() == 0
        assert recorder.count(GenerationEvent.CACHE_CLEARED) == 1

    def test_broken_cache_does_not_fail_generation(self, lantern_gen, caplog):
        def broken(key, asset):
            raise OSError("disk full")

        lantern_gen.cache.put = broken
        with caplog.at_level(logging.ERROR, logger="itemforge.pipeline"):
            asset = lantern_gen.generate({})
        assert asset.name
        assert "Cache store failed" in caplog.text

    def test_asset_cache_bound(self, lantern_gen):
        cache = AssetCache(1)
        asset = lantern_gen.generate({})
        cache.put("a", asset)
        cache.put("b", asset)
        assert cache.keys() == ["b"]
        assert cache.get("a") is None


class TestStatistics:

    def test_success_rate(self, lantern_gen):
        lantern_gen.generate({})
        with pytest.raises(ConfigValidationError):
            lantern_gen.generate({}, post_processing={"resize": (0, 0)})
        stats = lantern_gen.stats
        assert stats.total_generated == 2
        assert stats.successes == 1
        assert stats.failures == 1
        assert stats.success_rate == 50.0
        assert stats.average_time == pytest.approx(stats.total_time / 2)
        assert stats.last_generated is not None

    def test_error_event_carries_message(self, lantern_gen, recorder):
        with pytest.raises(ConfigValidationError):
            lantern_gen.generate({}, post_processing={"resize": (0, 0)})
        payload = recorder.payloads(GenerationEvent.GENERATION_ERROR)[0]
        assert "Canvas width 0" in payload["error"]
        assert payload["config"]["type"] == "hanging_lantern"

    def test_snapshot_is_detached(self, lantern_gen):
        snapshot = lantern_gen.stats
        lantern_gen.generate({})
        assert snapshot.total_generated == 0


class TestValidators:

    def test_rejecting_validator(self, lantern_gen):
        lantern_gen.add_validator("seed", lambda value, config: value is None or value >= 0)
        with pytest.raises(ConfigValidationError) as exc:
            lantern_gen.generate({"seed": -1})
        assert exc.value.field == "seed"
        lantern_gen.generate({"seed": 3})

    def test_raising_validator(self, lantern_gen):
        def explode(value, config):
            raise ValueError("bad")

        lantern_gen.add_validator("quality", explode)
        with pytest.raises(ConfigValidationError, match="bad"):
            lantern_gen.generate({})
        lantern_gen.remove_validator("quality")
        lantern_gen.generate({})


class TestPostProcessing:

    def test_resize(self, lantern_gen):
        asset = lantern_gen.generate({}, post_processing={"resize": (16, 24)})
        assert (asset.sprite.width, asset.sprite.height) == (16, 24)
        assert decode(asset).size == (16, 24)
        # post-processed output is never cached
        assert lantern_gen.cache_size() == 0

    def test_optimize_is_a_warning(self, lantern_gen, caplog):
        with caplog.at_level(logging.WARNING, logger="itemforge.pipeline"):
            asset = lantern_gen.generate({}, post_processing={"optimize": True, "sharpen": 2})
        assert (asset.sprite.width, asset.sprite.height) == (60, 90)
        assert "optimize_asset() not implemented" in caplog.text
        assert "sharpen" in caplog.text

    def test_progress_tracking(self, lantern_gen, recorder):
        lantern_gen.generate({}, track_progress=True)
        updates = recorder.payloads(GenerationEvent.PROGRESS_UPDATE)
        assert [u["percentage"] for u in updates] == [50.0, 75.0, 100.0]
        assert recorder.count(GenerationEvent.PROGRESS_COMPLETE) == 1
        assert lantern_gen.current_progress()["completed"] == 100

    def test_progress_updates_from_threads(self, lantern_gen, recorder):
        tracker = lantern_gen.create_progress_tracker("batch", 40)
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(tracker.update, range(40)))
        tracker.update(40)
        assert recorder.count(GenerationEvent.PROGRESS_UPDATE) == 41
        assert lantern_gen.current_progress()["completed"] == 40
        assert lantern_gen.current_progress()["total"] == 40


class TestEvents:

    def test_failing_listener_is_logged(self, lantern_gen, caplog):
        lantern_gen.on(GenerationEvent.GENERATION_START, lambda payload: 1 / 0)
        with caplog.at_level(logging.ERROR, logger="itemforge.events"):
            asset = lantern_gen.generate({})
        assert asset.name
        assert "failed on generationStart" in caplog.text

    def test_off(self):
        bus = EventBus()
        calls = []
        listener = bus.on("cacheHit", calls.append)
        bus.emit(GenerationEvent.CACHE_HIT, {"n": 1})
        bus.off(GenerationEvent.CACHE_HIT, listener)
        bus.emit(GenerationEvent.CACHE_HIT, {"n": 2})
        assert calls == [{"n": 1}]
        assert bus.listener_count() == 0

    def test_unknown_event_name(self):
        with pytest.raises(ValueError):
            EventBus().on("somethingElse", print)


class TestBatch:

    def test_isolates_failures(self, lantern_gen, recorder):
        configs = [{"type": "storm_lantern"}, {"quality": "super-rare"}, {"type": "paper_lantern"}]
        results = lantern_gen.generate_batch(configs)
        assert [r.index for r in results] == [0, 1, 2]
        assert [r.success for r in results] == [True, False, True]
        assert results[1].error.error_type == "UnknownAxisValue"
        assert "super-rare" in results[1].error.message
        assert results[1].error.config == {"quality": "super-rare"}
        assert recorder.count(GenerationEvent.BATCH_START) == 1
        assert recorder.count(GenerationEvent.BATCH_ERROR) == 1
        assert recorder.count(GenerationEvent.BATCH_PROGRESS) == 2
        complete = recorder.payloads(GenerationEvent.BATCH_COMPLETE)[0]
        assert complete["success_count"] == 2
        assert complete["total_count"] == 3

    def test_thread_pool_keeps_order(self, lantern_gen):
        configs = [{"type": t} for t in lantern_gen.archetypes()]
        results = lantern_gen.generate_batch(configs, workers=4)
        assert [r.asset.config["type"] for r in results] == list(lantern_gen.archetypes())

    def test_cancellation(self, lantern_gen):
        token = CancellationToken()
        lantern_gen.on(GenerationEvent.BATCH_PROGRESS, lambda payload: token.cancel())
        results = lantern_gen.generate_batch([{"quality": q} for q in ("common", "rare", "epic")],
                                             cancel=token)
        assert results[0].success
        assert [r.cancelled for r in results] == [False, True, True]
        assert results[2].error.error_type == "Cancelled"

    def test_seed_wiring(self, lantern_gen):
        results = lantern_gen.generate_batch([{}, {}, {"seed": 99}], seed=10)
        assert [r.asset.config["seed"] for r in results] == [10, 11, 99]
        assert [r.asset.item.seed for r in results] == [10, 11, 99]

    def test_reproducible_contents(self):
        configs = [{"type": "pirate"}, {"type": "ancient"}]
        first = ChestGenerator(cache_enabled=False).generate_batch(configs, seed=5)
        second = ChestGenerator(cache_enabled=False).generate_batch(configs, seed=5)
        for a, b in zip(first, second):
            assert a.asset.item.extras["contents"] == b.asset.item.extras["contents"]
            assert a.asset.sprite.data == b.asset.sprite.data

    def test_oversized_batch_warns(self, caplog):
        gen = LanternGenerator(max_batch_size=1, cache_enabled=False)
        with caplog.at_level(logging.WARNING, logger="itemforge.pipeline"):
            results = gen.generate_batch([{}, {}])
        assert all(r.success for r in results)
        assert "exceeds max_batch_size" in caplog.text

    def test_result_to_dict(self, lantern_gen):
        ok, bad = lantern_gen.generate_batch([{}, {"size": "gigantic"}])
        assert ok.to_dict()["asset"]["sprite"] == {"width": 60, "height": 90, "format": "png"}
        assert bad.to_dict()["error"]["error_type"] == "UnknownAxisValue"


class TestConfigurationSnapshot:

    def test_export_import(self, lantern_gen, recorder):
        lantern_gen.add_validator("seed", lambda value, config: True)
        lantern_gen.generate({})
        data = lantern_gen.export_configuration()
        assert data["validators"] == ["seed"]
        assert data["generation_stats"]["total_generated"] == 1
        assert data["asset_type"] == "lantern"

        other = LanternGenerator()
        seen = EventRecorder(other)
        other.import_configuration(dict(data, name="Dungeon Lamps", cache_max_size=7))
        assert other.name == "Dungeon Lamps"
        assert other.cache.max_size == 7
        assert other.default_config == lantern_gen.default_config
        assert seen.count(GenerationEvent.CONFIGURATION_IMPORTED) == 1

    def test_cleanup(self, lantern_gen, recorder):
        lantern_gen.add_validator("seed", lambda value, config: True)
        lantern_gen.generate({})
        lantern_gen.cleanup()
        assert recorder.count(GenerationEvent.CACHE_CLEARED) == 1
        assert lantern_gen.cache_size() == 0
        assert lantern_gen.stats.total_generated == 0
        assert not lantern_gen.validators
        assert lantern_gen.events.listener_count() == 0
        assert lantern_gen.current_progress()["operation"] is None
