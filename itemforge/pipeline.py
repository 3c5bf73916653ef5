"""
Generation pipeline shared by every asset generator.

    validate -> cache check -> pre hook -> generate_asset -> post hook
             -> package -> cache store -> statistics -> events

Subclasses implement generate_asset(); everything else is common. Cache and
statistics bookkeeping never raises: failures there are logged and the
generation result stands.
"""

import copy
import io
import logging
import threading
import time
import uuid
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from PIL import Image

from itemforge import settings
from itemforge.composer import ComposedItem, canonical_key
from itemforge.errors import BatchItemFailure, ConfigValidationError, ItemForgeError
from itemforge.events import EventBus, GenerationEvent

log = logging.getLogger(__name__)

Validator = Callable[[Any, Dict[str, Any]], bool]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SpritePayload:
    data: bytes
    width: int
    height: int
    format: str = "png"

    def to_dict(self, embed_data: bool = True) -> Dict[str, Any]:
        out = {"width": self.width, "height": self.height, "format": self.format}
        if embed_data:
            out["data"] = self.data
        return out


@dataclass
class RenderResult:
    """Raw output of generate_asset(), before packaging."""
    item: Optional[ComposedItem]
    image: Optional[Image.Image] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Asset:
    id: str
    name: str
    type: str
    config: Dict[str, Any]
    metadata: Dict[str, Any]
    generated: str
    generator: Dict[str, str]
    stats: Dict[str, float] = field(default_factory=dict)
    features: List[str] = field(default_factory=list)
    description: str = ""
    appearance: Dict[str, Any] = field(default_factory=dict)
    effects: List[Dict[str, Any]] = field(default_factory=list)
    sprite: Optional[SpritePayload] = None
    item: Optional[ComposedItem] = None

    def to_dict(self, embed_sprite: bool = True) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "config": dict(self.config),
            "metadata": dict(self.metadata),
            "generated": self.generated,
            "generator": dict(self.generator),
            "stats": dict(self.stats),
            "features": list(self.features),
            "description": self.description,
            "appearance": dict(self.appearance),
            "effects": [dict(e) for e in self.effects],
            "sprite": self.sprite.to_dict(embed_sprite) if self.sprite else None,
        }


@dataclass
class GenerationStats:
    total_generated: int = 0
    successes: int = 0
    failures: int = 0
    total_time: float = 0.0
    average_time: float = 0.0
    success_rate: float = 100.0
    last_generated: Optional[str] = None

    def record(self, elapsed: float, success: bool):
        self.total_generated += 1
        if success:
            self.successes += 1
        else:
            self.failures += 1
        self.total_time += elapsed
        self.average_time = self.total_time / self.total_generated
        self.success_rate = self.successes / self.total_generated * 100
        self.last_generated = utc_now()


@dataclass
class BatchResult:
    index: int
    success: bool
    asset: Optional[Asset] = None
    error: Optional[BatchItemFailure] = None
    config: Any = None
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out = {"index": self.index, "success": self.success, "config": self.config}
        if self.success:
            out["asset"] = self.asset.to_dict(embed_sprite=False)
        else:
            out["error"] = asdict(self.error)
            out["cancelled"] = self.cancelled
        return out


class CancellationToken:
    """Checked between batch items; cancelling never interrupts a running item."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class AssetCache:
    """Bounded map; evicts the oldest insertion, not the least recently used."""

    def __init__(self, max_size: int):
        self.max_size = max_size
        self._entries: "OrderedDict[str, Asset]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Asset]:
        with self._lock:
            entry = self._entries.get(key)
            return copy.deepcopy(entry) if entry is not None else None

    def put(self, key: str, asset: Asset):
        with self._lock:
            self._entries[key] = copy.deepcopy(asset)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)


class ProgressTracker:
    def __init__(self, generator: "BaseGenerator", operation: str, total: int):
        self.generator = generator
        self.operation = operation
        self.total = total
        self.completed = 0
        self.start_time = time.perf_counter()

    def update(self, completed: int):
        self.completed = completed
        with self.generator._stats_lock:
            self.generator._progress["completed"] = completed
        self.generator.emit(GenerationEvent.PROGRESS_UPDATE, {
            "operation": self.operation,
            "completed": completed,
            "total": self.total,
            "percentage": completed / self.total * 100 if self.total else 100.0,
        })

    def complete(self):
        self.generator.emit(GenerationEvent.PROGRESS_COMPLETE, {
            "operation": self.operation,
            "duration": time.perf_counter() - self.start_time,
            "total": self.total,
        })


def _idle_progress() -> Dict[str, Any]:
    return {"operation": None, "completed": 0, "total": 0, "start_time": None}


class BaseGenerator:
    """Common lifecycle for every generator. Subclasses implement generate_asset()."""

    def __init__(self, name="Base Generator", version="1.0.0", description="Base asset generator",
                 asset_type="unknown", default_config=None, cache_enabled=None, cache_max_size=None,
                 max_batch_size=None, batch_workers=None):
        self.name = name
        self.version = version
        self.description = description
        self.asset_type = asset_type
        self.default_config = dict(default_config or {})
        self.supported_formats = ["png"]

        self.cache_enabled = settings.CACHE_ENABLED if cache_enabled is None else cache_enabled
        self.cache = AssetCache(settings.CACHE_MAX_SIZE if cache_max_size is None else cache_max_size)
        self.max_batch_size = max_batch_size or settings.MAX_BATCH_SIZE
        self.batch_workers = batch_workers or settings.BATCH_WORKERS

        self.events = EventBus()
        self.validators: "OrderedDict[str, Validator]" = OrderedDict()
        self._stats = GenerationStats()
        self._stats_lock = threading.Lock()
        self._progress = _idle_progress()

    # ── events ──────────────────────────────────────────────────────────────

    def on(self, event, listener):
        return self.events.on(event, listener)

    def off(self, event, listener=None):
        self.events.off(event, listener)

    def emit(self, event: GenerationEvent, payload=None):
        self.events.emit(event, payload)

    # ── single generation ───────────────────────────────────────────────────

    def generate(self, config=None, *, use_cache=True, operation_id=None, post_processing=None,
                 track_progress=False, asset_id=None, tags=(), metadata=None) -> Asset:
        start = time.perf_counter()
        options = {
            "operation_id": operation_id or uuid.uuid4().hex,
            "post_processing": post_processing,
            "track_progress": track_progress,
            "asset_id": asset_id,
            "tags": list(tags),
        }
        options.update(metadata or {})
        operation_id = options["operation_id"]

        validated = self.validate_config(config)

        # post-processed output differs from what the config alone describes
        caching = self.cache_enabled and use_cache and not post_processing
        key = self.cache_key(validated) if caching else None
        if caching:
            cached = self._cache_lookup(key)
            if cached is not None:
                self.emit(GenerationEvent.CACHE_HIT, {"operation_id": operation_id, "cache_key": key})
                return cached

        try:
            self.emit(GenerationEvent.GENERATION_START, {
                "operation_id": operation_id, "config": validated, "options": options,
            })
            tracker = self.pre_generate(validated, options)
            result = self.generate_asset(validated, options)
            if tracker:
                tracker.update(50)
            result = self.post_generate(result, validated, options)
            if tracker:
                tracker.update(75)
            asset = self.create_asset_object(result, validated, options)
            if tracker:
                tracker.update(100)
                tracker.complete()
        except Exception as e:
            elapsed = time.perf_counter() - start
            self._record(elapsed, False)
            message = e.message if isinstance(e, ItemForgeError) else str(e)
            self.emit(GenerationEvent.GENERATION_ERROR, {
                "operation_id": operation_id,
                "error": message,
                "error_type": type(e).__name__,
                "config": validated,
                "generation_time": elapsed,
            })
            raise

        if caching:
            self._cache_store(key, asset)
        elapsed = time.perf_counter() - start
        self._record(elapsed, True)
        self.emit(GenerationEvent.GENERATION_SUCCESS, {
            "operation_id": operation_id,
            "asset": asset,
            "generation_time": elapsed,
            "config": validated,
        })
        return asset

    # ── validation ──────────────────────────────────────────────────────────

    def validate_config(self, config) -> Dict[str, Any]:
        """Merge with defaults, run registered validators, then generator checks."""
        if config is None:
            config = {}
        if not isinstance(config, Mapping):
            raise ConfigValidationError(
                f"Configuration must be a mapping, got {type(config).__name__}", value=config
            )
        merged = dict(self.default_config)
        merged.update(config)

        for key, validator in list(self.validators.items()):
            value = merged.get(key)
            try:
                ok = validator(value, merged)
            except Exception as e:
                raise ConfigValidationError(
                    f"Validation failed for {key}: {e}", merged, field=key, value=value
                ) from e
            if not ok:
                raise ConfigValidationError(f"Validation failed for {key}: {value!r}", merged,
                                            field=key, value=value)

        self.validate_config_internal(merged)
        return merged

    def validate_config_internal(self, config: Dict[str, Any]):
        """Generator-specific structural checks."""

    def add_validator(self, key: str, validator: Validator):
        self.validators[key] = validator

    def remove_validator(self, key: str):
        self.validators.pop(key, None)

    # ── hooks ───────────────────────────────────────────────────────────────

    def pre_generate(self, config, options) -> Optional[ProgressTracker]:
        tracker = None
        if options.get("track_progress"):
            tracker = self.create_progress_tracker("generation", 100)
        self.emit(GenerationEvent.PRE_GENERATE, {"config": config, "options": options})
        return tracker

    def generate_asset(self, config, options) -> RenderResult:
        raise NotImplementedError("generate_asset() must be implemented by subclass")

    def post_generate(self, result: RenderResult, config, options) -> RenderResult:
        if options.get("post_processing"):
            return self.apply_post_processing(result, options["post_processing"])
        return result

    def apply_post_processing(self, result: RenderResult, steps: Mapping[str, Any]) -> RenderResult:
        for step, arg in steps.items():
            if step == "resize":
                result = self.resize_asset(result, arg)
            elif step == "optimize":
                result = self.optimize_asset(result, arg)
            else:
                log.warning("Unknown post-processing step '%s' ignored", step)
        return result

    def resize_asset(self, result: RenderResult, dimensions) -> RenderResult:
        log.warning("resize_asset() not implemented for %s", self.name)
        return result

    def optimize_asset(self, result: RenderResult, options) -> RenderResult:
        log.warning("optimize_asset() not implemented for %s", self.name)
        return result

    # ── packaging ───────────────────────────────────────────────────────────

    def create_asset_object(self, result: RenderResult, config, options) -> Asset:
        item = result.item
        sprite = None
        if result.image is not None:
            sprite = SpritePayload(data=_encode_png(result.image), width=result.image.width,
                                   height=result.image.height)
        return Asset(
            id=options.get("asset_id") or uuid.uuid4().hex,
            name=self.generate_asset_name(result, config, options),
            type=self.asset_type,
            config=dict(config),
            metadata=self.generate_metadata(result, config, options),
            generated=utc_now(),
            generator={"name": self.name, "version": self.version, "type": self.asset_type},
            stats=dict(item.stats) if item else {},
            features=list(item.features) if item else [],
            description=item.description if item else "",
            appearance=dict(item.appearance) if item else {},
            effects=[e.to_dict() for e in item.effects] if item else [],
            sprite=sprite,
            item=item,
        )

    def generate_asset_name(self, result: RenderResult, config, options) -> str:
        if result.item is not None:
            return result.item.name
        return config.get("name") or f"{self.asset_type.capitalize()} Asset"

    def generate_metadata(self, result: RenderResult, config, options) -> Dict[str, Any]:
        return {
            "generated": utc_now(),
            "version": self.version,
            "config": dict(config),
            "options": {k: v for k, v in options.items() if k != "post_processing"},
            "generator": self.name,
            "quality": config.get("quality", "standard"),
            "tags": list(options.get("tags") or []),
        }

    def validate_asset(self, asset: Asset) -> bool:
        if not asset.id:
            raise ItemForgeError("Asset must have an ID")
        if not asset.name:
            raise ItemForgeError("Asset must have a name")
        if not asset.type:
            raise ItemForgeError("Asset must have a type")
        return True

    # ── cache / statistics bookkeeping ──────────────────────────────────────

    def cache_key(self, config: Mapping[str, Any]) -> str:
        return canonical_key(config)

    def _cache_lookup(self, key):
        try:
            return self.cache.get(key)
        except Exception:
            log.exception("Cache lookup failed for %s", key)
            return None

    def _cache_store(self, key, asset):
        try:
            self.cache.put(key, asset)
        except Exception:
            log.exception("Cache store failed for %s", key)

    def _record(self, elapsed: float, success: bool):
        try:
            with self._stats_lock:
                self._stats.record(elapsed, success)
        except Exception:
            log.exception("Statistics update failed")

    @property
    def stats(self) -> GenerationStats:
        with self._stats_lock:
            return copy.copy(self._stats)

    def clear_cache(self):
        self.cache.clear()
        self.emit(GenerationEvent.CACHE_CLEARED, {"generator": self.name})

    def cache_size(self) -> int:
        return len(self.cache)

    # ── batch ───────────────────────────────────────────────────────────────

    def generate_batch(self, configs: Iterable, *, cancel: Optional[CancellationToken] = None,
                       workers: Optional[int] = None, seed: Optional[int] = None,
                       use_cache: bool = True) -> List[BatchResult]:
        """Generate each config independently. Never raises for a bad item."""
        configs = list(configs)
        total = len(configs)
        batch_id = uuid.uuid4().hex
        workers = workers or self.batch_workers
        start = time.perf_counter()

        if total > self.max_batch_size:
            log.warning("Batch of %d exceeds max_batch_size=%d; processing anyway", total, self.max_batch_size)

        self.emit(GenerationEvent.BATCH_START, {"batch_id": batch_id, "count": total})

        state = {"completed": 0}
        lock = threading.Lock()
        jobs = [(i, _with_seed(cfg, seed, i)) for i, cfg in enumerate(configs)]

        def run(index, config):
            if cancel is not None and cancel.cancelled:
                return BatchResult(
                    index=index, success=False, config=config, cancelled=True,
                    error=BatchItemFailure("Batch cancelled before item started", "Cancelled",
                                           config if isinstance(config, Mapping) else {}),
                )
            try:
                asset = self.generate(config, use_cache=use_cache, operation_id=f"{batch_id}-{index}",
                                      metadata={"batch_id": batch_id, "batch_index": index})
            except Exception as e:
                failure = BatchItemFailure.from_exception(e, config if isinstance(config, Mapping) else {})
                self.emit(GenerationEvent.BATCH_ERROR, {
                    "batch_id": batch_id, "index": index, "error": failure.message,
                })
                return BatchResult(index=index, success=False, error=failure, config=config)
            with lock:
                state["completed"] += 1
                completed = state["completed"]
            self.emit(GenerationEvent.BATCH_PROGRESS, {
                "batch_id": batch_id, "completed": completed, "total": total, "current_asset": asset,
            })
            return BatchResult(index=index, success=True, asset=asset, config=config)

        if workers > 1 and total > 1:
            results: List[Optional[BatchResult]] = [None] * total
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {pool.submit(run, i, cfg): i for i, cfg in jobs}
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
        else:
            results = [run(i, cfg) for i, cfg in jobs]

        success_count = sum(1 for r in results if r.success)
        self.emit(GenerationEvent.BATCH_COMPLETE, {
            "batch_id": batch_id,
            "results": results,
            "total_time": time.perf_counter() - start,
            "success_count": success_count,
            "cancelled_count": sum(1 for r in results if r.cancelled),
            "total_count": total,
        })
        log.info("Batch %s: %d/%d succeeded", batch_id[:8], success_count, total)
        return results

    # ── progress ────────────────────────────────────────────────────────────

    def create_progress_tracker(self, operation: str, total: int) -> ProgressTracker:
        tracker = ProgressTracker(self, operation, total)
        with self._stats_lock:
            self._progress = {"operation": operation, "completed": 0, "total": total,
                              "start_time": tracker.start_time}
        return tracker

    def current_progress(self) -> Dict[str, Any]:
        with self._stats_lock:
            return dict(self._progress)

    # ── configuration snapshot ──────────────────────────────────────────────

    def export_configuration(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "asset_type": self.asset_type,
            "default_config": dict(self.default_config),
            "supported_formats": list(self.supported_formats),
            "max_batch_size": self.max_batch_size,
            "cache_enabled": self.cache_enabled,
            "cache_max_size": self.cache.max_size,
            "validators": list(self.validators),
            "generation_stats": asdict(self.stats),
        }

    def import_configuration(self, data: Mapping[str, Any]):
        """Restore tunables from export_configuration(). Validators and stats are not restored."""
        for attr in ("name", "version", "description", "asset_type", "max_batch_size"):
            if data.get(attr):
                setattr(self, attr, data[attr])
        if data.get("default_config") is not None:
            self.default_config = dict(data["default_config"])
        if data.get("supported_formats"):
            self.supported_formats = list(data["supported_formats"])
        if data.get("cache_enabled") is not None:
            self.cache_enabled = bool(data["cache_enabled"])
        if data.get("cache_max_size"):
            self.cache.max_size = int(data["cache_max_size"])
        self.emit(GenerationEvent.CONFIGURATION_IMPORTED, dict(data))

    def cleanup(self):
        self.clear_cache()
        self.validators.clear()
        self.events.clear()
        with self._stats_lock:
            self._progress = _idle_progress()
            self._stats = GenerationStats()
        log.info("Cleaned up %s generator", self.name)


def _with_seed(config, seed: Optional[int], index: int):
    if seed is None or not isinstance(config, Mapping) or "seed" in config:
        return config
    return {**config, "seed": seed + index}


def _encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, "PNG")
    return buf.getvalue()
