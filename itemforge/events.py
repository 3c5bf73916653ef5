"""Generation events and the callback registry that delivers them."""

import logging
import threading
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger(__name__)


class GenerationEvent(str, Enum):
    GENERATION_START = "generationStart"
    PRE_GENERATE = "preGenerate"
    GENERATION_SUCCESS = "generationSuccess"
    GENERATION_ERROR = "generationError"
    CACHE_HIT = "cacheHit"
    CACHE_CLEARED = "cacheCleared"
    BATCH_START = "batchStart"
    BATCH_PROGRESS = "batchProgress"
    BATCH_ERROR = "batchError"
    BATCH_COMPLETE = "batchComplete"
    PROGRESS_UPDATE = "progressUpdate"
    PROGRESS_COMPLETE = "progressComplete"
    CONFIGURATION_IMPORTED = "configurationImported"


Listener = Callable[[Dict[str, Any]], None]


class EventBus:
    """Synchronous callback registry. Listeners run on the emitting thread."""

    def __init__(self):
        self._listeners: Dict[GenerationEvent, List[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def on(self, event, listener: Listener):
        with self._lock:
            self._listeners[GenerationEvent(event)].append(listener)
        return listener

    def off(self, event, listener: Optional[Listener] = None):
        event = GenerationEvent(event)
        with self._lock:
            if listener is None:
                self._listeners.pop(event, None)
            elif listener in self._listeners.get(event, []):
                self._listeners[event].remove(listener)

    def emit(self, event: GenerationEvent, payload: Optional[Dict[str, Any]] = None):
        with self._lock:
            listeners = list(self._listeners.get(event, ()))
        payload = payload or {}
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                log.exception("Listener %r failed on %s", listener, event.value)

    def listener_count(self, event=None) -> int:
        with self._lock:
            if event is not None:
                return len(self._listeners.get(GenerationEvent(event), ()))
            return sum(len(v) for v in self._listeners.values())

    def clear(self):
        with self._lock:
            self._listeners.clear()
