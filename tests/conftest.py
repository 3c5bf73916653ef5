"""Shared fixtures: one generator per family and an event recorder."""

import io

import pytest
from PIL import Image

from itemforge.events import GenerationEvent
from itemforge.families.chest import ChestGenerator
from itemforge.families.lantern import LanternGenerator
from itemforge.families.mount_gear import MountGearGenerator
from itemforge.families.potion import PotionGenerator


class EventRecorder:
    """Collects (event, payload) pairs for every event a generator emits."""

    def __init__(self, generator):
        self.events = []
        for event in GenerationEvent:
            generator.on(event, lambda payload, event=event: self.events.append((event, payload)))

    def count(self, event):
        return sum(1 for e, _ in self.events if e == event)

    def payloads(self, event):
        return [p for e, p in self.events if e == event]

    def names(self):
        return [e.value for e, _ in self.events]


def decode(asset):
    return Image.open(io.BytesIO(asset.sprite.data))


@pytest.fixture
def lantern_gen():
    return LanternGenerator(cache_enabled=True, cache_max_size=100, batch_workers=1)


@pytest.fixture
def chest_gen():
    return ChestGenerator(cache_enabled=True, cache_max_size=100, batch_workers=1)


@pytest.fixture
def potion_gen():
    return PotionGenerator(cache_enabled=True, cache_max_size=100, batch_workers=1)


@pytest.fixture
def mount_gen():
    return MountGearGenerator(cache_enabled=True, cache_max_size=100, batch_workers=1)


@pytest.fixture
def recorder(lantern_gen):
    return EventRecorder(lantern_gen)
