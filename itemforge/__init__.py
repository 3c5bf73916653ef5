"""Procedural 2D item sprites composed from discrete template axes."""

from itemforge.composer import ComposedItem, Effect, TemplateComposer
from itemforge.errors import (
    BatchItemFailure,
    ConfigValidationError,
    ItemForgeError,
    RasterizationFailure,
    UnknownAxisValue,
)
from itemforge.events import EventBus, GenerationEvent
from itemforge.generator import ItemGenerator
from itemforge.pipeline import Asset, BaseGenerator, BatchResult, CancellationToken
from itemforge.raster import Canvas, Compositor

__version__ = "1.0.0"
