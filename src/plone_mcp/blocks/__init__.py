"""Volto block handling: schema registry, normalization, layouts, staging."""

from .assembly import BlockAssembler
from .image_check import ImageChecker, ImageURLChecker, is_data_image_url
from .layout import enforce_title_block, insert_block_id, reconcile_layout
from .normalizer import BlockNormalizer
from .registry import BLOCK_TYPE_ALIASES, SchemaRegistry
from .staging import StagingSlot

__all__ = [
    "BLOCK_TYPE_ALIASES",
    "BlockAssembler",
    "BlockNormalizer",
    "ImageChecker",
    "ImageURLChecker",
    "SchemaRegistry",
    "StagingSlot",
    "enforce_title_block",
    "insert_block_id",
    "is_data_image_url",
    "reconcile_layout",
]
