"""Message rendering."""

from feed_relay.adapters.rendering.image_extractor import ImageExtractor
from feed_relay.adapters.rendering.item_renderer import ItemRenderer

__all__ = ["ImageExtractor", "ItemRenderer"]
