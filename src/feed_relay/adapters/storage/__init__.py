"""Watermark storage adapters."""

from feed_relay.adapters.storage.yaml_store import YamlWatermarkStore

__all__ = ["YamlWatermarkStore"]
