"""Watermark store backed by one YAML document per feed."""

import asyncio
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
import yaml

from feed_relay.core import PersistenceError, Watermark, WatermarkStore
from feed_relay.core.timestamps import to_datetime

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class YamlWatermarkStore(WatermarkStore):
    """Keep each feed's watermark as ``<state_dir>/<feed_key>.yaml``."""

    def __init__(self, state_dir: Path, clock: Callable[[], datetime] = _utcnow) -> None:
        self.state_dir = state_dir
        self._clock = clock

    def _path(self, feed_key: str) -> Path:
        return self.state_dir / f"{feed_key}.yaml"

    async def get(self, feed_key: str) -> Optional[Watermark]:
        return await asyncio.to_thread(self._read, self._path(feed_key))

    async def set(
        self,
        feed_key: str,
        last_item_id: Optional[str],
        last_publish_date: Any,
        last_title: Optional[str],
        *,
        feed_url: Optional[str] = None,
        recent_ids: Optional[list[str]] = None,
    ) -> Watermark:
        return await asyncio.to_thread(
            self._upsert, feed_key, last_item_id, last_publish_date, last_title, feed_url, recent_ids
        )

    async def list_all(self) -> list[Watermark]:
        return await asyncio.to_thread(self._read_all)

    def _upsert(
        self,
        feed_key: str,
        last_item_id: Optional[str],
        last_publish_date: Any,
        last_title: Optional[str],
        feed_url: Optional[str],
        recent_ids: Optional[list[str]],
    ) -> Watermark:
        path = self._path(feed_key)
        try:
            existing = self._read(path)
        except PersistenceError as e:
            # The new document replaces the broken one
            logger.warning("Overwriting unreadable watermark", feed_key=feed_key, error=str(e))
            existing = None
        now = self._clock()

        watermark = Watermark(
            feed_key=feed_key,
            feed_url=feed_url or (existing.feed_url if existing else None),
            last_item_id=last_item_id or None,
            last_publish_date=to_datetime(last_publish_date),
            last_title=last_title or None,
            # createdAt is stamped once and survives every later update
            created_at=existing.created_at if existing and existing.created_at else now,
            updated_at=now,
            recent_ids=list(recent_ids) if recent_ids is not None else (existing.recent_ids if existing else []),
        )
        self._write(path, watermark)
        logger.debug("Watermark saved", feed_key=feed_key, last_title=watermark.last_title)
        return watermark

    def _write(self, path: Path, watermark: Watermark) -> None:
        document = {
            "feed_key": watermark.feed_key,
            "feed_url": watermark.feed_url,
            "last_item_id": watermark.last_item_id,
            "last_publish_date": _iso(watermark.last_publish_date),
            "last_title": watermark.last_title,
            "created_at": _iso(watermark.created_at),
            "updated_at": _iso(watermark.updated_at),
            "recent_ids": watermark.recent_ids,
        }
        tmp_path = path.with_suffix(".yaml.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(document, f, allow_unicode=True, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, path)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Could not write watermark {path.name}: {e}") from e

    def _read(self, path: Path) -> Optional[Watermark]:
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Could not read watermark {path.name}: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceError(f"Malformed watermark document {path.name}")

        return Watermark(
            feed_key=str(data.get("feed_key") or path.stem),
            feed_url=data.get("feed_url"),
            last_item_id=data.get("last_item_id") or None,
            last_publish_date=to_datetime(data.get("last_publish_date")),
            last_title=data.get("last_title") or None,
            created_at=to_datetime(data.get("created_at")),
            updated_at=to_datetime(data.get("updated_at")),
            recent_ids=[str(i) for i in data.get("recent_ids") or []],
        )

    def _read_all(self) -> list[Watermark]:
        if not self.state_dir.exists():
            return []

        watermarks = []
        for path in sorted(self.state_dir.glob("*.yaml")):
            try:
                watermark = self._read(path)
            except PersistenceError as e:
                logger.warning("Skipping unreadable watermark", file=path.name, error=str(e))
                continue
            if watermark:
                watermarks.append(watermark)
        return watermarks


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
