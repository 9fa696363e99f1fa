"""
Diagnosis cache with a 24-hour freshness window.

The gateway enforces freshness on read; stores only keep records. Cache
failures never fail a request: reads degrade to a miss, writes are logged.
"""

import asyncio
import hashlib
import json
import os
import tempfile
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

import structlog

from ..core.config import settings
from ..models.schemas import DiagnosisRecord, utcnow

logger = structlog.get_logger()


class DiagnosisStore(Protocol):
    """Key-value store collaborator holding diagnosis records by URL."""

    async def fetch_records(self, url: str) -> List[DiagnosisRecord]:
        ...

    async def insert(self, record: DiagnosisRecord) -> None:
        ...

    async def delete_older_than(self, cutoff: datetime) -> int:
        ...


class InMemoryDiagnosisStore:
    """Process-local store, for tests and single-process development."""

    def __init__(self):
        self._records: Dict[str, List[DiagnosisRecord]] = {}

    async def fetch_records(self, url: str) -> List[DiagnosisRecord]:
        return list(self._records.get(url, []))

    async def insert(self, record: DiagnosisRecord) -> None:
        self._records.setdefault(record.url, []).append(record)

    async def delete_older_than(self, cutoff: datetime) -> int:
        removed = 0
        for url in list(self._records):
            kept = [r for r in self._records[url] if r.created_at >= cutoff]
            removed += len(self._records[url]) - len(kept)
            if kept:
                self._records[url] = kept
            else:
                del self._records[url]
        return removed


class FileDiagnosisStore:
    """
    File-based store: one JSON file per URL (MD5-hashed file name) holding
    every record written for that URL.
    """

    def __init__(self, cache_dir: Optional[str] = None):
        self.cache_dir = Path(cache_dir or settings.CACHE_DIR)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        # Read-modify-write of a URL's file runs in worker threads.
        self._lock = threading.Lock()
        logger.info("cache_initialized", cache_dir=str(self.cache_dir))

    def _get_key_hash(self, key: str) -> str:
        """Generate MD5 hash for cache key."""
        return hashlib.md5(key.encode()).hexdigest()

    def _get_cache_path(self, key: str) -> Path:
        """Get file path for cache key."""
        return self.cache_dir / f"{self._get_key_hash(key)}.json"

    @staticmethod
    def _read(path: Path) -> List[DiagnosisRecord]:
        if not path.exists():
            return []
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return [DiagnosisRecord.model_validate(r) for r in data.get("records", [])]

    def _write(self, path: Path, url: str, records: List[DiagnosisRecord]) -> None:
        # Unique temp file per write; os.replace installs it atomically.
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.cache_dir, suffix=".tmp", delete=False
        ) as f:
            json.dump({"url": url, "records": [r.model_dump(mode="json") for r in records]}, f)
        os.replace(f.name, path)

    def _append(self, record: DiagnosisRecord) -> None:
        path = self._get_cache_path(record.url)
        with self._lock:
            try:
                records = self._read(path)
            except (OSError, ValueError) as e:
                logger.warning("cache_file_unreadable", file=path.name, error=str(e))
                records = []
            records.append(record)
            self._write(path, record.url, records)

    def _prune(self, cutoff: datetime) -> int:
        removed = 0
        with self._lock:
            for cache_file in self.cache_dir.glob("*.json"):
                try:
                    records = self._read(cache_file)
                except (OSError, ValueError) as e:
                    logger.warning("cache_file_discarded", file=cache_file.name, error=str(e))
                    cache_file.unlink(missing_ok=True)
                    continue

                kept = [r for r in records if r.created_at >= cutoff]
                removed += len(records) - len(kept)
                if not kept:
                    cache_file.unlink(missing_ok=True)
                elif len(kept) != len(records):
                    self._write(cache_file, kept[0].url, kept)
        return removed

    async def fetch_records(self, url: str) -> List[DiagnosisRecord]:
        return await asyncio.to_thread(self._read, self._get_cache_path(url))

    async def insert(self, record: DiagnosisRecord) -> None:
        await asyncio.to_thread(self._append, record)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await asyncio.to_thread(self._prune, cutoff)


class DiagnosisCache:
    """
    Cache gateway used by the workflow.
    A record counts as cached only while ``now - created_at <= ttl``.
    """

    def __init__(
        self,
        store: DiagnosisStore,
        ttl_hours: int = settings.CACHE_TTL_HOURS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ttl = timedelta(hours=ttl_hours)
        self.clock = clock

    def is_fresh(self, record: DiagnosisRecord, now: Optional[datetime] = None) -> bool:
        now = now or self.clock()
        return now - record.created_at <= self.ttl

    async def get(self, url: str) -> Optional[DiagnosisRecord]:
        """
        Freshest record for ``url`` within the TTL, or None.
        Store errors are treated as a miss.
        """
        try:
            records = await self.store.fetch_records(url)
        except Exception as e:
            logger.warning("cache_read_error", url=url, error=str(e))
            return None

        now = self.clock()
        fresh = [r for r in records if self.is_fresh(r, now)]
        if not fresh:
            logger.debug("cache_miss", url=url, stale_records=len(records))
            return None

        logger.info("cache_hit", url=url)
        return max(fresh, key=lambda r: r.created_at)

    async def put(self, url: str, result: str) -> bool:
        """
        Store a new record. Returns False instead of raising on failure.
        """
        try:
            await self.store.insert(DiagnosisRecord(url=url, result=result, created_at=self.clock()))
        except Exception as e:
            logger.warning("cache_write_error", url=url, error=str(e))
            return False

        logger.info("cache_set", url=url)
        return True

    async def cleanup(self, days: int = settings.CACHE_RETENTION_DAYS) -> int:
        """
        Delete records older than ``days``. Advisory: errors are logged.

        Returns:
            Number of records removed
        """
        cutoff = self.clock() - timedelta(days=days)
        try:
            removed = await self.store.delete_older_than(cutoff)
        except Exception as e:
            logger.error("cache_cleanup_error", error=str(e))
            return 0

        logger.info("cache_cleanup", cleared=removed, days=days)
        return removed
