"""Directory-backed named cache stores."""

import json
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from .models import CacheMeta, FetchResult, cache_key, get_extension_for_content_type

logger = logging.getLogger(__name__)


def _write_atomic(path: Path, data: bytes) -> None:
    """Write via a temp file and rename so readers never see partial data."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        Path(tmp_name).replace(path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FileCacheStore:
    """One named cache: URL -> response, stored as meta JSON plus raw body."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.name = directory.name
        self._meta_dir.mkdir(parents=True, exist_ok=True)
        self._raw_dir.mkdir(parents=True, exist_ok=True)

    @property
    def _meta_dir(self) -> Path:
        return self.directory / "meta"

    @property
    def _raw_dir(self) -> Path:
        return self.directory / "raw"

    def _get_meta_path(self, url: str) -> Path:
        return self._meta_dir / f"{cache_key(url)}.json"

    def _read_meta(self, meta_path: Path) -> CacheMeta | None:
        try:
            with meta_path.open("r") as f:
                return CacheMeta.from_dict(json.load(f))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, ValueError):
            logger.warning("Discarding corrupted cache metadata %s", meta_path)
            meta_path.unlink(missing_ok=True)
            return None

    def match(self, url: str) -> FetchResult | None:
        """Get the stored response for a URL, if any."""
        meta = self._read_meta(self._get_meta_path(url))
        if meta is None:
            return None
        raw_path = self.directory / meta.raw_path
        try:
            body = raw_path.read_bytes()
        except FileNotFoundError:
            return None
        return FetchResult(
            url=meta.url,
            status_code=meta.status_code,
            headers=dict(meta.headers),
            body=body,
            content_type=meta.content_type,
            from_cache=True,
            cache_name=self.name,
        )

    def put(self, url: str, result: FetchResult) -> None:
        """Store (or overwrite) the response for a URL."""
        key = cache_key(url)
        ext = get_extension_for_content_type(result.content_type)
        raw_rel = f"raw/{key}{ext}"
        previous = self._read_meta(self._get_meta_path(url))
        meta = CacheMeta(
            url=url,
            status_code=result.status_code,
            stored_at=datetime.now(timezone.utc),
            content_type=result.content_type,
            headers=dict(result.headers),
            raw_path=raw_rel,
        )
        _write_atomic(self.directory / raw_rel, result.body)
        _write_atomic(
            self._get_meta_path(url), json.dumps(meta.to_dict(), indent=2).encode()
        )
        # A new content type means a new extension; drop the old body
        if previous is not None and previous.raw_path != raw_rel:
            (self.directory / previous.raw_path).unlink(missing_ok=True)

    def put_all(self, items: Iterable[tuple[str, FetchResult]]) -> None:
        """Store several responses."""
        for url, result in items:
            self.put(url, result)

    def keys(self) -> list[str]:
        """List stored URLs."""
        urls = []
        for meta_path in sorted(self._meta_dir.glob("*.json")):
            meta = self._read_meta(meta_path)
            if meta is not None:
                urls.append(meta.url)
        return sorted(urls)

    def delete(self, url: str) -> bool:
        """Delete a single entry."""
        meta_path = self._get_meta_path(url)
        meta = self._read_meta(meta_path)
        if meta is None:
            return False
        if meta.raw_path:
            (self.directory / meta.raw_path).unlink(missing_ok=True)
        meta_path.unlink(missing_ok=True)
        return True


class CacheStorage:
    """All named caches for one origin, one subdirectory per cache."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def _cache_dir(self, name: str) -> Path:
        if not name or "/" in name or name.startswith("."):
            msg = f"Invalid cache name: {name!r}"
            raise ValueError(msg)
        return self.root / name

    def open(self, name: str) -> FileCacheStore:
        """Open a cache by name, creating it if needed."""
        return FileCacheStore(self._cache_dir(name))

    def has(self, name: str) -> bool:
        """Check whether a cache exists."""
        return self._cache_dir(name).is_dir()

    def keys(self) -> list[str]:
        """List existing cache names."""
        return sorted(
            p.name
            for p in self.root.iterdir()
            if p.is_dir() and not p.name.startswith(".")
        )

    def delete(self, name: str) -> bool:
        """Delete a whole cache."""
        path = self._cache_dir(name)
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        return True

    def match(self, url: str, cache_name: str | None = None) -> FetchResult | None:
        """Look a URL up in one cache, or in every cache in name order."""
        names = [cache_name] if cache_name is not None else self.keys()
        for name in names:
            if not self.has(name):
                continue
            found = self.open(name).match(url)
            if found is not None:
                return found
        return None
