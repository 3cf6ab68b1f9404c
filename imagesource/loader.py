"""
Default external loader.

Resolves a ``Uri`` into ``ImageData``:
  - http/https via a ``requests.Session`` (streamed, chunked)
  - file:// and application-root URIs from disk
  - anything else -> UnsupportedSchemeError

Blocking I/O runs on a worker thread; the cancel signal is checked between
chunks so a superseded request stops reading early. Paths ending in ``.svg``
are built as vector images, everything else goes through Pillow. The cache keeps
the ``cache_size`` most recently used images.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections import OrderedDict
from typing import Optional
from urllib.parse import unquote
from urllib.request import url2pathname

import requests

from .domain import ImageData, Uri
from .exceptions import ImageHttpError, ImageLoadError, UnsupportedSchemeError
from .imaging import image_from_bytes
from .options import ResolverConfig
from .session import CancelSignal
from .sniffing import SVG_MIME

LOGGER = logging.getLogger(__name__)


class DefaultImageLoader:
    """Fetch images over HTTP or from disk, with an optional in-memory cache."""

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self._config = config or ResolverConfig()
        self._session = session or requests.Session()
        self._cache: OrderedDict[str, ImageData] = OrderedDict()
        self._lock = threading.Lock()
        LOGGER.debug("Initialized DefaultImageLoader app_root=%s", self._config.app_root)

    async def load(
        self, uri: Uri, use_cache: bool, cancel_signal: CancelSignal
    ) -> Optional[ImageData]:
        key = str(uri)
        if use_cache:
            with self._lock:
                cached = self._cache.get(key)
                if cached is not None:
                    self._cache.move_to_end(key)
            if cached is not None:
                LOGGER.debug("imagesource.loader.cache_hit %s", key)
                return cached

        cancel_signal.raise_if_cancelled()
        image = await asyncio.to_thread(self._load_blocking, uri, cancel_signal)

        if use_cache and image is not None:
            self._remember(key, image)
        return image

    def _remember(self, key: str, image: ImageData) -> None:
        with self._lock:
            self._cache[key] = image
            self._cache.move_to_end(key)
            while len(self._cache) > max(self._config.cache_size, 0):
                evicted, _ = self._cache.popitem(last=False)
                LOGGER.debug("imagesource.loader.cache_evict %s", evicted)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def cached(self, uri: Uri) -> Optional[ImageData]:
        with self._lock:
            return self._cache.get(str(uri))

    # ----------------------------- blocking side -----------------------------

    def _load_blocking(self, uri: Uri, cancel_signal: CancelSignal) -> ImageData:
        data = self._fetch(uri, cancel_signal)
        cancel_signal.raise_if_cancelled()
        mime = SVG_MIME if uri.path.lower().endswith(".svg") else None
        return image_from_bytes(data, mime, source=str(uri))

    def _fetch(self, uri: Uri, cancel_signal: CancelSignal) -> bytes:
        if uri.is_http:
            return self._fetch_http(uri, cancel_signal)
        path = self._local_path(uri)
        if path is None:
            raise UnsupportedSchemeError(
                f"No loader for scheme '{uri.scheme}'", uri=str(uri)
            )
        return self._read_file(path, str(uri), cancel_signal)

    def _fetch_http(self, uri: Uri, cancel_signal: CancelSignal) -> bytes:
        url = str(uri)
        LOGGER.info("GET %s", url)
        try:
            resp = self._session.get(
                url, stream=True, timeout=self._config.http_timeout
            )
        except requests.RequestException as e:
            LOGGER.error("GET %s failed: %s", url, e)
            raise ImageLoadError(f"Request failed: {e}", uri=url) from e

        try:
            code = resp.status_code
            LOGGER.debug("GET %s returned status %d", url, code)
            if code >= 400:
                LOGGER.error("GET %s failed with code %d", url, code)
                raise ImageHttpError(
                    f"HTTP {code}",
                    uri=url,
                    status_code=code,
                    payload=resp.text,
                )
            buf = bytearray()
            for chunk in resp.iter_content(chunk_size=self._config.chunk_size):
                cancel_signal.raise_if_cancelled()
                if chunk:
                    buf += chunk
        except requests.RequestException as e:
            LOGGER.error("GET %s failed while streaming: %s", url, e)
            raise ImageLoadError(f"Request failed: {e}", uri=url) from e
        finally:
            resp.close()
        LOGGER.info("GET %s -> %d bytes", url, len(buf))
        return bytes(buf)

    def _local_path(self, uri: Uri) -> Optional[str]:
        if uri.scheme == "file":
            return url2pathname(uri.path)

        root = self._config.app_root
        text = str(uri)
        if not text.startswith(root):
            return None
        base = self._config.app_root_dir
        if not base:
            raise UnsupportedSchemeError(
                "No application root directory configured", uri=text
            )
        rel = text[len(root) :].split("?", 1)[0].split("#", 1)[0]
        rel = unquote(rel).lstrip("/")
        base = os.path.abspath(base)
        path = os.path.abspath(os.path.join(base, rel))
        if os.path.commonpath([base, path]) != base:
            raise ImageLoadError("Path escapes application root", uri=text)
        return path

    def _read_file(self, path: str, uri: str, cancel_signal: CancelSignal) -> bytes:
        LOGGER.info("Reading %s", path)
        buf = bytearray()
        try:
            with open(path, "rb") as f:
                while True:
                    cancel_signal.raise_if_cancelled()
                    chunk = f.read(self._config.chunk_size)
                    if not chunk:
                        break
                    buf += chunk
        except OSError as e:
            raise ImageLoadError(f"Cannot read {path}: {e}", uri=uri) from e
        return bytes(buf)
