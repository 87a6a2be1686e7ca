"""
Model Artifact Loader

Downloads model files over HTTP into a local cache directory.

    - Streams the body and reports ModelLoadProgress(loaded, total, percentage)
    - Verifies SHA-256 when a checksum is supplied (ChecksumError on mismatch)
    - Retries with exponential backoff (retry_delay * 2**attempt)
    - Concurrent loads of the same URL share one in-flight future
    - A file lock serializes downloads of the same file across processes

A file that already exists (and passes its checksum, when one is given) is
reused without touching the network.

Example:
    >>> loader = ModelLoader(Path("~/.cache/vector_intel/models").expanduser())
    >>> path = await loader.load(
    ...     "https://example.com/model.onnx",
    ...     sha256="ab12...",
    ...     on_progress=lambda p: print(p.percentage),
    ... )
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Callable
from pathlib import Path
from urllib.parse import urlparse

import httpx
from filelock import FileLock

from vector_intel.errors import ChecksumError, ModelLoadError
from vector_intel.types import ModelLoadProgress, ModelStatus

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_BASE = 1.0
CHUNK_SIZE = 1 << 16

ProgressCallback = Callable[[ModelLoadProgress], None]


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


class ModelLoader:
    """
    Fetches and verifies model artifacts.

    Args:
        cache_dir: Directory that receives downloaded files
        max_retries: Download attempts per artifact
        retry_delay: Base backoff delay in seconds
        timeout: HTTP timeout in seconds
        transport: Optional httpx transport (httpx.MockTransport in tests)
    """

    def __init__(
        self,
        cache_dir: Path | str,
        *,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_BASE,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._inflight: dict[str, asyncio.Task[Path]] = {}
        self._status: dict[str, ModelStatus] = {}

    def status(self, url: str) -> ModelStatus:
        return self._status.get(url, "unloaded")

    def target_path(self, url: str, filename: str | None = None) -> Path:
        name = filename or Path(urlparse(url).path).name or "model.bin"
        return self.cache_dir / name

    async def load(
        self,
        url: str,
        *,
        filename: str | None = None,
        sha256: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        """
        Return a local path for the artifact, downloading it if needed.

        Raises:
            ModelLoadError: All attempts failed (download or checksum)
        """
        task = self._inflight.get(url)
        if task is None:
            self._status[url] = "loading"
            task = asyncio.ensure_future(self._load(url, filename, sha256, on_progress))
            self._inflight[url] = task
            task.add_done_callback(lambda _t: self._inflight.pop(url, None))

        try:
            path = await asyncio.shield(task)
        except Exception:
            self._status[url] = "error"
            raise
        self._status[url] = "loaded"
        return path

    async def _load(
        self,
        url: str,
        filename: str | None,
        sha256: str | None,
        on_progress: ProgressCallback | None,
    ) -> Path:
        target = self.target_path(url, filename)
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)

        if await asyncio.to_thread(self._is_valid, target, sha256):
            logger.info("Using cached model artifact %s", target)
            return target

        lock = FileLock(str(target) + ".lock", timeout=600)
        await asyncio.to_thread(lock.acquire)
        try:
            # Another process may have finished the download while we waited
            if await asyncio.to_thread(self._is_valid, target, sha256):
                return target
            return await self._download_with_retry(url, target, sha256, on_progress)
        finally:
            lock.release()

    @staticmethod
    def _is_valid(path: Path, sha256: str | None) -> bool:
        if not path.exists() or path.stat().st_size == 0:
            return False
        if sha256 is None:
            return True
        return sha256_file(path) == sha256.lower()

    async def _download_with_retry(
        self,
        url: str,
        target: Path,
        sha256: str | None,
        on_progress: ProgressCallback | None,
    ) -> Path:
        last_error: Exception | None = None
        expected_size: int | None = None
        actual_size: int | None = None

        for attempt in range(self.max_retries):
            try:
                expected_size, actual_size = await self._download(
                    url, target, sha256, on_progress
                )
                logger.info("Downloaded %s (%d bytes) to %s", url, actual_size, target)
                return target
            except (httpx.HTTPError, ChecksumError, OSError) as e:
                last_error = e
                if isinstance(e, ChecksumError):
                    actual_size = e.size
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        "Model download attempt %d/%d failed: %s; retrying in %.1fs",
                        attempt + 1, self.max_retries, e, delay,
                    )
                    await asyncio.sleep(delay)

        logger.error("Model download failed after %d attempts: %s", self.max_retries, last_error)
        raise ModelLoadError(
            url,
            target,
            attempts=self.max_retries,
            reason=str(last_error),
            expected_size=expected_size,
            actual_size=actual_size,
        ) from last_error

    async def _download(
        self,
        url: str,
        target: Path,
        sha256: str | None,
        on_progress: ProgressCallback | None,
    ) -> tuple[int | None, int]:
        partial = target.with_name(target.name + ".part")
        digest = hashlib.sha256()
        loaded = 0
        total: int | None = None

        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True, transport=self._transport
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                if length := response.headers.get("content-length"):
                    total = int(length)

                with open(partial, "wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        digest.update(chunk)
                        loaded += len(chunk)
                        if on_progress is not None:
                            percentage = loaded / total * 100 if total else None
                            on_progress(
                                ModelLoadProgress(loaded=loaded, total=total, percentage=percentage)
                            )

        actual = digest.hexdigest()
        if sha256 is not None and actual != sha256.lower():
            partial.unlink(missing_ok=True)
            raise ChecksumError(target, sha256.lower(), actual, loaded)

        partial.replace(target)
        return total, loaded
