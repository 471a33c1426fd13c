"""Weighment slip (kanta parchi) image acquisition for invoices.

The chatbot stores either a public URL of the photo the driver uploaded or a
path relative to the uploads directory. Remote images are downloaded into a
temporary file that only lives for the duration of the render.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

import httpx
from reportlab.lib.utils import ImageReader

logger = logging.getLogger(__name__)

_IMAGE_EXTENSIONS = (".jpg", ".png")


def is_remote(ref: Optional[str]) -> bool:
    return bool(ref) and ref.lower().startswith(("http://", "https://"))


def is_usable_image(path: Path) -> bool:
    """True if reportlab can read the file as an image."""
    try:
        width, height = ImageReader(str(path)).getSize()
    except Exception as e:
        logger.warning("Unreadable image %s: %s", path, e)
        return False
    return width > 0 and height > 0


class ImageResolver:
    def __init__(
        self,
        uploads_dir: Path,
        temp_dir: Path,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.uploads_dir = Path(uploads_dir)
        self.temp_dir = Path(temp_dir)
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def download(self, url: str) -> Optional[Path]:
        """Download `url` into a temp file. Returns None on any failure; never leaves a partial file.

        `timeout_seconds` bounds the whole transfer, not just each read.
        """
        suffix = Path(url.split("?", 1)[0]).suffix.lower()
        if suffix not in (".jpg", ".jpeg", ".png"):
            suffix = ".jpg"
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(prefix="kanta_", suffix=suffix, dir=self.temp_dir)
        except OSError as e:
            logger.warning("Cannot create temp file in %s: %s", self.temp_dir, e)
            return None
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as fh:
                await asyncio.wait_for(self._fetch(url, fh), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Image download from %s exceeded %ss", url, self.timeout_seconds)
            self.cleanup(path)
            return None
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.warning("Failed to download image from %s: %s", url, e)
            self.cleanup(path)
            return None
        return path

    async def _fetch(self, url: str, fh) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, follow_redirects=True, transport=self._transport
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    fh.write(chunk)

    def local_candidates(self, request) -> List[Path]:
        candidates: List[Path] = []
        ref = getattr(request, "kanta_parchi_image", None)
        if ref and not is_remote(ref):
            candidate = (self.uploads_dir / ref).resolve()
            # Stored references must stay inside the uploads directory
            if self.uploads_dir.resolve() in candidate.parents:
                candidates.append(candidate)
        folder = self.uploads_dir / "kantaparchi"
        for key in (getattr(request, "id", None), getattr(request, "user_id", None)):
            if key:
                candidates.extend(folder / f"{key}{ext}" for ext in _IMAGE_EXTENSIONS)
        return candidates

    @staticmethod
    def cleanup(path: Optional[Path]) -> None:
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
            logger.debug("Cleaned up temp image %s", path)
        except OSError as e:
            logger.warning("Failed to cleanup temp image %s: %s", path, e)

    @asynccontextmanager
    async def acquire(self, request) -> AsyncIterator[Optional[Path]]:
        """Yield a readable image path for `request`, or None.

        A downloaded temp copy is deleted on exit whether or not rendering succeeded.
        """
        downloaded: Optional[Path] = None
        ref = getattr(request, "kanta_parchi_image", None)
        if is_remote(ref):
            logger.info("Downloading weighment slip image for request %s", getattr(request, "id", "?"))
            downloaded = await self.download(ref)
        try:
            if downloaded is not None and is_usable_image(downloaded):
                yield downloaded
                return
            for candidate in self.local_candidates(request):
                if candidate.is_file() and is_usable_image(candidate):
                    logger.info("Using local weighment slip image %s", candidate)
                    yield candidate
                    return
            yield None
        finally:
            self.cleanup(downloaded)
