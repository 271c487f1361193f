"""Live camera snapshots: fetching, annotating and saving.

Snapshots are taken live from the camera (``/snap.jpeg``) at
notification time rather than from the event recording. Saved files get
unique names so a snapshot handed to a background upload is never
overwritten by a later poll.
"""

from __future__ import annotations

import asyncio
import io
import tempfile
import uuid
from datetime import datetime
from pathlib import Path

import httpx
from loguru import logger  # type: ignore[import-untyped]
from PIL import Image, ImageDraw

from unifi_motion.protect.errors import ApiError, TransportError
from unifi_motion.protect.models import Camera, DetectionResult


BOX_COLOR = (0, 255, 0)
JPEG_QUALITY = 90


class SnapshotFetcher:
    """Fetches live JPEG snapshots from cameras."""

    def __init__(self, http: httpx.AsyncClient, timeout: float = 1.0) -> None:
        """Initialize the fetcher.

        Args:
            http: HTTP client used for the camera requests.
            timeout: Per-request timeout in seconds.
        """
        self._http = http
        self._timeout = timeout

    async def fetch(self, camera: Camera) -> bytes:
        """Fetch the current snapshot of a camera.

        Args:
            camera: The camera to capture.

        Returns:
            The encoded JPEG bytes.

        Raises:
            TransportError: If the camera cannot be reached.
            ApiError: If the camera answers with an error or an empty body.
        """
        if not camera.ip_address:
            raise ApiError(f'Camera {camera.name} has no IP address')

        try:
            response = await self._http.get(camera.snapshot_url, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise TransportError(f'Cannot fetch snapshot of {camera.name}: {e}', original_error=e)

        if response.is_error:
            raise ApiError(
                f'Snapshot of {camera.name} failed: HTTP {response.status_code}',
                status_code=response.status_code,
            )
        if not response.content:
            raise ApiError(f'Snapshot of {camera.name} is empty')
        return response.content


def annotate(image: bytes, detections: list[DetectionResult]) -> Image.Image:
    """Decode a JPEG and draw the bounding box of every detection.

    Args:
        image: Encoded JPEG bytes.
        detections: Detections to draw.

    Returns:
        The decoded, annotated RGB image.
    """
    picture = Image.open(io.BytesIO(image)).convert('RGB')
    if detections:
        draw = ImageDraw.Draw(picture)
        for detection in detections:
            x, y, width, height = detection.bounding_box
            draw.rectangle((x, y, x + width, y + height), outline=BOX_COLOR, width=3)
            draw.text((x + 4, y + 4), f'{detection.label} {detection.score}%', fill=BOX_COLOR)
    return picture


class SnapshotStore:
    """Writes annotated snapshots to disk.

    Attributes:
        directory: Directory for persisted snapshots.
        temp_directory: Directory for snapshots only kept until uploaded.
    """

    def __init__(self, directory: Path, temp_directory: Path | None = None) -> None:
        """Initialize the store.

        Args:
            directory: Directory for persisted snapshots.
            temp_directory: Directory for upload-only snapshots. Defaults to
                a ``unifi-motion`` folder in the system temp directory.
        """
        self.directory = directory
        self.temp_directory = temp_directory or Path(tempfile.gettempdir()) / 'unifi-motion'

    @staticmethod
    def file_name(camera: Camera) -> str:
        """Unique file name for a new snapshot of ``camera``."""
        timestamp = datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
        return f'{camera.id}_{timestamp}_{uuid.uuid4().hex[:8]}.jpg'

    def _write(self, path: Path, image: bytes, detections: list[DetectionResult]) -> Path:
        """Annotate ``image`` and encode it to ``path`` as JPEG."""
        path.parent.mkdir(parents=True, exist_ok=True)
        annotate(image, detections).save(path, format='JPEG', quality=JPEG_QUALITY)
        return path

    async def save(
        self,
        image: bytes,
        camera: Camera,
        detections: list[DetectionResult] | None = None,
        temporary: bool = False,
    ) -> Path:
        """Annotate and save a snapshot.

        Decoding and encoding run in a worker thread so the event loop
        keeps polling.

        Args:
            image: Encoded JPEG bytes.
            camera: Camera the snapshot was taken from.
            detections: Detections to draw onto the image.
            temporary: Save into the temporary directory instead.

        Returns:
            Path of the written file.

        Raises:
            OSError: If the image cannot be decoded or written.
        """
        directory = self.temp_directory if temporary else self.directory
        path = directory / self.file_name(camera)
        await asyncio.to_thread(self._write, path, image, list(detections or []))
        logger.debug(f'Snapshot saved: {path}')
        return path

    @staticmethod
    def remove(path: Path) -> None:
        """Delete a snapshot file, ignoring files that are already gone."""
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f'Cannot remove snapshot {path}: {e}')
