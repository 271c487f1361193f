"""Motion polling loop for UniFi Protect cameras.

This module drives the bridge: every poll interval it fetches the latest
motion event per camera, suppresses repeats of long-running events,
optionally confirms the motion with object detection on a live snapshot,
and raises the camera's motion flag. Snapshot uploads run as detached
tasks so a slow upload never delays the next poll.

Example:
    >>> async with UniFiProtectClient(config) as client:
    ...     orchestrator = MotionOrchestrator(client, config, LoggingMotionSink())
    ...     await orchestrator.start()
    ...     # ... runs in background ...
    ...     await orchestrator.stop()
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger  # type: ignore[import-untyped]

from unifi_motion.motion.collaborators import MotionSensorSink, ObjectDetector, PhotoUploader
from unifi_motion.motion.snapshots import SnapshotFetcher, SnapshotStore
from unifi_motion.motion.state import MotionStateStore
from unifi_motion.protect.errors import ProtectClientError
from unifi_motion.protect.models import Camera, DetectionResult, MotionEvent


if TYPE_CHECKING:
    from unifi_motion.config import MotionConfig
    from unifi_motion.protect.client import UniFiProtectClient


def find_detection(class_name: str, detections: list[DetectionResult]) -> DetectionResult | None:
    """Return the first detection whose label matches ``class_name`` (case-insensitive)."""
    for detection in detections:
        if detection.matches(class_name):
            return detection
    return None


class MotionOrchestrator:
    """Polls for motion and raises deduplicated motion notifications.

    Cameras are processed one at a time inside a tick, and ticks never
    overlap: a tick that is due while the previous one is still running
    is skipped. The per-camera repeat state is only touched inside a tick.

    Attributes:
        config: Bridge configuration.
        states: Per-camera repeat-suppression state.
    """

    def __init__(
        self,
        client: UniFiProtectClient,
        config: MotionConfig,
        sink: MotionSensorSink,
        detector: ObjectDetector | None = None,
        uploader: PhotoUploader | None = None,
        cameras: list[Camera] | None = None,
        states: MotionStateStore | None = None,
        snapshot_fetcher: SnapshotFetcher | None = None,
        snapshot_store: SnapshotStore | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Connected controller client.
            config: Bridge configuration.
            sink: Platform receiving the motion flags.
            detector: Object detector, required in enhanced mode.
            uploader: Optional photo uploader.
            cameras: Cameras to track. Defaults to the client's cameras.
            states: Existing repeat state. A new store is created if omitted.
            snapshot_fetcher: Snapshot source. Defaults to one sharing the
                client's HTTP connection.
            snapshot_store: Snapshot writer. Defaults to ``config.snapshot_dir``.

        Raises:
            ValueError: If enhanced mode is enabled without a detector.
        """
        if config.enhanced_motion and detector is None:
            raise ValueError('Enhanced motion detection requires an object detector')

        self._client = client
        self.config = config
        self._sink = sink
        self._detector = detector
        self._uploader = uploader
        self._cameras = cameras
        self.states = states or MotionStateStore()
        self._snapshot_fetcher = snapshot_fetcher
        self._snapshot_store = snapshot_store or SnapshotStore(config.snapshot_dir)

        self._tick_lock = asyncio.Lock()
        self._loop_task: asyncio.Task[None] | None = None
        self._tick_tasks: set[asyncio.Task[bool]] = set()
        self._upload_tasks: set[asyncio.Task[None]] = set()
        self._is_running = False

    @property
    def is_running(self) -> bool:
        """Check if the polling loop is active."""
        return self._is_running

    @property
    def cameras(self) -> list[Camera]:
        """Cameras tracked by this orchestrator."""
        if self._cameras is not None:
            return list(self._cameras)
        return self._client.cameras

    @property
    def pending_uploads(self) -> int:
        """Number of uploads still in flight."""
        return len(self._upload_tasks)

    @property
    def snapshot_fetcher(self) -> SnapshotFetcher:
        """Snapshot source, created lazily from the client connection."""
        if self._snapshot_fetcher is None:
            self._snapshot_fetcher = SnapshotFetcher(
                self._client.http, timeout=self.config.request_timeout
            )
        return self._snapshot_fetcher

    async def start(self) -> None:
        """Start polling.

        Raises:
            RuntimeError: If the orchestrator is already running.
        """
        if self._is_running:
            raise RuntimeError('Motion orchestrator is already running')

        self._is_running = True
        self._loop_task = asyncio.create_task(self._poll_loop())
        mode = 'enhanced' if self.config.enhanced_motion else 'simple'
        logger.info(
            f'Motion checking started in {mode} mode every {self.config.motion_interval}ms '
            f'for {len(self.cameras)} cameras'
        )

    async def stop(self) -> None:
        """Stop polling and wait for in-flight ticks and uploads to finish."""
        self._is_running = False

        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        pending = [*self._tick_tasks, *self._upload_tasks]
        if pending:
            logger.debug(f'Waiting for {len(pending)} in-flight motion tasks')
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info('Motion checking stopped')

    async def _poll_loop(self) -> None:
        """Fire a tick every poll interval."""
        while self._is_running:
            task = asyncio.create_task(self.tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)
            await asyncio.sleep(self.config.poll_interval_seconds)

    async def tick(self) -> bool:
        """Run one motion check unless the previous one is still running.

        Returns:
            True if the check ran, False if it was skipped.
        """
        if self._tick_lock.locked():
            logger.warning('Previous motion check still running, skipping this interval')
            return False

        async with self._tick_lock:
            try:
                await self._check_motion()
            except Exception as e:
                logger.error(f'Error during motion interval loop: {e!r}')
        return True

    async def _check_motion(self) -> None:
        """Process the latest motion event of every tracked camera.

        A failed event fetch degrades to a tick without events, so every
        camera's flag is still cleared.
        """
        try:
            events = await self._client.get_latest_motion_events()
        except ProtectClientError as e:
            logger.warning(f'Cannot get latest motion info: {e}')
            events = []
        except Exception as e:
            logger.error(f'Unexpected error getting latest motion info: {e!r}')
            events = []

        events_by_camera = {event.camera_id: event for event in events}
        for camera in self.cameras:
            try:
                await self._process_camera(camera, events_by_camera.get(camera.id))
            except Exception as e:
                logger.error(f'Motion check failed for camera {camera.name}: {e!r}')

    async def _process_camera(self, camera: Camera, event: MotionEvent | None) -> None:
        """Evaluate one camera for this tick."""
        self._sink.set_motion_detected(camera, False)

        if not self._sink.is_motion_enabled(camera):
            return
        if event is None:
            return
        if self.is_skippable_long_running(camera, event):
            return

        if self.config.enhanced_motion:
            await self._check_enhanced(camera, event)
        else:
            await self._check_simple(camera, event)

    def is_skippable_long_running(self, camera: Camera, event: MotionEvent) -> bool:
        """Decide whether a re-reported event should be ignored this tick.

        Args:
            camera: The camera reporting the event.
            event: The camera's latest event.

        Returns:
            True if the event was already notified within the repeat window.
        """
        threshold = self.config.repeat_threshold
        if threshold is None:
            return False
        if self.states.should_suppress(camera.id, event.id, threshold):
            logger.debug(f'Motion on {camera.name} inside of skippable timeframe, ignoring')
            return True
        return False

    async def _check_simple(self, camera: Camera, event: MotionEvent) -> None:
        """Notify on any controller-reported motion."""
        description = f'Motion detected ({event.score}%) by camera {camera.name}'
        logger.info(description)
        self._sink.set_motion_detected(camera, True)

        if not self._persists_snapshots:
            return
        try:
            snapshot = await self.snapshot_fetcher.fetch(camera)
            await self._persist_snapshot(camera, snapshot, description, [])
        except (ProtectClientError, OSError) as e:
            logger.warning(f'Cannot save snapshot of {camera.name}: {e}')

    async def _check_enhanced(self, camera: Camera, event: MotionEvent) -> None:
        """Notify only when the snapshot contains a configured object class."""
        detector = self._detector
        if detector is None:
            return

        try:
            snapshot = await self.snapshot_fetcher.fetch(camera)
        except ProtectClientError as e:
            logger.warning(f'Cannot fetch snapshot of {camera.name}: {e}')
            return

        try:
            detections = await detector.detect(snapshot)
        except Exception as e:
            logger.error(f'Object detection failed for camera {camera.name}: {e!r}')
            return

        if self.config.debug:
            logger.debug(f'Detections for {camera.name}: {detections}')

        threshold = self.config.enhanced_motion_score
        matched = False
        for class_name in self.config.enhanced_classes:
            detection = find_detection(class_name, detections)
            if detection is None:
                continue
            matched = True

            if detection.score >= threshold:
                description = f'{class_name} detected ({detection.score}%) by camera {camera.name}'
                logger.info(description)
                self._sink.set_motion_detected(camera, True)
                try:
                    await self._persist_snapshot(camera, snapshot, description, [detection])
                except OSError as e:
                    logger.warning(f'Cannot save snapshot of {camera.name}: {e}')
                return

            logger.info(
                f'Detected class {detection.label} rejected due to score {detection.score}% '
                f'(must be {threshold}% or higher)'
            )

        if not matched:
            logger.info(
                f'None of the required classes found on {camera.name} '
                f'(event {event.id}), discarding'
            )

    @property
    def _persists_snapshots(self) -> bool:
        return self.config.save_snapshot or self._uploader is not None

    async def _persist_snapshot(
        self,
        camera: Camera,
        snapshot: bytes,
        description: str,
        detections: list[DetectionResult],
    ) -> None:
        """Save the snapshot locally and/or hand it to the uploader."""
        local_path: Path | None = None
        if self.config.save_snapshot:
            local_path = await self._snapshot_store.save(snapshot, camera, detections)
            logger.info(f'Snapshot saved: {local_path}')

        if self._uploader is not None:
            upload_path = local_path or await self._snapshot_store.save(
                snapshot, camera, detections, temporary=True
            )
            self._spawn_upload(upload_path, description, remove_after=local_path is None)

    def _spawn_upload(self, path: Path, description: str, remove_after: bool) -> None:
        """Start an upload without waiting for it."""
        task = asyncio.create_task(self._upload(path, description, remove_after))
        self._upload_tasks.add(task)
        task.add_done_callback(self._upload_tasks.discard)

    async def _upload(self, path: Path, description: str, remove_after: bool) -> None:
        """Upload a snapshot and log the outcome.

        Args:
            path: Snapshot file owned by this task.
            description: Photo description.
            remove_after: Delete the file once the upload is done.
        """
        uploader = self._uploader
        if uploader is None:
            return
        try:
            url = await uploader.upload(path, path.name, description)
            logger.info(f'Photo uploaded: {url}')
        except Exception as e:
            logger.error(f'Photo upload of {path.name} failed: {e!r}')
        finally:
            if remove_after:
                self._snapshot_store.remove(path)
