"""Motion detection pipeline on top of the Protect client.

Example:
    >>> from unifi_motion.motion import LoggingMotionSink, MotionOrchestrator
    >>>
    >>> orchestrator = MotionOrchestrator(client, config, LoggingMotionSink())
    >>> await orchestrator.start()
"""

from unifi_motion.motion.collaborators import (
    LoggingMotionSink,
    MotionSensorSink,
    ObjectDetector,
    PhotoUploader,
)
from unifi_motion.motion.orchestrator import MotionOrchestrator, find_detection
from unifi_motion.motion.snapshots import SnapshotFetcher, SnapshotStore, annotate
from unifi_motion.motion.state import MotionState, MotionStateStore


__all__ = [
    'MotionOrchestrator',
    'find_detection',
    'MotionState',
    'MotionStateStore',
    'SnapshotFetcher',
    'SnapshotStore',
    'annotate',
    'LoggingMotionSink',
    'MotionSensorSink',
    'ObjectDetector',
    'PhotoUploader',
]
