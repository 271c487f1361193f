"""Unit tests for UniFi Protect models.

Tests cover:
- Camera parsing from bootstrap data
- Stream filtering and ordering
- MotionEvent parsing and correlation
- DetectionResult scoring
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from pydantic import ValidationError

from unifi_motion.protect.models import Camera, CameraStream, DetectionResult, MotionEvent


def camera_data(**overrides: Any) -> dict[str, Any]:
    """Create a raw bootstrap camera entry."""
    data: dict[str, Any] = {
        'id': 'cam-1',
        'name': 'Front Door',
        'host': '192.168.1.10',
        'mac': 'AA:BB:CC:DD:EE:01',
        'type': 'UVC G4 Doorbell',
        'firmwareVersion': '4.69.55',
        'channels': [
            {'name': 'High', 'rtspAlias': 'high', 'width': 1920, 'height': 1080, 'fps': 30},
            {'name': 'Low', 'rtspAlias': 'low', 'width': 640, 'height': 360, 'fps': 15},
            {'name': 'Medium', 'rtspAlias': None, 'width': 1280, 'height': 720, 'fps': 30},
        ],
    }
    data.update(overrides)
    return data


class TestCamera:
    """Test suite for Camera model."""

    def test_from_api(self) -> None:
        """Test creating a Camera from bootstrap data."""
        camera = Camera.from_api(camera_data())

        assert camera.id == 'cam-1'
        assert camera.name == 'Front Door'
        assert camera.ip_address == '192.168.1.10'
        assert camera.mac_address == 'AA:BB:CC:DD:EE:01'
        assert camera.model == 'UVC G4 Doorbell'
        assert camera.firmware_version == '4.69.55'

    def test_streams_without_alias_dropped(self) -> None:
        """Test that channels without an RTSP alias are not streams."""
        camera = Camera.from_api(camera_data())

        assert [stream.alias for stream in camera.streams] == ['low', 'high']

    def test_streams_sorted_by_area(self) -> None:
        """Test that streams are ordered ascending by pixel area."""
        camera = Camera.from_api(camera_data())

        areas = [stream.area for stream in camera.streams]
        assert areas == sorted(areas)
        assert camera.highest_resolution_stream is not None
        assert camera.highest_resolution_stream.alias == 'high'

    def test_streams_example_order(self) -> None:
        """Test that 640x480, 1920x1080 and 320x240 sort ascending by area."""
        channels = [
            {'rtspAlias': 'b', 'width': 640, 'height': 480},
            {'rtspAlias': 'c', 'width': 1920, 'height': 1080},
            {'rtspAlias': 'a', 'width': 320, 'height': 240},
        ]

        camera = Camera.from_api(camera_data(channels=channels))

        assert [(s.width, s.height) for s in camera.streams] == [
            (320, 240),
            (640, 480),
            (1920, 1080),
        ]

    def test_camera_without_streams(self) -> None:
        """Test a camera whose channels are all unplayable."""
        camera = Camera.from_api(camera_data(channels=[{'name': 'High', 'rtspAlias': ''}]))

        assert camera.streams == []
        assert camera.highest_resolution_stream is None

    def test_missing_name_gets_default(self) -> None:
        """Test that a missing name falls back to a placeholder."""
        data = camera_data()
        del data['name']

        assert Camera.from_api(data).name == 'Unknown Camera'

    def test_missing_id_raises(self) -> None:
        """Test that a camera without id cannot be parsed."""
        data = camera_data()
        del data['id']

        with pytest.raises(KeyError):
            Camera.from_api(data)

    def test_snapshot_url(self) -> None:
        """Test the live snapshot URL."""
        camera = Camera.from_api(camera_data())

        assert camera.snapshot_url == 'http://192.168.1.10/snap.jpeg'


class TestCameraStream:
    """Test suite for CameraStream model."""

    def test_area(self) -> None:
        """Test pixel area computation."""
        stream = CameraStream(name='High', alias='high', width=1920, height=1080)

        assert stream.area == 1920 * 1080

    def test_empty_alias_rejected(self) -> None:
        """Test that an empty alias is invalid."""
        with pytest.raises(ValidationError):
            CameraStream(name='High', alias='')


class TestMotionEvent:
    """Test suite for MotionEvent model."""

    def test_from_api(self) -> None:
        """Test parsing a raw event."""
        event = MotionEvent.from_api(
            {
                'id': 'evt-1',
                'camera': 'cam-1',
                'score': 72,
                'start': 1700000000000,
                'end': 1700000005000,
                'type': 'motion',
            }
        )

        assert event.id == 'evt-1'
        assert event.camera_id == 'cam-1'
        assert event.score == 72
        assert event.timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert event.end == datetime.fromtimestamp(1700000005, tz=timezone.utc)
        assert event.is_ongoing is False
        assert event.camera is None

    def test_ongoing_event(self) -> None:
        """Test that a null end marks an ongoing event."""
        event = MotionEvent.from_api(
            {'id': 'evt-1', 'camera': 'cam-1', 'score': 50, 'start': 1700000000000, 'end': None}
        )

        assert event.end is None
        assert event.is_ongoing is True

    def test_with_camera(self) -> None:
        """Test that correlation returns a new event with the camera attached."""
        camera = Camera.from_api(camera_data())
        event = MotionEvent.from_api(
            {'id': 'evt-1', 'camera': 'cam-1', 'score': 50, 'start': 1700000000000}
        )

        correlated = event.with_camera(camera)

        assert correlated.camera is camera
        assert event.camera is None
        assert correlated.id == event.id

    def test_score_out_of_range(self) -> None:
        """Test that scores above 100 are rejected."""
        with pytest.raises(ValidationError):
            MotionEvent.from_api({'id': 'evt-1', 'camera': 'cam-1', 'score': 150, 'start': 0})


class TestDetectionResult:
    """Test suite for DetectionResult model."""

    def test_score_rounds_confidence(self) -> None:
        """Test conversion of confidence to a 0-100 score."""
        assert DetectionResult(label='dog', confidence=0.874).score == 87
        assert DetectionResult(label='dog', confidence=0.875).score == 88

    def test_matches_case_insensitive(self) -> None:
        """Test case-insensitive label matching."""
        detection = DetectionResult(label='Person', confidence=0.9)

        assert detection.matches('person') is True
        assert detection.matches('PERSON') is True
        assert detection.matches('dog') is False

    def test_confidence_bounds(self) -> None:
        """Test that confidence must be within 0.0-1.0."""
        with pytest.raises(ValidationError):
            DetectionResult(label='dog', confidence=1.5)
