"""Unit tests for the command line runner."""

from __future__ import annotations

import argparse
import os
import signal
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from unifi_motion.cli import load_config, load_detector, main, run
from unifi_motion.config import MotionConfig
from unifi_motion.motion import ObjectDetector
from unifi_motion.protect.errors import ProbeError
from unifi_motion.protect.models import Camera


if TYPE_CHECKING:
    from pytest_mock import MockerFixture


DETECTOR_MODULE = '''
class Detector:
    async def detect(self, image):
        return []


def create_detector():
    return Detector()


def create_nothing():
    return object()
'''


@pytest.fixture
def detector_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Write an importable detector module and return its name."""
    (tmp_path / 'fake_detectors.py').write_text(DETECTOR_MODULE)
    monkeypatch.syspath_prepend(str(tmp_path))
    return 'fake_detectors'


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a minimal YAML configuration."""
    path = tmp_path / 'config.yaml'
    path.write_text('unifi:\n  controller: 192.168.1.1\n  username: admin\n  password: secret\n')
    return path


class TestLoadDetector:
    """Test suite for load_detector()."""

    def test_load_factory(self, detector_module: str) -> None:
        """Test instantiating a detector from an import path."""
        detector = load_detector(f'{detector_module}:create_detector')

        assert isinstance(detector, ObjectDetector)

    def test_malformed_path(self) -> None:
        """Test that a path without factory is rejected."""
        with pytest.raises(ValueError, match='module:factory'):
            load_detector('fake_detectors')

    def test_not_a_detector(self, detector_module: str) -> None:
        """Test that a factory returning something else is rejected."""
        with pytest.raises(ValueError, match='did not return an object detector'):
            load_detector(f'{detector_module}:create_nothing')

    def test_missing_module(self) -> None:
        """Test that an unknown module raises ImportError."""
        with pytest.raises(ImportError):
            load_detector('no_such_module_xyz:create')


class TestLoadConfig:
    """Test suite for load_config()."""

    def test_from_yaml_with_debug_flag(self, config_file: Path) -> None:
        """Test that --debug overrides the file setting."""
        args = argparse.Namespace(config=config_file, env_file=None, debug=True)

        config = load_config(args)

        assert config.controller == 'https://192.168.1.1'
        assert config.debug is True

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading from the environment without a config file."""
        monkeypatch.setenv('UNIFI_MOTION_CONTROLLER', '10.0.0.1')
        monkeypatch.setenv('UNIFI_MOTION_USERNAME', 'admin')
        monkeypatch.setenv('UNIFI_MOTION_PASSWORD', 'secret')
        args = argparse.Namespace(config=None, env_file=None, debug=False)

        config = load_config(args)

        assert config.controller == 'https://10.0.0.1'
        assert config.debug is False


class TestMain:
    """Test suite for main()."""

    @pytest.fixture(autouse=True)
    def keep_logging(self, mocker: MockerFixture) -> None:
        """Leave the global loguru sinks untouched."""
        mocker.patch('unifi_motion.cli.configure_logging')

    def test_missing_config_file(self, tmp_path: Path) -> None:
        """Test that a missing config file exits with status 2."""
        assert main(['--config', str(tmp_path / 'missing.yaml')]) == 2

    def test_invalid_config(self, tmp_path: Path) -> None:
        """Test that an invalid setting exits with status 2."""
        path = tmp_path / 'config.yaml'
        path.write_text('controller: 192.168.1.1\nmotion_interval: 10\n')

        assert main(['--config', str(path)]) == 2

    def test_enhanced_without_detector(self, tmp_path: Path) -> None:
        """Test that enhanced mode requires --detector."""
        path = tmp_path / 'config.yaml'
        path.write_text('controller: 192.168.1.1\nenhanced_motion: true\n')

        assert main(['--config', str(path)]) == 2

    def test_startup_failure(self, config_file: Path) -> None:
        """Test that a controller failure at startup exits with status 1."""
        with patch('unifi_motion.cli.run', new=AsyncMock(side_effect=ProbeError('unreachable'))):
            assert main(['--config', str(config_file)]) == 1

    def test_success(self, config_file: Path, detector_module: str) -> None:
        """Test a clean run with a detector."""
        path = config_file.parent / 'enhanced.yaml'
        path.write_text(config_file.read_text() + '  enhanced_motion: true\n')

        with patch('unifi_motion.cli.run', new=AsyncMock()) as mock_run:
            status = main(['--config', str(path), '--detector', f'{detector_module}:create_detector'])

        assert status == 0
        config, detector = mock_run.call_args.args
        assert isinstance(config, MotionConfig)
        assert config.enhanced_motion is True
        assert isinstance(detector, ObjectDetector)


class TestRun:
    """Test suite for run()."""

    @pytest.mark.asyncio
    async def test_run_until_signal(self) -> None:
        """Test that run polls until SIGTERM and then shuts down."""
        config = MotionConfig(controller='192.168.1.1', username='admin', password='secret')
        client = MagicMock()
        client.cameras = [Camera(id='cam-1', name='Front Door', ip_address='10.0.0.11')]
        orchestrator = MagicMock()
        orchestrator.start = AsyncMock(
            side_effect=lambda: os.kill(os.getpid(), signal.SIGTERM)
        )
        orchestrator.stop = AsyncMock()

        with (
            patch('unifi_motion.cli.UniFiProtectClient') as client_class,
            patch('unifi_motion.cli.MotionOrchestrator', return_value=orchestrator) as orch_class,
        ):
            client_class.return_value.__aenter__.return_value = client
            await run(config)

        orch_class.assert_called_once()
        assert orch_class.call_args.args[0] is client
        orchestrator.start.assert_awaited_once()
        orchestrator.stop.assert_awaited_once()
        client_class.return_value.__aexit__.assert_awaited_once()
