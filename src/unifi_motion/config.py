"""Configuration models for the UniFi Protect motion bridge.

This module provides the Pydantic model holding every setting of the
bridge: controller connection, polling cadence, repeat suppression,
enhanced (object-detection) mode and snapshot handling. Settings can be
loaded from environment variables or from a YAML file.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator


class MotionConfig(BaseModel):
    """Configuration for polling a UniFi Protect controller for motion.

    Intervals that come from the original plugin configuration
    (``motion_interval``, ``motion_repeat_interval``) are expressed in
    milliseconds. Network timings are expressed in seconds.

    Attributes:
        controller: Base URL of the UniFi Protect controller.
        username: Username for authentication.
        password: Password for authentication (stored securely).
        motion_interval: Poll period in milliseconds.
        motion_repeat_interval: Repeat-suppression window in milliseconds.
            ``None`` disables suppression.
        motion_score: Minimum controller motion score (0-100) for an event
            to be considered at all.
        enhanced_motion: Validate motion with object detection.
        enhanced_motion_score: Minimum detection score (0-100) to notify.
        enhanced_classes: Object classes to look for, in priority order.
        save_snapshot: Persist (annotated) snapshots to ``snapshot_dir``.
        snapshot_dir: Directory for persisted snapshots.
        request_timeout: Per-request HTTP timeout in seconds.
        max_retries: Retries for transient network failures.
        initial_backoff_delay: First retry delay in seconds (doubles each retry).
        camera_refresh_interval: Seconds between camera re-enumerations.
            ``0`` re-enumerates on every poll.
        verify_ssl: Whether to verify SSL certificates.
        debug: Enable verbose logging of raw controller payloads.

    Example:
        >>> config = MotionConfig(
        ...     controller='https://192.168.1.1',
        ...     username='admin',
        ...     password=SecretStr('password123'),
        ... )
        >>> config.poll_interval_seconds
        5.0
    """

    controller: Annotated[str, Field(min_length=1, description='Controller base URL')]
    username: Annotated[str, Field(default='', description='Authentication username')]
    password: Annotated[
        SecretStr, Field(default=SecretStr(''), description='Authentication password')
    ]
    motion_interval: Annotated[
        int, Field(default=5000, ge=100, description='Poll interval in milliseconds')
    ]
    motion_repeat_interval: Annotated[
        int | None,
        Field(default=None, ge=0, description='Repeat-suppression window in milliseconds'),
    ]
    motion_score: Annotated[
        int, Field(default=0, ge=0, le=100, description='Min controller motion score')
    ]
    enhanced_motion: Annotated[
        bool, Field(default=False, description='Validate motion with object detection')
    ]
    enhanced_motion_score: Annotated[
        int, Field(default=50, ge=0, le=100, description='Min object detection score')
    ]
    enhanced_classes: Annotated[
        list[str], Field(default_factory=list, description='Object classes in priority order')
    ]
    save_snapshot: Annotated[bool, Field(default=False, description='Persist snapshots locally')]
    snapshot_dir: Annotated[
        Path, Field(default=Path('snapshots'), description='Directory for persisted snapshots')
    ]
    request_timeout: Annotated[
        float, Field(default=1.0, gt=0, le=30, description='HTTP timeout in seconds')
    ]
    max_retries: Annotated[int, Field(default=3, ge=0, le=10, description='Network retries')]
    initial_backoff_delay: Annotated[
        float, Field(default=0.1, ge=0, description='First retry delay in seconds')
    ]
    camera_refresh_interval: Annotated[
        float, Field(default=300.0, ge=0, description='Camera re-enumeration period in seconds')
    ]
    verify_ssl: Annotated[bool, Field(default=False, description='Verify SSL certificates')]
    debug: Annotated[bool, Field(default=False, description='Enable debug logging')]

    model_config = {'extra': 'forbid', 'validate_assignment': True}

    @field_validator('controller')
    @classmethod
    def validate_controller(cls, v: str) -> str:
        """Normalize the controller URL.

        Args:
            v: The controller URL to validate.

        Returns:
            The URL with an ``https://`` scheme and no trailing slash.

        Raises:
            ValueError: If the URL is empty after normalization.
        """
        normalized = v.strip().rstrip('/')
        if not normalized:
            raise ValueError('Controller URL cannot be empty')
        if not normalized.lower().startswith(('http://', 'https://')):
            normalized = f'https://{normalized}'
        return normalized

    @field_validator('enhanced_classes')
    @classmethod
    def validate_enhanced_classes(cls, v: list[str]) -> list[str]:
        """Lowercase class names and drop blanks, keeping priority order."""
        return [name.strip().lower() for name in v if name.strip()]

    @model_validator(mode='after')
    def validate_intervals(self) -> MotionConfig:
        """Validate the repeat-suppression window against the poll interval.

        Returns:
            The validated configuration instance.

        Raises:
            ValueError: If the window is not a whole multiple of the poll
                interval, which would make the repeat counter never re-arm.
        """
        repeat = self.motion_repeat_interval
        if repeat:
            if repeat < self.motion_interval or repeat % self.motion_interval:
                raise ValueError(
                    'motion_repeat_interval must be a multiple of motion_interval '
                    f'({repeat} vs {self.motion_interval})'
                )
        return self

    @property
    def poll_interval_seconds(self) -> float:
        """Poll interval in seconds."""
        return self.motion_interval / 1000

    @property
    def repeat_threshold(self) -> int | None:
        """Number of repeated sightings after which a long-running event re-arms.

        Returns:
            ``motion_repeat_interval / motion_interval``, or None when
            repeat suppression is disabled.
        """
        if not self.motion_repeat_interval:
            return None
        return self.motion_repeat_interval // self.motion_interval

    @classmethod
    def from_env(
        cls,
        env_file: str | Path | None = None,
        prefix: str = 'UNIFI_MOTION_',
    ) -> MotionConfig:
        """Load configuration from environment variables.

        Reads configuration from environment variables with the specified prefix.
        Optionally loads variables from an env file first.

        Args:
            env_file: Optional path to an environment file to load.
            prefix: Environment variable prefix (default: 'UNIFI_MOTION_').

        Returns:
            A MotionConfig instance populated from environment variables.

        Raises:
            ValueError: If required environment variables are missing.

        Example:
            >>> # UNIFI_MOTION_CONTROLLER=https://192.168.1.1
            >>> # UNIFI_MOTION_USERNAME=admin
            >>> # UNIFI_MOTION_PASSWORD=secret
            >>> config = MotionConfig.from_env()
        """
        if env_file is not None:
            _load_env_file(Path(env_file))

        def get_env(key: str, default: str | None = None) -> str | None:
            return os.environ.get(f'{prefix}{key}', default)

        def get_bool(key: str, default: str) -> bool:
            return (get_env(key, default) or default).lower() == 'true'

        controller = get_env('CONTROLLER')
        if not controller:
            raise ValueError(f'{prefix}CONTROLLER environment variable is required')

        username = get_env('USERNAME')
        if not username:
            raise ValueError(f'{prefix}USERNAME environment variable is required')

        password = get_env('PASSWORD')
        if not password:
            raise ValueError(f'{prefix}PASSWORD environment variable is required')

        repeat_str = get_env('MOTION_REPEAT_INTERVAL')
        classes_str = get_env('ENHANCED_CLASSES', '') or ''

        return cls(
            controller=controller,
            username=username,
            password=SecretStr(password),
            motion_interval=int(get_env('MOTION_INTERVAL', '5000') or '5000'),
            motion_repeat_interval=int(repeat_str) if repeat_str else None,
            motion_score=int(get_env('MOTION_SCORE', '0') or '0'),
            enhanced_motion=get_bool('ENHANCED_MOTION', 'false'),
            enhanced_motion_score=int(get_env('ENHANCED_MOTION_SCORE', '50') or '50'),
            enhanced_classes=classes_str.split(','),
            save_snapshot=get_bool('SAVE_SNAPSHOT', 'false'),
            snapshot_dir=Path(get_env('SNAPSHOT_DIR', 'snapshots') or 'snapshots'),
            request_timeout=float(get_env('REQUEST_TIMEOUT', '1.0') or '1.0'),
            max_retries=int(get_env('MAX_RETRIES', '3') or '3'),
            initial_backoff_delay=float(get_env('INITIAL_BACKOFF_DELAY', '0.1') or '0.1'),
            camera_refresh_interval=float(get_env('CAMERA_REFRESH_INTERVAL', '300') or '300'),
            verify_ssl=get_bool('VERIFY_SSL', 'false'),
            debug=get_bool('DEBUG', 'false'),
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> MotionConfig:
        """Load configuration from a YAML file.

        The settings may sit at the top level or under a ``unifi`` key,
        matching the layout of the platform configuration block.

        Args:
            path: Path to the YAML file.

        Returns:
            A validated MotionConfig instance.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the file does not contain a mapping.
        """
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f'Config file not found: {config_path}')

        with config_path.open(encoding='utf-8') as f:
            data: Any = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f'Config file must contain a mapping: {config_path}')

        section = data.get('unifi', data)
        if not isinstance(section, dict):
            raise ValueError(f"'unifi' section must be a mapping: {config_path}")
        return cls.model_validate(section)


def parse_env_file(env_path: Path) -> dict[str, str]:
    """Read ``KEY=value`` assignments from an env file.

    Blank lines and ``#`` comments are ignored, an ``export`` prefix is
    accepted, and a value wrapped in matching single or double quotes is
    unquoted.

    Args:
        env_path: Path to the environment file.

    Returns:
        The assignments in file order.

    Raises:
        FileNotFoundError: If the env file doesn't exist.
    """
    if not env_path.is_file():
        raise FileNotFoundError(f'Environment file not found: {env_path}')

    values: dict[str, str] = {}
    for raw in env_path.read_text(encoding='utf-8').splitlines():
        entry = raw.strip()
        if entry.startswith('export '):
            entry = entry[len('export ') :].lstrip()
        if not entry or entry.startswith('#') or '=' not in entry:
            continue
        name, _, value = entry.partition('=')
        name, value = name.strip(), value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
            value = value[1:-1]
        if name:
            values[name] = value
    return values


def _load_env_file(env_path: Path) -> None:
    """Export the assignments of an env file into ``os.environ``."""
    os.environ.update(parse_env_file(env_path))
