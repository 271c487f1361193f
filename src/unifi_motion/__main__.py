"""Allow running the bridge with ``python -m unifi_motion``."""

from unifi_motion.cli import main


if __name__ == '__main__':
    raise SystemExit(main())
