"""Allow running the package via ``python -m drone_ground_dashboard``."""

from __future__ import annotations

from .cli import main


def run() -> None:
    """Entrypoint used by ``python -m drone_ground_dashboard``."""
    main()


if __name__ == "__main__":  # pragma: no cover
    run()
