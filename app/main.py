"""
ASGI entry point for Finance Tracker

Run with:
    uvicorn app.main:app

Builds every component from environment settings once, serves the
debt API and runs the nightly accrual scheduler inside the same event
loop.
"""

import uvicorn

from finance_tracker.api import create_app
from finance_tracker.config import get_settings, validate_all_settings


app = create_app()


def main() -> None:
    """Start the server after checking every settings section."""
    results = validate_all_settings()
    failed = [name for name, ok in results.items() if ok is False]
    if failed:
        for name in failed:
            print(f"Configuration error in {name}: {results.get(f'{name}_error')}")
        raise SystemExit(1)

    settings = get_settings().app
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug_mode,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
