"""CLI entry point for launching the catalog API with Uvicorn."""
import logging

import uvicorn

from .app import create_app


def main() -> None:
    """Start a development server for the catalog API."""
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    try:
        uvicorn.run(app, host="0.0.0.0", port=8000)
    finally:
        app.state.app_state.close()


if __name__ == "__main__":
    main()
