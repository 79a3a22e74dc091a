"""Command-line launcher."""
from __future__ import annotations

import logging
import os
import threading
import webbrowser
from typing import Optional

import typer
import uvicorn

from .config import load_settings, with_overrides
from .core.errors import ConfigurationError
from .logging_config import setup_logging
from .main import create_app

logger = logging.getLogger(__name__)

BROWSER_DELAY_SECONDS = 0.5

app = typer.Typer(add_completion=False, help="Local Snowplow event collector with a live event stream.")


def _open_browser(url: str) -> None:
    try:
        if not webbrowser.open(url):
            logger.warning("Failed to open browser at %s", url)
    except webbrowser.Error as exc:
        logger.warning("Failed to open browser: %s", exc)


@app.command()
def serve(
    env: Optional[str] = typer.Option(None, "--env", "-e", help="Environment section to apply (e.g. production)."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the TOML config file."),
    host: Optional[str] = typer.Option(None, help="Override the bind host."),
    port: Optional[int] = typer.Option(None, min=1, max=65535, help="Override the bind port."),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a browser window."),
) -> None:
    """Run the collector."""
    try:
        settings = with_overrides(load_settings(config, env), host=host, port=port)
    except ConfigurationError as exc:
        typer.secho(f"Error loading config: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    setup_logging(settings.log_level, settings.log_format)
    logger.info("Starting server on %s", settings.addr)

    if no_browser or not settings.open_browser:
        pass
    elif os.getenv("PLOWLINE_DEV_MODE") == "true":
        logger.info("Dev mode: browser opening handled by the frontend dev server")
    else:
        logger.info("Opening browser to %s", settings.url)
        threading.Timer(BROWSER_DELAY_SECONDS, _open_browser, args=(settings.url,)).start()

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
    logger.info("Server stopped")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
