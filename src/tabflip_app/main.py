# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

import argparse
import json
import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import colorlog
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from rich.console import Console

from tabflip import (
    HostInterface,
    JsonFileSnapshotStore,
    RecencyTracker,
    SettingsManager,
    SnapshotStore,
)
from tabflip.config import DEFAULT_HOST_URL, DEFAULT_STATE_FILE_NAME
from tabflip.error_handler import HostError, MalformedEventError

from tabflip_app.event_routing import (
    extract_container_id,
    extract_setting_update,
    normalize_event_payload,
)
from tabflip_app.host_client import HttpHostClient

logger = logging.getLogger(__name__)


# --- Logging Configuration ---
class TrackerDebugFilter(logging.Filter):
    """Lets only DEBUG records from the tabflip library through."""

    def filter(self, record):
        return record.levelno == logging.DEBUG and record.name.startswith("tabflip")


def _build_console_handler() -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    handler.setLevel(logging.INFO)
    return handler


def configure_logging(log_dir: Path) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    info_file_handler = logging.FileHandler(log_dir / "tabflip.log", encoding="utf-8")
    info_file_handler.setLevel(logging.INFO)
    info_file_handler.setFormatter(file_format)

    # Dedicated file for the library's DEBUG output
    debug_file_handler = logging.FileHandler(log_dir / "tabflip_debug.log", encoding="utf-8")
    debug_file_handler.setLevel(logging.DEBUG)
    debug_file_handler.setFormatter(file_format)
    debug_file_handler.addFilter(TrackerDebugFilter())

    console_handler = _build_console_handler()
    handlers = [info_file_handler, debug_file_handler, console_handler]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in handlers:
        root_logger.addHandler(handler)

    # The library logger does not propagate; give it the same handlers
    lib_logger = logging.getLogger("tabflip")
    for handler in handlers:
        lib_logger.addHandler(handler)

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# --- Lifespan Management ---
def create_app(
    host_factory: Optional[Callable[[], HostInterface]] = None,
    store_factory: Optional[Callable[[], SnapshotStore]] = None,
    settings: Optional[SettingsManager] = None,
    start_background: bool = True,
) -> FastAPI:
    """
    Build the FastAPI app. The factories default to the HTTP host bridge and
    a JSON state file, both configured from the environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        host = host_factory() if host_factory else HttpHostClient()
        if store_factory:
            store = store_factory()
        else:
            store = JsonFileSnapshotStore(
                os.getenv("TABFLIP_STATE_FILE", str(Path.cwd() / DEFAULT_STATE_FILE_NAME))
            )
        tracker = RecencyTracker(host, store=store, settings=settings or SettingsManager())
        app.state.tracker = tracker
        app.state.start_background = start_background

        try:
            await tracker.initialize(start_background=start_background)
        except HostError as e:
            # Keep serving; POST /reconcile retries initialization
            logger.error(f"Host unavailable at startup, tracking not initialized: {e}")

        yield

        # Keep the snapshot on disk so the next start can restore it
        await tracker.shutdown(clear_state=False)
        await host.close()
        logger.info("Tracker and host client closed.")

    app = FastAPI(lifespan=lifespan)

    def get_tracker(request: Request) -> RecencyTracker:
        """Dependency to get the tracker instance from the app state."""
        return request.app.state.tracker

    async def read_json(request: Request) -> Any:
        try:
            return await request.json()
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid JSON in request body.")

    @app.post("/events")
    async def post_event(request: Request, tracker: RecencyTracker = Depends(get_tracker)):
        """Deliver one host event, decoded or as a raw callback envelope."""
        data = await read_json(request)
        try:
            payload = normalize_event_payload(data)
        except MalformedEventError as e:
            raise HTTPException(status_code=422, detail=str(e))

        result = await tracker.handle_event(payload)
        if result.kind == "unknown":
            raise HTTPException(status_code=422, detail=result.error)
        return {"kind": result.kind, "outcome": result.outcome, "error": result.error}

    @app.post("/flip")
    async def post_flip(request: Request, tracker: RecencyTracker = Depends(get_tracker)):
        """Switch a window to its previously used tab."""
        data = await read_json(request)
        container_id = extract_container_id(data)
        if container_id is None:
            raise HTTPException(status_code=422, detail="No window id in flip request.")
        result = await tracker.flip(container_id)
        return {"kind": result.kind, "outcome": result.outcome, "error": result.error}

    @app.post("/reconcile")
    async def post_reconcile(request: Request, tracker: RecencyTracker = Depends(get_tracker)):
        """Run one reconciliation pass, initializing first if startup failed."""
        try:
            if not tracker.initialized:
                await tracker.initialize(start_background=request.app.state.start_background)
                return {"initialized": True, "changes": 0}
            changes = await tracker.reconcile()
        except HostError as e:
            logger.error(f"Reconciliation request failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))
        return {"initialized": True, "changes": changes}

    @app.post("/settings")
    async def post_settings(request: Request, tracker: RecencyTracker = Depends(get_tracker)):
        """Apply a settingUpdate message."""
        data = await read_json(request)
        update = extract_setting_update(data)
        if update is None:
            return {"success": False, "error": "Not a settingUpdate message"}
        source, option, value = update
        try:
            tracker.settings.update_setting(option, value, source)
        except KeyError:
            return {"success": False, "error": f"Unknown setting: {option}"}
        return {"success": True}

    @app.get("/status")
    async def get_status(tracker: RecencyTracker = Depends(get_tracker)) -> Dict[str, Any]:
        """Tracking statistics, current settings and pending echo state."""
        status = tracker.status()
        status["valid"] = tracker.validate_tracking()
        return status

    return app


app = create_app()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Tab recency tracker service")
    parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="Host to bind the server to."
    )
    parser.add_argument("--port", type=int, default=8732, help="Port to run the server on.")
    parser.add_argument(
        "--host-url",
        type=str,
        default=None,
        help=f"Base URL of the browser bridge (default: {DEFAULT_HOST_URL}).",
    )
    parser.add_argument(
        "--state-file", type=str, default=None, help="Where to persist tracking state."
    )
    parser.add_argument(
        "--log-dir", type=str, default="logs", help="Directory for log files."
    )
    args = parser.parse_args(argv)

    # Load .env from the working directory before anything reads the environment
    load_dotenv(Path.cwd() / ".env")
    if args.host_url:
        os.environ["TABFLIP_HOST_URL"] = args.host_url
    if args.state_file:
        os.environ["TABFLIP_STATE_FILE"] = args.state_file

    configure_logging(Path(args.log_dir))

    console = Console()
    console.rule("[bold]tabflip")
    console.print(f"Serving on [cyan]{args.host}:{args.port}[/cyan]")
    console.print(f"Browser bridge: [cyan]{os.getenv('TABFLIP_HOST_URL', DEFAULT_HOST_URL)}[/cyan]")
    console.print(
        f"State file: [cyan]{os.getenv('TABFLIP_STATE_FILE', DEFAULT_STATE_FILE_NAME)}[/cyan]"
    )
    console.rule()

    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
