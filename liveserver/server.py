import asyncio
import contextlib
import logging
import os
import uuid
from pathlib import Path

from aiohttp import WSMsgType, web

from liveserver.assets import guess_type, read_asset
from liveserver.broadcast import BroadcastCoordinator
from liveserver.config import WS_PATH, ServerConfig
from liveserver.registry import ConnectionRegistry
from liveserver.watcher import DebouncedWatcher

logger = logging.getLogger(__name__)

CONFIG = web.AppKey("config", ServerConfig)
REGISTRY = web.AppKey("registry", ConnectionRegistry)


# -------- WebSocket --------
async def websocket_handler(request):
    registry = request.app[REGISTRY]
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    session_id = uuid.uuid4()
    await registry.register(session_id, ws)
    try:
        # Incoming payloads are ignored; the loop only waits for close
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                logger.warning("Session %s failed: %s", session_id, ws.exception())
                break
    finally:
        await registry.unregister(session_id)
    return ws


# -------- HTTP handler --------
def resolve_asset(root: Path, request_path: str):
    """Map a URL path onto the root, or None if it escapes the root."""
    if request_path.endswith("/"):
        request_path += "index.html"
    file_path = Path(os.path.normpath(root / request_path.lstrip("/")))
    try:
        file_path.relative_to(root)
    except ValueError:
        return None
    return file_path


async def static_assets(request):
    config = request.app[CONFIG]
    file_path = resolve_asset(config.root, request.path)
    if file_path is None:
        logger.error("Refusing path outside root: %s", request.path)
        raise web.HTTPNotFound()

    mime = guess_type(file_path)
    try:
        body = read_asset(file_path)
    except (OSError, ValueError) as err:
        # ValueError: embedded null byte in the request path
        logger.error("%s", err)
        raise web.HTTPNotFound()

    if mime == "text/html":
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as err:
            logger.error("%s: %s", file_path, err)
            raise web.HTTPInternalServerError()
        body = (text + config.script).encode("utf-8")

    return web.Response(body=body, content_type=mime)


# -------- File watcher --------
async def watch_files(app):
    config = app[CONFIG]
    watcher = DebouncedWatcher(config.root, delay=config.debounce)
    coordinator = BroadcastCoordinator(app[REGISTRY])
    watcher.start()
    task = asyncio.create_task(coordinator.run(watcher.events()))

    yield

    watcher.stop()
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def close_sessions(app):
    await app[REGISTRY].close_all()


def create_app(config: ServerConfig, registry=None, watch=True) -> web.Application:
    app = web.Application()
    app[CONFIG] = config
    app[REGISTRY] = registry if registry is not None else ConnectionRegistry()

    app.router.add_get(WS_PATH, websocket_handler)
    app.router.add_get("/{path:.*}", static_assets)

    if watch:
        app.cleanup_ctx.append(watch_files)
    app.on_shutdown.append(close_sessions)
    return app
