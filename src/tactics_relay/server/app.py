from __future__ import annotations

import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.staticfiles import StaticFiles

from .config import Settings, get_settings
from .registry import ConnectionRegistry
from .relay import RelayHandler
from .store import BoardStore

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the relay app; each app owns its own board store and registry."""
    settings = settings or get_settings()
    relay = RelayHandler(
        BoardStore(),
        ConnectionRegistry(),
        debug_log_msgs=settings.debug_log_msgs,
    )

    app = FastAPI(title="tactics-relay")
    app.state.relay = relay

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    @app.websocket("/ws")
    async def ws(ws: WebSocket):
        await ws.accept()
        conn_id = await relay.connect(ws)
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
                await relay.handle_raw(conn_id, raw)
        except WebSocketDisconnect:
            pass
        finally:
            relay.disconnect(conn_id)

    if settings.static_dir:
        # Mounted last so /api and /ws keep precedence.
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("relay listening on http://%s:%d", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
