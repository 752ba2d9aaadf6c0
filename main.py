# main.py
import asyncio
import logging
import os
import secrets
import signal
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, WebSocket, status
from fastapi.responses import FileResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.websockets import WebSocketDisconnect

import config
from models import ClientMessage, LightPayload
from session import MarketSession

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s  %(levelname)s  %(message)s")
logger = logging.getLogger("market")

# --- INITIAL SETUP ---
# One session per process, created paused before the IPO
SESSION = MarketSession()

# --- 1) TICK TASK (Runs in the background) ---

def _tick_task_done(task: asyncio.Task):
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        # State is in-memory only; restarting from empty is the recovery path
        logger.critical("Tick loop crashed, stopping process", exc_info=exc)
        os.kill(os.getpid(), signal.SIGTERM)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Start the tick loop with the server, cancel it on shutdown
    interval_s = config.TICK_INTERVAL_MS / 1000.0
    app.state.tick_task = asyncio.create_task(SESSION.engine.run(interval_s))
    app.state.tick_task.add_done_callback(_tick_task_done)
    yield
    app.state.tick_task.cancel()
    try:
        await app.state.tick_task
    except asyncio.CancelledError:
        pass


app = FastAPI(title="Market Sentiment Live", lifespan=lifespan)
security = HTTPBasic()

# --- 2) HTTP ---

def require_admin(credentials: HTTPBasicCredentials = Depends(security)):
    user_ok = secrets.compare_digest(credentials.username.encode(), config.ADMIN_USER.encode())
    password_ok = secrets.compare_digest(credentials.password.encode(), config.ADMIN_PASSWORD.encode())
    if not (user_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access denied.",
            headers={"WWW-Authenticate": 'Basic realm="Restricted Area"'},
        )
    return credentials.username


@app.get("/admin.html", include_in_schema=False)
async def admin_page(user: str = Depends(require_admin)):
    path = config.ADMIN_PAGE
    if not os.path.isfile(path):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Admin page not found.")
    return FileResponse(path)


@app.get("/market", response_model=LightPayload, response_model_by_alias=True, tags=["Market"])
async def get_market():
    """Current light snapshot, the same payload viewers receive every tick."""
    return SESSION.router.light_payload()


@app.get("/health", tags=["Market"])
async def health():
    return {"status": "ok", "online": SESSION.router.online}

# --- 3) WS /ws Endpoint ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """One real-time channel per client; messages are {"event", "data"} envelopes."""
    await websocket.accept()
    connection_id = uuid.uuid4().hex
    SESSION.connect(connection_id, websocket)
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            raw = frame.get("text")
            if raw is None:
                logger.debug("Ignoring non-text frame from %s", connection_id)
                continue
            try:
                message = ClientMessage.model_validate_json(raw)
            except ValidationError:
                logger.debug("Malformed message from %s: %r", connection_id, raw[:200])
                continue
            await SESSION.dispatch(connection_id, message.event, message.data)
    except WebSocketDisconnect:
        pass
    finally:
        SESSION.disconnect(connection_id)


# Static client last so the routes above take precedence
app.mount("/", StaticFiles(directory=config.PUBLIC_DIR, html=True, check_dir=False), name="public")


if __name__ == "__main__":
    import uvicorn

    logger.info("Market server listening on port %d", config.PORT)
    uvicorn.run(app, host=config.HOST, port=config.PORT)
