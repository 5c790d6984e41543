"""FastAPI application — REST + WebSocket surface for Golden Flower tables."""

import hmac
import json
import logging
import os
from contextlib import asynccontextmanager

from fastapi import (
    Depends,
    FastAPI,
    Header,
    HTTPException,
    Request,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from golden_flower import redis_client, table_manager
from golden_flower.cleanup import cleanup_idle_tables, table_cleaner
from golden_flower.ledger import LedgerError
from golden_flower.models import (
    ActionRequest,
    ErrorResponse,
    OpenTableRequest,
    OpenTableResponse,
    StartGameRequest,
)
from golden_flower.timer import turn_scheduler
from golden_flower.ws_manager import ClientRole, manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Push every table transition to WebSocket viewers
    table_manager.add_listener(manager.on_table_event)
    table_cleaner.start()
    yield
    table_cleaner.stop()
    turn_scheduler.cancel_all()
    await redis_client.close()


app = FastAPI(title="Golden Flower API", lifespan=lifespan)

# ---------- Rate Limiting ----------

_rate_limit_enabled = os.getenv("RATE_LIMIT_ENABLED", "1") != "0"

limiter = Limiter(
    key_func=get_remote_address,
    enabled=_rate_limit_enabled,
)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please slow down."},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- Admin Auth ----------

ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")


async def verify_admin(authorization: str | None = Header(None)):
    """Validate the admin password from the Authorization header."""
    if not ADMIN_PASSWORD:
        raise HTTPException(
            status_code=503,
            detail="Admin not configured. Set ADMIN_PASSWORD env var.",
        )
    expected = f"Bearer {ADMIN_PASSWORD}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Invalid admin password")


# Documented error bodies: {"detail": "..."}
_NOT_FOUND = {404: {"model": ErrorResponse}}
_REJECTED = {400: {"model": ErrorResponse}, **_NOT_FOUND}


def _get_table(table_id: str):
    try:
        return table_manager.get_table(table_id.upper())
    except KeyError:
        raise HTTPException(status_code=404, detail="Table not found")


# ---------- REST endpoints ----------


@app.post(
    "/api/tables",
    response_model=OpenTableResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
@limiter.limit("5/minute")
async def open_table(request: Request, req: OpenTableRequest):
    try:
        table = await table_manager.open_table(req.human_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LedgerError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return OpenTableResponse(table_id=table.table_id, snapshot=table.snapshot())


@app.post("/api/tables/{table_id}/games", responses=_REJECTED)
@limiter.limit("10/minute")
async def start_game(request: Request, table_id: str, req: StartGameRequest):
    """Start a new game at the table (Setup -> Dealing)."""
    try:
        return await table_manager.start_game(table_id.upper(), req.player_count)
    except KeyError:
        raise HTTPException(status_code=404, detail="Table not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/tables/{table_id}/action", responses=_REJECTED)
@limiter.limit("60/minute")
async def submit_action(request: Request, table_id: str, req: ActionRequest):
    """Submit the human seat's action (look, fold, call, raise, compare)."""
    try:
        return await table_manager.submit_action(table_id.upper(), req.player_id, req.action)
    except KeyError:
        raise HTTPException(status_code=404, detail="Table not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/tables/{table_id}", responses=_NOT_FOUND)
@limiter.limit("60/minute")
async def get_table(request: Request, table_id: str):
    """Snapshot from the human seat's point of view."""
    return _get_table(table_id).snapshot()


@app.delete("/api/tables/{table_id}", responses=_NOT_FOUND)
@limiter.limit("10/minute")
async def close_table(request: Request, table_id: str):
    table = _get_table(table_id)
    await table_manager.close_table(table.table_id)
    return {"ok": True}


@app.get("/api/leaderboard")
@limiter.limit("30/minute")
async def leaderboard(request: Request, limit: int = 10):
    try:
        entries = await table_manager.leaderboard(max(1, min(limit, 100)))
    except LedgerError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"entries": [e.model_dump() for e in entries]}


@app.post("/api/admin/reconcile")
@limiter.limit("10/minute")
async def admin_reconcile(request: Request, _=Depends(verify_admin)):
    """Retry queued ledger writes on every table. Returns what is still queued."""
    remaining = await table_manager.reconcile_all()
    return {"queued": {k: v for k, v in remaining.items() if v}}


@app.post("/api/admin/cleanup")
@limiter.limit("10/minute")
async def admin_cleanup(request: Request, _=Depends(verify_admin)):
    """Close idle tables now. Returns closed and kept table ids."""
    return await cleanup_idle_tables()


# ---------- WebSocket ----------


@app.websocket("/ws/{table_id}/{viewer_id}")
async def websocket_endpoint(ws: WebSocket, table_id: str, viewer_id: str):
    table_id = table_id.upper()
    try:
        table = table_manager.get_table(table_id)
    except KeyError:
        await ws.close(code=4004, reason="Table not found")
        return

    role = ClientRole.PLAYER if viewer_id == table.human_id else ClientRole.OBSERVER
    conn = await manager.connect(table_id, viewer_id, ws, role)

    # Send current state immediately on connect (reconnect support)
    try:
        await manager.send_snapshot(table, conn)
    except Exception:
        logger.debug("Error sending initial state to %s on %s", viewer_id, table_id, exc_info=True)

    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
                if msg.get("type", "") == "ping":
                    manager.record_heartbeat(conn)
                    await conn.send(json.dumps({"type": "pong"}))
            except (json.JSONDecodeError, AttributeError):
                pass  # ignore malformed messages
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(table_id, conn)
