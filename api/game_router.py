from __future__ import annotations
from dataclasses import asdict
from typing import Literal

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel

from services.context import AppContext
from services.gameserver import GameServerSession

router = APIRouter(prefix="/game", tags=["game"])


class ChatLine(BaseModel):
    ckey: str
    message: str
    scope: Literal["ooc", "ic"] = "ooc"


def _ctx(request: Request) -> AppContext:
    ctx = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Bot not ready")
    return ctx


async def _require_token(ctx: AppContext, authorization: str | None):
    token = ctx.settings.GAME_EVENT_TOKEN
    if not token or not authorization or not authorization.startswith("Bearer ") or authorization.split(" ", 1)[1] != token:
        raise HTTPException(status_code=401, detail="Unauthorized")


def _session(ctx: AppContext, key: str) -> GameServerSession:
    gs = ctx.gameservers.get(key)
    if gs is None:
        raise HTTPException(status_code=404, detail=f"Unknown game server {key}")
    return gs


@router.post("/serverinfo/{key}")
async def post_serverinfo(key: str, payload: dict, request: Request, authorization: str | None = Header(default=None)):
    # payload is whatever the game pushes, e.g. {"admins": 0, "vote": 0, "ckeys": ["alice"]}
    ctx = _ctx(request)
    await _require_token(ctx, authorization)
    gs = _session(ctx, key)
    gs.apply_serverinfo(payload)
    return {"ok": True}


@router.get("/status/{key}")
async def get_status(key: str, request: Request, authorization: str | None = Header(default=None)):
    ctx = _ctx(request)
    await _require_token(ctx, authorization)
    gs = _session(ctx, key)
    snapshot = gs.poll_status()
    return {"key": gs.key, "name": gs.name, "enabled": gs.enabled, **asdict(snapshot)}


@router.get("/ranking/{key}")
async def get_ranking(key: str, request: Request, limit: int = 10, authorization: str | None = Header(default=None)):
    ctx = _ctx(request)
    await _require_token(ctx, authorization)
    gs = _session(ctx, key)
    entries = gs.ranking.recalculate()[: max(limit, 0)]
    return {"key": gs.key, "ranking": [{"ckey": e.ckey, "score": e.score} for e in entries]}


@router.post("/chat/{key}")
async def post_chat(key: str, line: ChatLine, request: Request, authorization: str | None = Header(default=None)):
    ctx = _ctx(request)
    await _require_token(ctx, authorization)
    gs = _session(ctx, key)
    verdict = await gs.relay_pushed(line.scope, line.ckey, line.message)
    return {"ok": True, "action": verdict.action if verdict else None}
