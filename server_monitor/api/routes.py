"""API routes for servers, checks and auto-check settings.

Endpoints:
  GET    /api/servers                 — list servers (registry order)
  POST   /api/servers                 — add a server
  POST   /api/servers/remove          — remove several servers
  GET    /api/servers/{id}            — server detail + history
  PUT    /api/servers/{id}            — edit domain / expected status code
  DELETE /api/servers/{id}            — remove one server
  POST   /api/servers/{id}/check      — check one server now
  POST   /api/check                   — check all servers now
  GET    /api/settings/auto-check     — current auto-check config
  PUT    /api/settings/auto-check     — change auto-check config
  GET    /api/summary                 — counts, offline servers, recent checks
  GET    /api/network                 — network gate state
  GET    /api/status                  — scheduler status

Handlers are all ``async def`` so registry access stays on the event loop.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from server_monitor.monitor.models import Server
from server_monitor.monitor.scheduler import CheckScheduler
from server_monitor.monitor.validation import (
    ValidationError,
    validate_interval,
    validate_server_fields,
)
from server_monitor.registry.registry import ServerRegistry, check_to_dict, server_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# ── Request models ───────────────────────────────────────────────────────

class ServerBody(BaseModel):
    domain: str = ""
    expected_status_code: int | str = 200


class RemoveBody(BaseModel):
    ids: list[str]


class AutoCheckBody(BaseModel):
    enabled: bool
    interval_minutes: int | str


# ── Helpers ──────────────────────────────────────────────────────────────

def _registry(request: Request) -> ServerRegistry:
    return request.app.state.registry  # type: ignore[no-any-return]


def _scheduler(request: Request) -> CheckScheduler:
    return request.app.state.scheduler  # type: ignore[no-any-return]


def _server_view(server: Server, history: bool = False) -> dict[str, Any]:
    d = server_to_dict(server)
    d["statusText"] = server.status_text
    d["url"] = server.formatted_domain
    last = server.last_status_check
    d["lastStatusCheck"] = check_to_dict(last) if last else None
    if not history:
        d.pop("statusHistory")
    return d


def _get_or_404(registry: ServerRegistry, server_id: str) -> Server:
    server = registry.get(server_id)
    if server is None:
        raise HTTPException(status_code=404, detail=f"Server not found: {server_id}")
    return server


# ── Servers ──────────────────────────────────────────────────────────────

@router.get("/servers")
async def list_servers(request: Request) -> dict[str, Any]:
    servers = _registry(request).snapshot()
    return {"servers": [_server_view(s) for s in servers], "count": len(servers)}


@router.post("/servers", status_code=201)
async def add_server(body: ServerBody, request: Request) -> dict[str, Any]:
    try:
        domain, code = validate_server_fields(body.domain, body.expected_status_code)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    server = _registry(request).add(domain, code)
    return _server_view(server)


@router.post("/servers/remove")
async def remove_servers(body: RemoveBody, request: Request) -> dict[str, Any]:
    removed = _registry(request).remove(body.ids)
    return {"removed": removed}


@router.get("/servers/{server_id}")
async def get_server(server_id: str, request: Request) -> dict[str, Any]:
    return _server_view(_get_or_404(_registry(request), server_id), history=True)


@router.put("/servers/{server_id}")
async def update_server(server_id: str, body: ServerBody, request: Request) -> dict[str, Any]:
    registry = _registry(request)
    _get_or_404(registry, server_id)
    try:
        domain, code = validate_server_fields(body.domain, body.expected_status_code)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    server = registry.update(server_id, domain, code)
    if server is None:
        raise HTTPException(status_code=404, detail=f"Server not found: {server_id}")
    return _server_view(server)


@router.delete("/servers/{server_id}")
async def delete_server(server_id: str, request: Request) -> dict[str, Any]:
    registry = _registry(request)
    _get_or_404(registry, server_id)
    registry.remove([server_id])
    return {"removed": 1}


# ── Checks ───────────────────────────────────────────────────────────────

@router.post("/servers/{server_id}/check")
async def check_server_now(server_id: str, request: Request) -> dict[str, Any]:
    """Check one server immediately."""
    registry = _registry(request)
    _get_or_404(registry, server_id)
    message = await _scheduler(request).check_one(server_id)
    server = registry.get(server_id)
    return {
        "server": _server_view(server) if server else None,
        "message": message,
    }


@router.post("/check")
async def check_all_now(request: Request) -> dict[str, Any]:
    """Run a full sweep now. A sweep already in progress yields ``checked: 0``."""
    results = await _scheduler(request).check_all()
    return {
        "checked": len(results),
        "online": sum(1 for r in results if r.is_online),
        "servers": [_server_view(s) for s in _registry(request).snapshot()],
    }


# ── Settings ─────────────────────────────────────────────────────────────

@router.get("/settings/auto-check")
async def get_auto_check(request: Request) -> dict[str, Any]:
    config = _scheduler(request).auto_check
    return {"enabled": config.enabled, "interval_minutes": config.interval_minutes}


@router.put("/settings/auto-check")
async def set_auto_check(body: AutoCheckBody, request: Request) -> dict[str, Any]:
    try:
        minutes = validate_interval(body.interval_minutes)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    config = await _scheduler(request).configure_auto_check(body.enabled, minutes)
    return {"enabled": config.enabled, "interval_minutes": config.interval_minutes}


# ── Dashboard ────────────────────────────────────────────────────────────

@router.get("/summary")
async def summary(request: Request, limit: int = 20) -> dict[str, Any]:
    """Dashboard counts, offline servers (most recently checked first) and
    the newest ``limit`` checks across all servers."""
    servers = _registry(request).snapshot()
    offline = sorted(
        (s for s in servers if s.is_online is False),
        key=lambda s: s.last_checked or _EPOCH,
        reverse=True,
    )
    history = sorted(
        ((s, c) for s in servers for c in s.status_history),
        key=lambda pair: pair[1].timestamp,
        reverse=True,
    )
    return {
        "total": len(servers),
        "online": sum(1 for s in servers if s.is_online is True),
        "offline": len(offline),
        "unknown": sum(1 for s in servers if s.is_online is None),
        "offline_servers": [_server_view(s) for s in offline],
        "recent_checks": [
            {"serverId": s.id, "domain": s.domain, "check": check_to_dict(c)}
            for s, c in history[:max(limit, 0)]
        ],
        "recent_checks_total": len(history),
    }


@router.get("/network")
async def network(request: Request) -> dict[str, Any]:
    return request.app.state.gate.to_dict()  # type: ignore[no-any-return]


@router.get("/status")
async def status(request: Request) -> dict[str, Any]:
    return _scheduler(request).status()
