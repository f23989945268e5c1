"""Health endpoint for blockpaths.

GET /health — 503 before ``app.state.ready`` is set (during lifespan startup),
200 with the gate name and rule count afterwards.

The path gate runs in front of every route, /health included; a rule that
matches /health blocks it like any other path.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from blockpaths.gate.decision import PathGate

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(status_code=503, detail={"status": "starting"})

    gate: PathGate = request.app.state.gate
    return {
        "status": "ok",
        "gate": gate.name,
        "rules": len(gate.rule_set),
    }
