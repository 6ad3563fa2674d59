"""HTTP surface: set/get the secret as the bearer-authenticated caller."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import Response
from loguru import logger
from starlette.concurrency import run_in_threadpool

from ownerstore.errors import CellStorageError, NotSet, Unauthorized
from ownerstore.identity.binder import normalize_identity
from ownerstore.store import OwnerGuardedStore


def caller_identity(request: Request) -> str | None:
    """Bearer token of the Authorization header, or None."""
    auth = request.headers.get("Authorization", "")
    parts = auth.strip().split(None, 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return normalize_identity(parts[1]) or None
    return None


def _denied() -> HTTPException:
    return HTTPException(status_code=401, detail="access denied")


def create_secret_router(*, store: OwnerGuardedStore, mask_not_set: bool = False) -> APIRouter:
    """Create the secret API router."""
    router = APIRouter()

    def _not_set() -> HTTPException:
        if mask_not_set:
            return _denied()
        return HTTPException(status_code=404, detail="secret not set")

    @router.put("/api/secret")
    async def put_secret(request: Request) -> dict[str, Any]:
        body = await request.body()
        try:
            result = await run_in_threadpool(store.set_secret, body, caller_identity(request))
        except Unauthorized:
            raise _denied()
        except CellStorageError as exc:
            logger.error(f"Secret write failed: {exc}")
            raise HTTPException(status_code=500, detail="storage error")
        return {
            "ok": True,
            "seq": result.seq,
            "warnings": [w.message for w in result.warnings],
        }

    @router.get("/api/secret")
    def get_secret(request: Request) -> Response:
        try:
            value = store.get_secret(caller_identity(request))
        except Unauthorized:
            raise _denied()
        except NotSet:
            raise _not_set()
        except CellStorageError as exc:
            logger.error(f"Secret read failed: {exc}")
            raise HTTPException(status_code=500, detail="storage error")
        return Response(content=value, media_type="application/octet-stream")

    @router.get("/api/events")
    def list_events(since: int = Query(default=0, ge=0)) -> dict[str, Any]:
        return {"events": [event.to_row() for event in store.events(since)]}

    @router.get("/api/status")
    def status() -> dict[str, Any]:
        return {"initialized": store.initialized}

    return router


def create_app(store: OwnerGuardedStore, *, mask_not_set: bool = False) -> FastAPI:
    """Create the ownerstore FastAPI app."""
    app = FastAPI(title="ownerstore", docs_url=None, redoc_url=None)
    app.include_router(create_secret_router(store=store, mask_not_set=mask_not_set))
    return app
