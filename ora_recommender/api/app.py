"""
HTTP surface for the recommendation engine.

Routes
------
POST /callable/regenerateUserRecommendations
    Callable protocol: body ``{"data": {"uid": ...}}``, bearer token required.
    Returns ``{"result": {"success", "message"}}`` or
    ``{"error": {"status", "message"}}``.
POST /regenerateUserRecommendations
    Plain JSON body ``{"uid": ...}``. Returns ``{"success", "message"}`` or
    ``{"error": message}``. Token required only if ``api.http_requires_auth``.
GET  /users/{uid}/recommendations/latest
    Token required only if ``api.http_requires_auth`` (same for /content).
GET  /users/{uid}/recommendations/latest/content?limit=N
GET  /health

Error mapping
-------------
    unauthenticated      401   missing or unknown bearer token
    invalid-argument     400   malformed body, missing uid
    not-found            404   no such user
    failed-precondition  412   onboarding not completed / no answers
    internal             500   pipeline failure

CORS pre-flight is answered by ``CORSMiddleware``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ora_recommender import __version__
from ora_recommender.config import AppConfig
from ora_recommender.db.connection import connect
from ora_recommender.errors import NotEligibleError, UserNotFoundError
from ora_recommender.pipeline.orchestrator import RecommendationOrchestrator
from ora_recommender.recommendations.reader import (
    get_latest_recommendation,
    get_recommended_content,
)

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

ERROR_HTTP_STATUS = {
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
    "invalid-argument": status.HTTP_400_BAD_REQUEST,
    "not-found": status.HTTP_404_NOT_FOUND,
    "failed-precondition": status.HTTP_412_PRECONDITION_FAILED,
    "internal": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class CallError(Exception):
    """A typed error returned to the caller instead of a result."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return ERROR_HTTP_STATUS[self.code]


def classify_error(exc: Exception) -> CallError:
    """Map an engine exception to its caller-facing error code."""
    if isinstance(exc, CallError):
        return exc
    if isinstance(exc, ValueError):
        return CallError("invalid-argument", str(exc))
    if isinstance(exc, UserNotFoundError):
        return CallError("not-found", str(exc))
    if isinstance(exc, NotEligibleError):
        return CallError("failed-precondition", str(exc))
    return CallError("internal", f"Failed to regenerate recommendations: {exc}")


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        raise CallError("invalid-argument", "Request body is required")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise CallError("invalid-argument", "Request body is not valid JSON") from exc


def create_app(
    config: AppConfig,
    orchestrator: Optional[RecommendationOrchestrator] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config:       AppConfig (API, DB and engine settings).
        orchestrator: Injected orchestrator; built from ``config`` if omitted.

    Returns:
        Configured ``FastAPI`` instance.
    """
    orch = orchestrator or RecommendationOrchestrator(config)
    api_cfg = config.api
    tokens = frozenset(api_cfg.auth_tokens)

    app = FastAPI(title="Ora Recommendation Engine", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(api_cfg.cors_origins),
        allow_credentials="*" not in api_cfg.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    def _check_token(creds: Optional[HTTPAuthorizationCredentials]) -> None:
        if creds is None or creds.credentials not in tokens:
            raise CallError(
                "unauthenticated", "Must be authenticated to regenerate recommendations"
            )

    async def _regenerate(uid: Any) -> dict[str, Any]:
        if not isinstance(uid, str) or not uid.strip():
            raise CallError("invalid-argument", "User ID (uid) is required")
        logger.info("Manual regeneration requested for user %s", uid)
        try:
            result = await run_in_threadpool(orch.run_on_demand, uid)
        except Exception as exc:
            err = classify_error(exc)
            if err.code == "internal":
                logger.error("Manual regeneration failed for user %s: %s", uid, exc)
            raise err
        return {"success": True, "message": f"Recommendations regenerated for user {uid}"}

    @app.post("/callable/regenerateUserRecommendations")
    async def callable_regenerate(
        request: Request,
        creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ):
        try:
            _check_token(creds)
            body = await _read_json(request)
            data = body.get("data") if isinstance(body, dict) else None
            uid = data.get("uid") if isinstance(data, dict) else None
            result = await _regenerate(uid)
        except CallError as err:
            return JSONResponse(
                status_code=err.http_status,
                content={
                    "error": {
                        "status": err.code.upper().replace("-", "_"),
                        "message": err.message,
                    }
                },
            )
        return {"result": result}

    @app.post("/regenerateUserRecommendations")
    async def http_regenerate(
        request: Request,
        creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ):
        try:
            if api_cfg.http_requires_auth:
                _check_token(creds)
            body = await _read_json(request)
            uid = body.get("uid") if isinstance(body, dict) else None
            return await _regenerate(uid)
        except CallError as err:
            return JSONResponse(status_code=err.http_status, content={"error": err.message})

    def _require_read_token(creds: Optional[HTTPAuthorizationCredentials]) -> None:
        if not api_cfg.http_requires_auth:
            return
        if creds is None or creds.credentials not in tokens:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Must be authenticated to read recommendations",
            )

    @app.get("/users/{uid}/recommendations/latest")
    def latest(
        uid: str,
        creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ):
        _require_read_token(creds)
        with connect(config, orch.db_path) as conn:
            record = get_latest_recommendation(conn, uid)
        if record is None:
            raise HTTPException(status_code=404, detail=f"No recommendations for user {uid}")
        return record.model_dump(mode="json")

    @app.get("/users/{uid}/recommendations/latest/content")
    def latest_content(
        uid: str,
        limit: int = Query(default=5, ge=1, le=50),
        creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ):
        _require_read_token(creds)
        with connect(config, orch.db_path) as conn:
            items = get_recommended_content(conn, uid, limit=limit)
        return [item.model_dump(mode="json") for item in items]

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__}

    return app
