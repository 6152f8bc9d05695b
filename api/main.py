from __future__ import annotations

import logging
import math
from typing import Callable, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.schemas import DashboardOptionsModel, ErrorResponse, SessionResponse, SignInRequest, TokenResponse
from profile_core.charts import CHART_KINDS, render_chart, render_dashboard
from profile_core.client import ApiClient
from profile_core.config import ERRORS, settings
from profile_core.errors import AuthError, DashboardError, FetchFailed, TokenExpired, TokenInvalid, Unauthorized
from profile_core.filters import normalize_options
from profile_core.pipeline import refresh, sign_in
from profile_core.session import FileSessionStorage, ProfileSession

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

ClientFactory = Callable[[], ApiClient]


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int) -> JSONResponse:
    body = ErrorResponse(error=str(exc), type=type(exc).__name__)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _dashboard_error(exc: DashboardError) -> JSONResponse:
    if isinstance(exc, (AuthError, TokenInvalid, TokenExpired, Unauthorized)):
        return _error(exc, 401)
    if isinstance(exc, FetchFailed):
        return _error(exc, 502)
    return _error(exc, 400)


def create_app(session: Optional[ProfileSession] = None, client_factory: Optional[ClientFactory] = None) -> FastAPI:
    app = FastAPI(title="Learner Profile API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if session is None:
        session = ProfileSession(FileSessionStorage(settings.session_store_path))
        session.restore()
    app.state.session = session
    app.state.client_factory = client_factory or ApiClient

    def _session(request: Request) -> ProfileSession:
        return request.app.state.session

    @app.post("/auth/signin")
    async def auth_signin(body: SignInRequest, request: Request):
        current = _session(request)
        try:
            async with request.app.state.client_factory() as client:
                token = await sign_in(current, client, body.username, body.password)
            return _json(TokenResponse(token=token, user=current.user_info()).model_dump())
        except DashboardError as exc:
            return _dashboard_error(exc)
        except Exception as exc:
            logger.exception("signin failed")
            return _error(exc, 500)

    @app.post("/auth/logout")
    def auth_logout(request: Request):
        _session(request).logout()
        return _json({"ok": True})

    @app.get("/session")
    def session_state(request: Request):
        current = _session(request)
        dataset = current.dataset
        state = SessionResponse(
            authenticated=current.is_authenticated,
            user=current.user_info(),
            has_dataset=dataset is not None,
            assembled_at=dataset.assembled_at if dataset is not None else None,
        )
        return _json(state.model_dump())

    @app.post("/refresh")
    async def refresh_profile(request: Request, options: Optional[DashboardOptionsModel] = None):
        current = _session(request)
        try:
            opts = normalize_options(options.model_dump() if options is not None else None)
            async with request.app.state.client_factory() as client:
                dataset = await refresh(current, client, options=opts)
            if dataset is None:
                return _json({"error": "Superseded by a newer refresh", "type": "StaleCycle"}, status_code=409)
            return _json(dataset.to_dict())
        except DashboardError as exc:
            return _dashboard_error(exc)
        except Exception as exc:
            logger.exception("refresh failed")
            return _error(exc, 500)

    @app.get("/profile")
    def profile(request: Request):
        current = _session(request)
        if not current.is_authenticated:
            return _error(TokenInvalid(ERRORS["NOT_AUTHENTICATED"]), 401)
        if current.dataset is None:
            return _json({"error": ERRORS["NO_DATA"], "type": "NoData"}, status_code=404)
        return _json(current.dataset.to_dict())

    @app.get("/charts")
    def charts(
        request: Request,
        top_n_skills: int = Query(default=settings.top_n_skills),
        top_n_projects: int = Query(default=settings.top_n_projects),
    ):
        current = _session(request)
        if current.dataset is None:
            return _json({"error": ERRORS["NO_DATA"], "type": "NoData"}, status_code=404)
        try:
            opts = normalize_options({"top_n_skills": top_n_skills, "top_n_projects": top_n_projects})
            drawings = render_dashboard(current.dataset, opts)
            return _json({kind: drawing.to_dict() for kind, drawing in drawings.items()})
        except Exception as exc:
            logger.exception("charts failed")
            return _error(exc, 500)

    @app.get("/charts/{kind}")
    def chart(
        kind: str,
        request: Request,
        top_n_skills: int = Query(default=settings.top_n_skills),
        top_n_projects: int = Query(default=settings.top_n_projects),
    ):
        if kind not in CHART_KINDS:
            return _json({"error": f"Unknown chart: {kind}", "type": "NotFound"}, status_code=404)
        current = _session(request)
        if current.dataset is None:
            return _json({"error": ERRORS["NO_DATA"], "type": "NoData"}, status_code=404)
        try:
            opts = normalize_options({"top_n_skills": top_n_skills, "top_n_projects": top_n_projects})
            return _json(render_chart(current.dataset, kind, opts).to_dict())
        except Exception as exc:
            logger.exception("chart %s failed", kind)
            return _error(exc, 500)

    return app


app = create_app()
