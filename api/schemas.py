from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SignInRequest(BaseModel):
    username: str = ""
    password: str = ""


class DashboardOptionsModel(BaseModel):
    top_n_projects: int = 10
    top_n_skills: int = 5
    xp_per_level: int = 66000


class TokenResponse(BaseModel):
    token: str
    user: Optional[Dict[str, Any]] = None


class SessionResponse(BaseModel):
    authenticated: bool
    user: Optional[Dict[str, Any]] = None
    has_dataset: bool = False
    assembled_at: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    type: str = Field(default="DashboardError")
