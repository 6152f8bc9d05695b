from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    graphql_endpoint: str = Field(
        default="https://learn.zone01kisumu.ke/api/graphql-engine/v1/graphql",
        validation_alias="GRAPHQL_ENDPOINT",
    )
    auth_endpoint: str = Field(default="https://learn.zone01kisumu.ke/api/auth/signin", validation_alias="AUTH_ENDPOINT")
    # Seconds; absence of a response beyond this is the transport's concern
    request_timeout: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT")

    xp_per_level: int = Field(default=66000, validation_alias="XP_PER_LEVEL")
    top_n_projects: int = Field(default=10, validation_alias="TOP_N_PROJECTS")
    top_n_skills: int = Field(default=5, validation_alias="TOP_N_SKILLS")

    # Best-effort persisted copy of the token and last dataset
    session_store_path: str = Field(default=".profile_session.json", validation_alias="SESSION_STORE_PATH")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

XP_PER_LEVEL = settings.xp_per_level

TOKEN_KEY = "zone01_token"
USER_KEY = "zone01_user"

CHART_COLORS = {
    "primary": "#2196F3",
    "secondary": "#ff9800",
    "success": "#4caf50",
    "danger": "#f44336",
    "info": "#17a2b8",
    "dark": "#343a40",
    "background": "#f8f9fa",
    "border": "#dee2e6",
    "text": "#333333",
    "muted": "#666666",
}

ERRORS = {
    "INVALID_CREDENTIALS": "Invalid username or password",
    "MISSING_CREDENTIALS": "Username and password are required",
    "NETWORK_ERROR": "Network error. Please check your connection",
    "TOKEN_EXPIRED": "Session expired. Please login again",
    "TOKEN_INVALID": "Invalid session token. Please login again",
    "NOT_AUTHENTICATED": "Not authenticated",
    "NO_DATA": "No data available",
    "GRAPHQL_ERROR": "Failed to fetch data from server",
}
