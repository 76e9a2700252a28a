# src/vinculum/config.py

import logging
from typing import Dict, List, Optional

from pydantic import AliasChoices, Field, PrivateAttr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vinculum.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Production tenant base URL; all shape endpoints are relative to it
DEFAULT_BASE_URL = "https://erp.vineretail.com/RestWS/api/eretail/v1"

# Required field -> environment variable named in the error message
REQUIRED_VARS = {
    "api_key": "VINCULUM_API_KEY",
    "api_owner": "VINCULUM_API_OWNER",
}


class Settings(BaseSettings):
    """
    Process-wide configuration, read once from the environment at start-up
    and passed explicitly to the gateway client.

    Loading never raises: a malformed value is kept as a load error that
    ``require()`` reports, so the handler can answer 500 instead of the
    Lambda failing to import.
    """

    model_config = SettingsConfigDict(
        env_prefix="VINCULUM_",
        extra="ignore",
        case_sensitive=False,
        env_ignore_empty=True,
        populate_by_name=True,
        frozen=True,
    )

    api_key: Optional[str] = Field(
        None,
        # VINICULUM_API_KEY is the name used by the original storefront deployment
        validation_alias=AliasChoices("VINCULUM_API_KEY", "VINICULUM_API_KEY"),
        description="Value of the ApiKey header",
    )
    api_owner: Optional[str] = Field(None, description="Value of the ApiOwner header")
    org_id: Optional[str] = Field(None, description="Optional OrgId header")
    client_code: Optional[str] = Field(None, description="Optional ClientCode header")
    default_location: Optional[str] = Field(None, description="Warehouse code used when the request has none")
    base_url: str = Field(DEFAULT_BASE_URL, description="Tenant base URL for the order API")
    timeout_seconds: float = Field(8.0, gt=0, description="Per-call timeout for upstream requests")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL", description="Root logger level")
    log_dir: Optional[str] = Field(None, validation_alias="LOG_DIR", description="Directory for rotating log files")

    _load_error: Optional[str] = PrivateAttr(None)

    @field_validator("api_key", "api_owner", "org_id", "client_code", "default_location", "log_dir", mode="before")
    def blank_is_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("base_url", mode="before")
    def clean_base_url(cls, v):
        if isinstance(v, str):
            return v.strip().rstrip("/") or DEFAULT_BASE_URL
        return v

    @field_validator("log_level", mode="before")
    def known_log_level(cls, v):
        if isinstance(v, str):
            v = v.strip().upper() or "INFO"
            if not isinstance(logging.getLevelName(v), int):
                raise ValueError(f"unknown log level '{v}'")
        return v

    @classmethod
    def from_env(cls) -> "Settings":
        try:
            return cls()
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            message = f"Server not configured. Invalid settings: {problems}."
            logger.error(message)
            settings = cls.model_construct()
            settings._load_error = message
            return settings

    def missing(self) -> List[str]:
        """Environment variable names of required values that are not set."""
        return [var for name, var in REQUIRED_VARS.items() if not getattr(self, name)]

    def require(self) -> "Settings":
        if self._load_error:
            raise ConfigurationError(self._load_error)
        missing = self.missing()
        if missing:
            raise ConfigurationError(
                f"Server not configured. Missing {', '.join(missing)}.",
                missing=missing,
            )
        return self

    def auth_headers(self) -> Dict[str, str]:
        headers = {
            "ApiKey": self.api_key or "",
            "ApiOwner": self.api_owner or "",
        }
        if self.org_id:
            headers["OrgId"] = self.org_id
        if self.client_code:
            headers["ClientCode"] = self.client_code
        return headers
