import json
import os
import re
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = Field(default=os.getenv("PROJECT_NAME", "Proposal CRM API"))
    environment: str = Field(default="dev", validation_alias="ENVIRONMENT")
    build_version: Optional[str] = Field(default=None, validation_alias="BUILD_VERSION")
    database_url: str = Field(default="sqlite+pysqlite:///./proposals-dev.db")
    # API prefix used by FastAPI router include (e.g. "/api/v1").
    api_prefix: str = Field(default="", validation_alias="API_V1_STR")
    enable_docs: Optional[bool] = Field(
        default=None, validation_alias="ENABLE_DOCS", validate_default=True
    )
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=list, validation_alias="CORS_ORIGINS", validate_default=True
    )

    # Reference point for "Net N days" payment terms: created | sent | invoice | evaluation.
    payment_due_anchor: str = Field(default="created", validation_alias="PAYMENT_DUE_ANCHOR")
    # Remaining due amount at or below this value counts as fully paid.
    paid_tolerance: float = Field(default=0.01, validation_alias="PAID_TOLERANCE")
    # Allowed drift of the payment-term percentage sum around 100.
    percentage_tolerance: float = Field(default=0.01, validation_alias="PERCENTAGE_TOLERANCE")

    @field_validator("enable_docs", mode="before")
    @classmethod
    def default_enable_docs(cls, value, info: ValidationInfo):
        if value is None or value == "":
            env = str(info.data.get("environment", "dev") or "dev").lower()
            return env in {"dev", "development", "test"}
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "y", "on"}
        return bool(value)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_and_default_cors_origins(cls, value, info: ValidationInfo):
        env = str(info.data.get("environment", "dev") or "dev").lower()

        def _normalize_origin(o: str) -> str:
            s = str(o).strip().strip('"').strip("'")
            # Browsers send the Origin header without a trailing slash.
            if s.endswith("/"):
                s = s[:-1]
            return s

        if value is None or value == "" or value == []:
            if env in {"prod", "production"}:
                raise ValueError("CORS_ORIGINS must be explicitly set in production")
            return [
                "http://localhost:5173",
                "http://localhost:3000",
                "http://127.0.0.1:5173",
            ]

        if isinstance(value, str):
            s = value.strip()
            if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
                s = s[1:-1].strip()

            try:
                parsed = json.loads(s)
                if isinstance(parsed, str):
                    return [_normalize_origin(parsed)]
                if isinstance(parsed, list):
                    return [_normalize_origin(v) for v in parsed if str(v).strip()]
                return [_normalize_origin(str(parsed))]
            except json.JSONDecodeError:
                pass

            return [_normalize_origin(v) for v in s.split(",") if str(v).strip()]

        return value

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, v: str) -> str:
        """Normalize API prefix coming from env/.env.

        On Windows Git Bash (MSYS), values like "/api/v1" may show up as a
        Windows path (e.g. "C:/Program Files/Git/api/v1"). Extract the trailing
        "/api/..." portion so routing keeps working.
        """
        if v is None:
            return ""
        s = str(v).strip()
        if not s:
            return ""

        if s.startswith("/api/") or s == "/api":
            return s

        m = re.search(r"(/api/[^\s]*)$", s.replace("\\", "/"))
        if m:
            return m.group(1)

        if s.startswith("api/") or s == "api":
            return f"/{s}"

        return s

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Make SQLite relative paths stable across working directories.

        `sqlite+pysqlite:///./proposals-dev.db` is resolved against the backend
        folder instead of whatever directory uvicorn was started from.
        """

        if v is None:
            return v

        s = str(v).strip()
        if not s:
            return s

        # SQLAlchemy defaults postgresql:// to psycopg2, but we ship psycopg3.
        if s.startswith("postgres://"):
            s = "postgresql://" + s[len("postgres://") :]
        if s.startswith("postgresql://"):
            return "postgresql+psycopg://" + s[len("postgresql://") :]
        if s.startswith("postgresql+psycopg2://"):
            return "postgresql+psycopg://" + s[len("postgresql+psycopg2://") :]

        if not s.startswith("sqlite"):
            return s

        marker = ":///"
        i = s.find(marker)
        if i == -1:
            return s

        path_part = s[i + len(marker) :]

        if path_part.startswith("/") or path_part == ":memory:" or re.match(r"^[A-Za-z]:/", path_part):
            return s

        if path_part.startswith("./") or path_part.startswith(".\\"):
            backend_root = Path(__file__).resolve().parents[1]
            abs_path = (backend_root / path_part[2:]).resolve().as_posix()
            return f"{s[: i + len(marker)]}{abs_path}"

        return s

    @field_validator("database_url")
    @classmethod
    def validate_database_url_for_environment(cls, v: str, info: ValidationInfo):
        env = str(info.data.get("environment", "dev") or "dev").strip().lower()
        s = str(v or "").strip()

        if env in {"prod", "production"} and s.startswith("sqlite"):
            raise ValueError("SQLite DATABASE_URL is not allowed in production")

        return s

    @field_validator("payment_due_anchor", mode="before")
    @classmethod
    def validate_payment_due_anchor(cls, v) -> str:
        s = str(v or "created").strip().lower()
        if s not in {"created", "sent", "invoice", "evaluation"}:
            raise ValueError("PAYMENT_DUE_ANCHOR must be one of created, sent, invoice, evaluation")
        return s


settings = Settings()
