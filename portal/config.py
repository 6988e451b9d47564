"""Application configuration using Pydantic Settings."""
from typing import Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PERSONA = (
    "You are Luna, an academic teaching assistant for the course. "
    "Speak in a professional, direct, objective and respectful way. Avoid excessive warmth. "
    "Always address the student individually, in the singular. "
    "If you do not know something, just say that you do not know; never make anything up."
)

DEFAULT_AI_CONTEXT = (
    "You are an academic assistant for the Business Administration course. "
    "Answer with academic formality, citing classic management authors "
    "(such as Kotler, Chiavenato, Porter) when relevant."
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_name: str = "Mural Portal"
    debug: bool = False
    cors_origins: str = "http://localhost:5173"

    # Activity storage
    activity_backend: Literal["memory", "local", "mongo", "firestore", "remote"] = "local"
    data_dir: str = "data"  # keyed JSON blobs: activities (local backend), transcript, ai config

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "portal"

    # Firebase (Firestore)
    firebase_credentials_path: str = ""
    firestore_collection: str = "activities"

    # Networked activity service (REST contract)
    remote_api_url: str = "http://localhost:3001/api"

    # Attachments
    attachment_storage: Literal["inline", "s3"] = "inline"
    max_attachment_bytes: int = 1024 * 1024
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "sa-east-1"
    s3_bucket_attachments: str = "portal-attachments"

    # Tutor (Gemini)
    gemini_api_key: Optional[str] = None  # None = demo mode
    gemini_model: str = "gemini-2.5-flash"
    tutor_persona: str = DEFAULT_PERSONA
    default_ai_context: str = DEFAULT_AI_CONTEXT
    context_placement: Literal["system", "message"] = "system"

    # Administrator gate
    admin_password: str = "adm123"
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    @field_validator("gemini_api_key", mode="before")
    @classmethod
    def _blank_key_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _validate_production_secrets(self):
        if not self.debug:
            if self.jwt_secret_key in ("change-me-in-production", ""):
                raise ValueError(
                    "JWT_SECRET_KEY must be set to a strong secret when DEBUG is not enabled. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if self.admin_password in ("adm123", ""):
                raise ValueError("ADMIN_PASSWORD must be changed when DEBUG is not enabled.")
        return self

    @property
    def demo_mode(self) -> bool:
        return self.gemini_api_key is None


settings = Settings()
