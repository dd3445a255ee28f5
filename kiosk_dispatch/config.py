# kiosk_dispatch/config.py
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    kiosk_source: str = "Sidney Kiosk"  # Label shown to staff for every kiosk call

    # Twilio (voice provider)
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None
    public_url: str = "http://localhost:8000"  # Twilio fetches {public_url}/voice when the call connects
    voice_prompt: str = (
        "Hello. You are receiving a support request from the Total Fitness Kiosk. "
        "Please assist as soon as possible."
    )

    # Call log storage
    # "file"   - JSON array on disk (default)
    # "memory" - process-local list, lost on restart
    storage_backend: Literal["file", "memory"] = "file"
    call_log_path: str = "call_logs.json"
    call_log_max_entries: int = 100

    # Push notifications
    # "expo"      - Expo push service, one message per registered device token
    # "onesignal" - OneSignal REST API, one notification per segment
    # "none"      - disabled
    push_provider: Literal["expo", "onesignal", "none"] = "expo"
    push_tokens_path: str = "push_tokens.json"
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    onesignal_api_url: str = "https://onesignal.com/api/v1/notifications"
    onesignal_app_id: str | None = None
    onesignal_api_key: str | None = None
    onesignal_segment: str = "Subscribed Users"

    # Staff real-time channel
    broadcast_send_timeout: float = 5.0  # seconds; slower staff sockets are dropped

    # Security / HTTP
    allowed_origins: list[str] = ["*"]
    metrics_token: str | None = None  # If set, /metrics requires "Authorization: Bearer <token>"

    # Feature Flags
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    @property
    def twilio_enabled(self) -> bool:
        """Check if Twilio call placement is configured"""
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_phone_number
        )

    @property
    def voice_callback_url(self) -> str:
        return f"{self.public_url.rstrip('/')}/voice"

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []

        required_fields = [
            ("twilio_account_sid", self.twilio_account_sid),
            ("twilio_auth_token", self.twilio_auth_token),
            ("twilio_phone_number", self.twilio_phone_number),
        ]

        if self.push_provider == "onesignal":
            required_fields.extend([
                ("onesignal_app_id", self.onesignal_app_id),
                ("onesignal_api_key", self.onesignal_api_key),
            ])

        for field_name, value in required_fields:
            if not value:
                missing.append(field_name)

        if "localhost" in self.public_url:
            missing.append("public_url")

        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.allowed_origins == ["*"]:
        warnings.append("prod: allowed_origins=['*'] (CORS is wide open).")

    if not s.twilio_enabled:
        warnings.append("Twilio is not fully configured (POST /start-call will fail).")

    if s.push_provider == "onesignal" and not (s.onesignal_app_id and s.onesignal_api_key):
        warnings.append("push_provider=onesignal but onesignal_app_id/onesignal_api_key is missing.")

    if s.storage_backend == "memory":
        warnings.append("storage_backend=memory: call logs and push tokens are lost on restart.")

    if s.call_log_max_entries < 1:
        warnings.append("call_log_max_entries < 1: the call log will always be empty.")

    if s.is_production and not s.metrics_token:
        warnings.append("prod: metrics_token is not set (/metrics is publicly readable).")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        logger.warning(f"[config] {msg}")


settings = Settings()
validate_or_warn(settings)
