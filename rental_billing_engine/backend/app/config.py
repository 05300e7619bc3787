from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2024-03-20.v1"
    database_url: str = "sqlite:///./rental_billing.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Billing defaults ----
    # Seed value only; the live figure is the `penalty_percentage` system setting.
    default_penalty_percentage: float = 5.0
    due_date_offset_days: int = 10
    # Informational; the core keeps DEPOSIT_FORFEITURE_THRESHOLD as a constant.
    deposit_forfeiture_threshold: int = 5
    currency: str = "PHP"

    # ---- Tenancy ----
    contract_months: int = 6
    renewal_months: int = 6

    # ---- Auth ----
    auth_mode: str = "dev"  # dev|external
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        if env in ("prod", "production"):
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")

        if self.default_penalty_percentage < 0:
            raise ValueError("default_penalty_percentage must be >= 0")
        if self.due_date_offset_days < 0:
            raise ValueError("due_date_offset_days must be >= 0")


settings = Settings()
