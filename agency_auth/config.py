"""Agency auth configuration via pydantic-settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class AgencyAuthSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///agency_auth.db"
    echo_sql: bool = False
    app_title: str = "GHL Agency Auth"
    log_level: str = "INFO"

    # Marketplace app credentials
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/oauth/callback"
    scopes: str = ""
    app_id: str = ""

    api_base_url: str = "https://services.leadconnectorhq.com"
    authorize_url: str = "https://marketplace.leadconnectorhq.com/oauth/chooselocation"
    api_version: str = "2021-07-28"
    http_timeout_seconds: float = 15.0

    # Compare-and-swap attempts when attaching a location token to a stored bundle
    merge_max_attempts: int = 3

    # Shared secret expected on /app-webhook (header or ?token=); empty disables the check
    webhook_token: str = ""

    # Custom menu link provisioned after installs (best effort)
    custom_menu_enabled: bool = False
    custom_menu_title: str = ""
    custom_menu_url: str = ""
    custom_menu_icon: str = "link"
    custom_menu_open_mode: str = "iframe"
    custom_menu_user_role: str = "all"

    # Exposes /auth_db and /insert_auth
    debug_routes_enabled: bool = False

    model_config = {"env_prefix": "GHL_", "env_file": ".env", "extra": "ignore"}

    @property
    def scope_list(self) -> list[str]:
        return [s for s in self.scopes.split() if s]

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def custom_menu_configured(self) -> bool:
        return bool(self.custom_menu_enabled and self.custom_menu_title and self.custom_menu_url)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = AgencyAuthSettings()
