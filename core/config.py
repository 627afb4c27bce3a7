"""
core/config.py -- Task manager settings, read from the environment.

Every tunable of the service lives on Settings: token lifetime, the two
database URLs, who may self-register as ADMIN, demo seeding, host/CORS
allow-lists and the login/register rate limits. Other modules call
get_settings() instead of reading os.environ.

SECRET_KEY signs every bearer token. With DEBUG=true a random key is made
up at startup (tokens die with the process); otherwise it must be set, and
it must be at least 32 characters either way.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or tasks/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("taskmanager.config")


class Settings(BaseSettings):
    """Environment-backed settings. Field names map to upper-case env vars.

    List fields (allowed_hosts, cors_origins) are read as JSON arrays, e.g.
    ALLOWED_HOSTS='["tasks.example.com"]'.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    # "" means unset; validate_secret_key replaces or rejects it.
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 3600
    allow_admin_self_registration: bool = False
    # Creates user/password123 and admin/admin123 on an empty user table.
    # Never enable outside local development.
    seed_demo_users: bool = False

    # ------------------------------------------------------------------
    # Persistence (empty string = store default next to the module)
    # ------------------------------------------------------------------

    auth_db_url: str = ""
    tasks_db_url: str = ""

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a key in DEBUG mode, refuse to start without one otherwise."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("SECRET_KEY not set; using a random key. Issued tokens end with this process.")
            else:
                raise ValueError(
                    "SECRET_KEY is not set. Export one of at least 32 characters, "
                    "or set DEBUG=true for a throwaway key."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call."""
    return Settings()
