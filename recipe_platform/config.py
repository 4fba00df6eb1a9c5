import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

# Load a local .env file if present (no-op otherwise).
load_dotenv()


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.

    The app never reads this from a global: `create_app(cfg)` stores it on
    `app.state.cfg` and everything downstream receives it explicitly.
    """

    # -----------------
    # Core
    # -----------------
    # Leave MONGODB_URI blank to run on the in-memory store (dev/tests only;
    # nothing survives a restart).
    MONGODB_URI: str = (os.environ.get("MONGODB_URI") or "").strip()
    MONGODB_DB_NAME: str = os.environ.get("MONGODB_DB_NAME", "recipe_platform")

    API_PREFIX: str = os.environ.get("API_PREFIX", "/api/v1")

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, these default to fixed strings so you can get started.
    # In production, you MUST set both secrets to strong random values.
    ACCESS_TOKEN_SECRET: str = os.environ.get("ACCESS_TOKEN_SECRET", "dev_access_change_me")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    REFRESH_TOKEN_SECRET: str = os.environ.get("REFRESH_TOKEN_SECRET", "dev_refresh_change_me")
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.environ.get("REFRESH_TOKEN_EXPIRE_DAYS", "10"))

    # Cookie-based browser sessions
    # - /auth/login and /auth/refresh-token set httpOnly accessToken + refreshToken cookies
    # - Protected routes read the access token from Authorization: Bearer ... OR the cookie
    AUTH_ACCESS_COOKIE_NAME: str = os.environ.get("AUTH_ACCESS_COOKIE_NAME", "accessToken")
    AUTH_REFRESH_COOKIE_NAME: str = os.environ.get("AUTH_REFRESH_COOKIE_NAME", "refreshToken")
    AUTH_COOKIE_DOMAIN: str | None = (os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "lax")  # lax|strict|none

    # If AUTH_COOKIE_SECURE is unset, we default to secure cookies when PUBLIC_APP_URL is https.
    # NOTE: Browsers require Secure when SameSite=None.
    PUBLIC_APP_URL: str = os.environ.get("PUBLIC_APP_URL", "http://localhost:5173")
    AUTH_COOKIE_SECURE: bool = (
        _env_bool("AUTH_COOKIE_SECURE", None)
        if _env_bool("AUTH_COOKIE_SECURE", None) is not None
        else PUBLIC_APP_URL.lower().startswith("https://")
    )

    # -----------------
    # CORS
    # -----------------
    # Comma-separated. The SPA sends cookies, so credentials are always allowed.
    CORS_ORIGIN: str = os.environ.get("CORS_ORIGIN", "http://localhost:5173")

    # -----------------
    # Images (Cloudinary)
    # -----------------
    # Leave CLOUDINARY_CLOUD_NAME blank to keep uploads in memory (dev/tests only).
    CLOUDINARY_CLOUD_NAME: str = (os.environ.get("CLOUDINARY_CLOUD_NAME") or "").strip()
    CLOUDINARY_API_KEY: str | None = os.environ.get("CLOUDINARY_API_KEY")
    CLOUDINARY_API_SECRET: str | None = os.environ.get("CLOUDINARY_API_SECRET")
    CLOUDINARY_FOLDER: str = os.environ.get("CLOUDINARY_FOLDER", "recipes")
    CLOUDINARY_BASE_URL: str = os.environ.get("CLOUDINARY_BASE_URL", "https://api.cloudinary.com/v1_1")
    CLOUDINARY_TIMEOUT_SECONDS: float = float(os.environ.get("CLOUDINARY_TIMEOUT_SECONDS", "60"))

    # Multipart uploads are spooled here before being pushed to the image host.
    UPLOAD_TMP_DIR: str = os.environ.get("UPLOAD_TMP_DIR", "./public/temp")

    def cors_origins(self) -> List[str]:
        return [o.strip() for o in (self.CORS_ORIGIN or "").split(",") if o.strip()]


def load_config() -> Config:
    return Config()
