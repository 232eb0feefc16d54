"""
=========================================================
Spotify Auth Gateway Configuration
=========================================================

Purpose:
- Read settings from the environment (and an optional .env file)
- Freeze them into one AppConfig built at process start
- Force localhost redirect/front-end URIs outside production

The config object is passed explicitly to the Flask app and
to the cluster supervisor; nothing reads os.environ later.
=========================================================
"""

# =========================================================
# IMPORTS
# =========================================================
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

# =========================================================
# DEFAULTS
# =========================================================
DEFAULT_REDIRECT_URI = "http://localhost:8888/callback"
DEFAULT_FRONTEND_URI = "http://localhost:3000"
DEFAULT_PORT = 8888
DEFAULT_HOST = "0.0.0.0"
DEFAULT_STATIC_DIR = "client/build"
DEFAULT_TOKEN_TIMEOUT = 10.0


@dataclass(frozen=True)
class AppConfig:
    """Process-wide settings, immutable once loaded."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = DEFAULT_REDIRECT_URI
    frontend_uri: str = DEFAULT_FRONTEND_URI
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    production: bool = False
    static_dir: str = DEFAULT_STATIC_DIR
    token_timeout: float = DEFAULT_TOKEN_TIMEOUT
    workers: Optional[int] = None


def _is_production(env):
    name = env.get("APP_ENV") or env.get("NODE_ENV") or "development"
    return name.strip().lower() == "production"


def load_config(env=None):
    """
    Build an AppConfig.

    When no mapping is given, a .env file in the working
    directory is loaded first (real environment wins) and
    os.environ is used.
    """
    if env is None:
        load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    production = _is_production(env)

    redirect_uri = env.get("REDIRECT_URI") or DEFAULT_REDIRECT_URI
    frontend_uri = env.get("FRONTEND_URI") or DEFAULT_FRONTEND_URI

    # Local development always talks to the local front-end
    if not production:
        redirect_uri = DEFAULT_REDIRECT_URI
        frontend_uri = DEFAULT_FRONTEND_URI

    workers = env.get("WEB_CONCURRENCY")

    return AppConfig(
        client_id=env.get("CLIENT_ID", ""),
        client_secret=env.get("CLIENT_SECRET", ""),
        redirect_uri=redirect_uri,
        frontend_uri=frontend_uri.rstrip("/"),
        port=int(env.get("PORT") or DEFAULT_PORT),
        host=env.get("HOST") or DEFAULT_HOST,
        production=production,
        static_dir=env.get("STATIC_DIR") or DEFAULT_STATIC_DIR,
        token_timeout=float(env.get("TOKEN_TIMEOUT") or DEFAULT_TOKEN_TIMEOUT),
        workers=int(workers) if workers else None,
    )
