"""
Spotify Auth Gateway
--------------------
This Flask app performs the Spotify OAuth handshake for a
single-page front-end and serves that front-end's build.

Routes:
 - /login     redirect to Spotify with a CSRF state cookie
 - /callback  validate state, exchange code, redirect to front-end
 - /<path>    static files with index.html history fallback

Tokens are never stored here: they travel back to the
front-end in the redirect query string.

RUN (single dev worker):
    python app.py

RUN (one worker per CPU core):
    spotify-auth-gateway
"""

import logging
import os
from urllib.parse import urlencode

from flask import Flask, redirect, request, send_from_directory
from werkzeug.exceptions import NotFound

from spotify_auth import STATE_KEY, AuthGateway, TokenExchangeError, generate_state
from spotify_config import load_config

logger = logging.getLogger(__name__)

# Browser has this long to finish logging in at Spotify
STATE_COOKIE_MAX_AGE = 600


def frontend_redirect(config, **params):
    """302 to the front-end root with the given query parameters."""
    return redirect(f"{config.frontend_uri}/?{urlencode(params)}")


def create_app(config, gateway=None):
    """Flask application factory."""
    gateway = gateway or AuthGateway(config)
    static_dir = os.path.abspath(config.static_dir)

    # Static files are served by the catch-all below
    app = Flask(__name__, static_folder=None)

    # ----------------------------------------------------
    # OAUTH ENDPOINTS
    # ----------------------------------------------------
    @app.route("/login")
    def login():
        """Send the browser to Spotify's consent page."""
        state = generate_state()
        response = redirect(gateway.authorize_url(state))
        response.set_cookie(
            STATE_KEY,
            state,
            max_age=STATE_COOKIE_MAX_AGE,
            httponly=True,
            samesite="Lax",
            secure=config.production,
        )
        return response

    @app.route("/callback")
    def callback():
        """
        Spotify redirects the user here after login approval.

        Example redirect URL:
        http://localhost:8888/callback?code=ABC123&state=XYZ
        """
        code = request.args.get("code")
        state = request.args.get("state")
        stored_state = request.cookies.get(STATE_KEY)

        # CSRF check happens before any network call
        if state is None or state != stored_state:
            logger.warning("OAuth callback rejected: state mismatch")
            return frontend_redirect(config, error="state_mismatch")

        try:
            tokens = gateway.exchange_code(code)
        except TokenExchangeError as e:
            logger.warning("Token exchange failed: %s", e)
            response = frontend_redirect(config, error="invalid_token")
        else:
            response = frontend_redirect(
                config,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            )

        response.delete_cookie(STATE_KEY)
        return response

    # ----------------------------------------------------
    # FRONT-END (SPA) ENDPOINTS
    # ----------------------------------------------------
    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def frontend(path):
        """Serve a built asset, or index.html so client routing can take over."""
        if path:
            try:
                return send_from_directory(static_dir, path)
            except NotFound:
                pass
        return send_from_directory(static_dir, "index.html")

    return app


# ----------------------------------------------------
# APP ENTRY POINT
# ----------------------------------------------------
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    config = load_config()

    print("Starting Spotify Auth Gateway")
    print(f"   -> login:    http://{config.host}:{config.port}/login")
    print(f"   -> frontend: {config.frontend_uri}")

    create_app(config).run(host=config.host, port=config.port)
