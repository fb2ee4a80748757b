"""OAuth2 authorization-code flow against SmartThings, using a local callback server."""
from typing import Optional
from urllib.parse import urlencode
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, RedirectResponse
import logging
import requests
import secrets

from smartthings_exporter.errors import OAuthError
from smartthings_exporter.oauth_token import OAuthToken

logger = logging.getLogger(__name__)

AUTH_URL = "https://graph.api.smartthings.com/oauth/authorize"
TOKEN_URL = "https://graph.api.smartthings.com/oauth/token"
SCOPES = ["app"]
CALLBACK_PATH = "/OAuthCallback"

AUTH_DONE = "<html><body><h1>Authentication completed</h1><p>You can close this window.</p></body></html>"
AUTH_FAILED = "<html><body><h1>Authentication failed</h1><p>{reason}</p></body></html>"


class OAuthConfig:
    """Client credentials and SmartThings OAuth endpoints."""

    def __init__(self, client_id: str, client_secret: str = "", redirect_url: str = ""):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url

    def auth_code_url(self, state: str) -> str:
        """URL the operator visits to grant access."""
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "scope": " ".join(SCOPES),
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    def exchange(self, code: str, timeout: float = 30) -> OAuthToken:
        """Exchange an authorization code for a token."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_url,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": " ".join(SCOPES),
        }
        try:
            response = requests.post(
                TOKEN_URL,
                data=data,
                headers={"Accept": "application/json"},
                timeout=timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise OAuthError(f"Token exchange failed: {e}")

        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise OAuthError(f"Token endpoint returned no access token: {payload!r}")

        return OAuthToken.from_response(payload)


class OAuthCallbackServer:
    """Local HTTP listener that drives the authorization-code flow.

    ``GET /`` redirects the browser to SmartThings; SmartThings redirects back
    to ``GET /OAuthCallback`` with the code, which is exchanged for a token.
    The server stops after the first callback, successful or not.
    """

    def __init__(self, config: OAuthConfig, port: int):
        self.config = config
        self.port = port
        if not self.config.redirect_url:
            self.config.redirect_url = f"http://localhost:{port}{CALLBACK_PATH}"

        self.state = secrets.token_urlsafe(16)
        self.token: Optional[OAuthToken] = None
        self.error: Optional[OAuthError] = None
        self.server = None

        self.app = FastAPI(title="SmartThings Exporter Registration")
        self._setup_routes()

    def _setup_routes(self):
        """Setup OAuth routes."""

        @self.app.get("/")
        def login():
            return RedirectResponse(self.config.auth_code_url(self.state))

        @self.app.get(CALLBACK_PATH)
        def callback(code: Optional[str] = None, state: Optional[str] = None, error: Optional[str] = None):
            try:
                if error:
                    raise OAuthError(f"Authorization denied: {error}")
                if state != self.state:
                    raise OAuthError("OAuth state mismatch")
                if not code:
                    raise OAuthError("OAuth callback carried no authorization code")
                self.token = self.config.exchange(code)
            except OAuthError as e:
                logger.error(f"OAuth callback failed: {e}")
                self.error = e
                return HTMLResponse(AUTH_FAILED.format(reason=e), status_code=400)
            finally:
                self._shutdown()

            logger.info("OAuth token received")
            return HTMLResponse(AUTH_DONE)

    def _shutdown(self):
        if self.server is not None:
            self.server.should_exit = True

    def fetch_token(self) -> OAuthToken:
        """Serve until the callback completes and return the token."""
        import uvicorn

        config = uvicorn.Config(self.app, host="localhost", port=self.port, log_config=None)
        self.server = uvicorn.Server(config)
        logger.info(f"Waiting for OAuth callback on http://localhost:{self.port}{CALLBACK_PATH}")
        self.server.run()

        if self.error is not None:
            raise self.error
        if self.token is None:
            raise OAuthError("OAuth flow ended without a token")
        return self.token
