"""Reddit OAuth2 authorization-code flow for an installed app.

The exchange itself is delegated to prawcore. The rest of the app only
ever sees the resulting bearer token; every failure in here is logged
and reported as "no token" rather than raised.
"""

import logging
import uuid
from typing import Optional
from urllib.parse import parse_qs, urlparse

import prawcore

from snoofeed.config import Settings

logger = logging.getLogger(__name__)

_DURATION = "permanent"


class RedditAuthManager:
    """Builds the authorize URL and turns redirect codes into tokens."""

    def __init__(self, settings: Settings) -> None:
        """Set up the prawcore authenticator from settings.

        Without a client id the manager stays in setup mode: no authorize
        URL can be built and every exchange yields None.

        Args:
            settings: Application settings with the OAuth client details.
        """
        self._settings = settings
        self._scopes = settings.REDDIT_OAUTH_SCOPES.split()
        self._requestor = prawcore.Requestor(user_agent=settings.REDDIT_USER_AGENT)
        self._authenticator = prawcore.UntrustedAuthenticator(
            requestor=self._requestor,
            client_id=settings.REDDIT_CLIENT_ID or "",
            redirect_uri=settings.REDDIT_REDIRECT_URI,
        )
        self.access_token: str = ""
        self.username: str = ""
        self.is_authenticated: bool = False

        if not settings.REDDIT_CLIENT_ID:
            logger.warning(
                "REDDIT_CLIENT_ID is not configured. Sign-in is unavailable."
            )

    def is_configured(self) -> bool:
        return bool(self._settings.REDDIT_CLIENT_ID)

    def authorize_url(self, state: Optional[str] = None) -> str:
        """Return the URL the user opens to grant access.

        Args:
            state: Opaque value echoed back on redirect. Random if omitted.

        Raises:
            ValueError: If no client id is configured.
        """
        if not self.is_configured():
            raise ValueError("Reddit client id is not configured.")
        return self._authenticator.authorize_url(
            duration=_DURATION,
            scopes=self._scopes,
            state=state or uuid.uuid4().hex,
        )

    @staticmethod
    def code_from_redirect(url: str) -> Optional[str]:
        """Extract the ``code`` query parameter from a redirect URL."""
        codes = parse_qs(urlparse(url).query).get("code")
        return codes[0] if codes else None

    def exchange_code(self, code: str) -> Optional[str]:
        """Exchange an authorization code for a bearer token.

        Args:
            code: The code Reddit appended to the redirect URL.

        Returns:
            The access token, or None if the exchange failed.
        """
        if not self.is_configured():
            logger.warning("Cannot exchange code: client id not configured")
            return None

        authorizer = prawcore.Authorizer(authenticator=self._authenticator)
        try:
            authorizer.authorize(code)
        except prawcore.exceptions.PrawcoreException as e:
            logger.warning(f"Token exchange failed: {e}")
            return None

        if not authorizer.access_token:
            logger.warning("Token exchange returned no access token")
            return None

        self.access_token = authorizer.access_token
        self.is_authenticated = True
        logger.info("Signed in to Reddit")
        return self.access_token

    def handle_redirect(self, url: str) -> Optional[str]:
        """Complete sign-in from a redirect URL; None if it carries no code."""
        code = self.code_from_redirect(url)
        if code is None:
            return None
        return self.exchange_code(code)

    def sign_out(self) -> None:
        self.access_token = ""
        self.username = ""
        self.is_authenticated = False
