"""
OAuth broker.

Authorization-code exchange with GitHub and credential verification for both
providers. Returned credentials are wrapped in ``Credential`` and never logged.
"""
import logging

from core.application.interfaces import FastlyAPI, GitHubAPI
from core.domain.errors import AuthError
from quickdeploy_sdk.credentials import Credential
from quickdeploy_sdk.errors import ApiError, NetworkError

logger = logging.getLogger(__name__)


class OAuthBroker:
    """Exchanges authorization codes and verifies user credentials."""

    def __init__(self, github: GitHubAPI):
        self.github = github

    def authorize_url(self, state: str) -> str:
        return self.github.authorize_url(state)

    async def authorize(self, code: str) -> Credential:
        """
        Exchange an authorization code for a user access token.

        Args:
            code: Code received on the OAuth callback

        Returns:
            GitHub credential scoped to ``repo workflow``

        Raises:
            AuthError: INVALID_CODE, EXPIRED or PROVIDER_UNAVAILABLE
        """
        if not code:
            raise AuthError(AuthError.Kind.INVALID_CODE, "No authorization code was provided")

        try:
            payload = await self.github.exchange_code(code)
        except (NetworkError, ApiError) as exc:
            raise AuthError(
                AuthError.Kind.PROVIDER_UNAVAILABLE,
                f"GitHub could not complete the sign-in: {exc}",
            ) from exc

        token = payload.get("access_token")
        if token:
            logger.info("GitHub authorization code exchanged")
            return Credential(token, provider="github")

        error = payload.get("error", "")
        description = payload.get("error_description", "")
        if error == "bad_verification_code":
            if "expired" in description.lower():
                raise AuthError(AuthError.Kind.EXPIRED, "The GitHub sign-in link has expired")
            raise AuthError(AuthError.Kind.INVALID_CODE, "GitHub rejected the authorization code")
        raise AuthError(
            AuthError.Kind.PROVIDER_UNAVAILABLE,
            f"GitHub sign-in failed: {description or error or 'no token returned'}",
        )

    async def verify_github(self, github: GitHubAPI) -> str:
        """Return the login of the user behind ``github``'s credential."""
        try:
            user = await github.get_user()
        except ApiError as exc:
            if exc.status in (401, 403):
                raise AuthError(
                    AuthError.Kind.EXPIRED, "GitHub session is no longer valid, sign in again"
                ) from exc
            raise
        return user["login"]

    async def verify_platform(self, fastly: FastlyAPI) -> dict:
        """Return the Fastly user behind ``fastly``'s token."""
        try:
            user = await fastly.get_current_user()
        except ApiError as exc:
            if exc.status in (401, 403):
                raise AuthError(
                    AuthError.Kind.INVALID_CODE, "Fastly rejected the API token"
                ) from exc
            raise
        logger.info(f"Fastly token verified (customer {user.get('customer_id')})")
        return user
