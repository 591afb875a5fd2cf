"""
Microsoft Graph authentication - MSAL device code flow.

The session holds the MSAL public client application and a token cache that is
persisted to disk, so the device code prompt only appears when no cached
account can be refreshed silently.

Usage:
    session = AuthSession(settings, on_device_code=print)
    session.initialize()
    token = session.get_access_token()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import msal

from lunar_birthday.core.config import GraphSettings
from lunar_birthday.core.exceptions import AuthenticationError, SessionNotInitializedError

logger = logging.getLogger(__name__)

DeviceCodeCallback = Callable[[str], None]


class AuthSession:
    """
    Device code credential with a persistent token cache.

    The session must be initialized once before tokens can be requested.
    After initialization it is only read by API calls.
    """

    def __init__(
        self,
        settings: GraphSettings,
        on_device_code: DeviceCodeCallback,
        token_cache_path: Path | str | None = None,
    ):
        """
        Args:
            settings: Graph client id, tenant and scopes
            on_device_code: Called with the sign-in instructions when a device
                code is issued. Its return value is ignored.
            token_cache_path: File for the serialized MSAL cache (None keeps it in memory)
        """
        self.settings = settings
        self.on_device_code = on_device_code
        self.token_cache_path = Path(token_cache_path) if token_cache_path else None
        self._cache: msal.SerializableTokenCache | None = None
        self._app: msal.PublicClientApplication | None = None

    @property
    def initialized(self) -> bool:
        return self._app is not None

    @property
    def scopes(self) -> list[str]:
        return list(self.settings.scopes)

    def initialize(self) -> None:
        """
        Build the MSAL application and load the token cache.

        Raises:
            ConfigurationError: If the settings are incomplete
        """
        if self._app is not None:
            logger.debug("Auth session already initialized")
            return

        self.settings.validate()

        cache = msal.SerializableTokenCache()
        if self.token_cache_path and self.token_cache_path.exists():
            try:
                cache.deserialize(self.token_cache_path.read_text(encoding="utf-8"))
                logger.debug("Loaded token cache from %s", self.token_cache_path)
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable token cache %s: %s", self.token_cache_path, e)

        self._cache = cache
        self._app = msal.PublicClientApplication(
            self.settings.client_id,
            authority=self.settings.authority,
            token_cache=cache,
        )
        logger.info("Graph auth initialized (tenant=%s)", self.settings.tenant_id)

    def _require_app(self) -> msal.PublicClientApplication:
        if self._app is None:
            raise SessionNotInitializedError()
        return self._app

    def get_access_token(self) -> str:
        """
        Get a valid access token, prompting with a device code when needed.

        Blocks while the user completes sign-in.

        Returns:
            Access token string

        Raises:
            SessionNotInitializedError: If initialize() was not called
            AuthenticationError: If the device flow fails
        """
        app = self._require_app()

        accounts = app.get_accounts()
        if accounts:
            result = app.acquire_token_silent(self.scopes, account=accounts[0])
            if result and "access_token" in result:
                self._save_cache()
                return result["access_token"]
            logger.debug("Silent token acquisition failed, falling back to device flow")

        flow = app.initiate_device_flow(scopes=self.scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to start device flow: {flow.get('error_description', flow.get('error', flow))}",
                service="graph",
            )

        self.on_device_code(flow["message"])

        result = app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            raise AuthenticationError(
                f"Device flow failed: {result.get('error_description', result.get('error', result))}",
                service="graph",
            )

        logger.info("Signed in as %s", self._username_from(result))
        self._save_cache()
        return result["access_token"]

    @staticmethod
    def _username_from(result: dict) -> str:
        return result.get("id_token_claims", {}).get("preferred_username", "unknown")

    @property
    def account_username(self) -> str | None:
        """Username of the cached account, if any."""
        app = self._require_app()
        accounts = app.get_accounts()
        if not accounts:
            return None
        return accounts[0].get("username")

    def _save_cache(self) -> None:
        """Write the token cache back to disk when it changed."""
        if self._cache is None or self.token_cache_path is None:
            return
        if not self._cache.has_state_changed:
            return
        self.token_cache_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_cache_path.write_text(self._cache.serialize(), encoding="utf-8")
        logger.debug("Token cache saved to %s", self.token_cache_path)

    def sign_out(self) -> bool:
        """
        Delete the persisted token cache.

        Returns:
            True if a cache file was removed
        """
        if self._app is not None:
            for account in self._app.get_accounts():
                self._app.remove_account(account)
        if self.token_cache_path and self.token_cache_path.exists():
            self.token_cache_path.unlink()
            logger.info("Deleted token cache %s", self.token_cache_path)
            return True
        return False
