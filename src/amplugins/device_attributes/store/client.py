"""Access-management REST API client.

Wraps the admin REST endpoints needed to reconcile data stores:
- Session authentication
- Realm listing
- Identity-repository (data store) listing, reading and updating
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from amplugins.device_attributes.store.settings import AmSettings

logger = logging.getLogger(__name__)

AUTHENTICATE_API_VERSION = "resource=2.0, protocol=1.0"
RESOURCE_API_VERSION = "resource=1.0"


class AmError(Exception):
    """Base exception for access-management API errors."""

    def __init__(
        self, message: str, status_code: int | None = None, response: dict | None = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class AmAuthError(AmError):
    """Authentication failed or session rejected."""

    pass


class AmNotFoundError(AmError):
    """Resource not found."""

    pass


class AmConflictError(AmError):
    """Resource changed or already exists."""

    pass


@dataclass
class SessionToken:
    """Administrator SSO session."""

    token_id: str
    obtained_at: float


def realm_path(realm: str) -> str:
    """Convert a realm path to its REST URL segment.

    "/" -> "realms/root", "/a/b" -> "realms/root/realms/a/realms/b"
    """
    parts = [p for p in realm.split("/") if p]
    return "/".join(["realms/root"] + [f"realms/{quote(p, safe='')}" for p in parts])


class AmAdminClient:
    """Async client for the access-management admin REST API."""

    def __init__(
        self,
        settings: AmSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport
        self._token: SessionToken | None = None
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AmAdminClient":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=self._settings.timeout, transport=self._transport
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def settings(self) -> AmSettings:
        return self._settings

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    async def authenticate(self) -> None:
        """Authenticate the administrator against the root realm."""
        if not self._settings.has_admin_credentials:
            raise AmAuthError(
                "No credentials provided. Use --admin-user/--admin-password "
                "or AM_ADMIN_USER/AM_ADMIN_PASSWORD"
            )

        url = f"{self._settings.json_url}/realms/root/authenticate"
        headers = {
            "X-OpenAM-Username": self._settings.admin_user,
            "X-OpenAM-Password": self._settings.admin_password,
            "Accept-API-Version": AUTHENTICATE_API_VERSION,
            "Content-Type": "application/json",
        }

        logger.debug("Authenticating admin user: %s", self._settings.admin_user)

        try:
            response = await self._client.post(url, headers=headers)
        except httpx.HTTPError as e:
            raise AmError(f"Could not reach {self._settings.base_url}: {e}") from e

        if response.status_code != 200:
            raise AmAuthError(
                f"Admin authentication failed: {response.text}",
                status_code=response.status_code,
            )

        try:
            token_id = response.json().get("tokenId")
        except (ValueError, AttributeError) as e:
            raise AmAuthError(f"Unreadable authentication response: {e}") from e
        if not token_id:
            raise AmAuthError("Authentication response did not contain a session token")

        self._token = SessionToken(token_id=token_id, obtained_at=time.time())
        logger.info("Authenticated as admin user: %s", self._settings.admin_user)

    async def _ensure_token(self) -> str:
        if not self._token:
            await self.authenticate()
        return self._token.token_id

    async def _headers(self) -> dict[str, str]:
        """Get request headers with the session token."""
        token = await self._ensure_token()
        return {
            self._settings.cookie_name: token,
            "Accept-API-Version": RESOURCE_API_VERSION,
            "Content-Type": "application/json",
        }

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        expected_status: list[int] | None = None,
        **kwargs: Any,
    ) -> Any:
        url = f"{self._settings.json_url}{path}"
        response = await self._client.request(method, url, headers=await self._headers(), **kwargs)

        # Admin sessions idle out; re-authenticate once and replay
        if response.status_code == 401 and self._token:
            logger.info("Admin session rejected, re-authenticating")
            self._token = None
            response = await self._client.request(
                method, url, headers=await self._headers(), **kwargs
            )

        return self._handle_response(response, expected_status=expected_status)

    async def _get(self, path: str, params: dict[str, str] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def _post(
        self,
        path: str,
        json: list | dict | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        return await self._request(
            "POST", path, expected_status=[200, 201, 204], json=json, params=params
        )

    async def _put(self, path: str, json: dict | None = None) -> Any:
        return await self._request("PUT", path, expected_status=[200, 201, 204], json=json)

    def _handle_response(
        self,
        response: httpx.Response,
        expected_status: list[int] | None = None,
    ) -> Any:
        """Handle API response."""
        expected = expected_status or [200]

        if response.status_code == 404:
            raise AmNotFoundError(
                f"Resource not found: {response.request.url}",
                status_code=404,
            )

        if response.status_code in (409, 412):
            raise AmConflictError(
                f"Resource conflict: {response.text}",
                status_code=response.status_code,
            )

        if response.status_code in (401, 403):
            raise AmAuthError(
                "Session expired or not authorized",
                status_code=response.status_code,
            )

        if response.status_code not in expected:
            raise AmError(
                f"Unexpected response {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    # -------------------------------------------------------------------------
    # Realms
    # -------------------------------------------------------------------------

    async def list_realms(self) -> list[dict[str, Any]]:
        """List every realm in the deployment, the root realm included."""
        result = await self._get("/global-config/realms", params={"_queryFilter": "true"})
        return (result or {}).get("result", [])

    # -------------------------------------------------------------------------
    # Identity repositories (data stores)
    # -------------------------------------------------------------------------

    def _id_repo_path(self, realm: str, service: str) -> str:
        return f"/{realm_path(realm)}/realm-config/services/{service}"

    def _id_repo_item_path(self, realm: str, service: str, type_id: str, name: str) -> str:
        return f"{self._id_repo_path(realm, service)}/{quote(type_id, safe='')}/{quote(name, safe='')}"

    async def list_id_repositories(
        self, realm: str, service: str = "id-repositories"
    ) -> list[dict[str, Any]]:
        """List all data stores configured in a realm."""
        result = await self._post(
            self._id_repo_path(realm, service),
            params={"_action": "nextdescendents"},
        )
        return (result or {}).get("result", [])

    async def get_id_repository(
        self, realm: str, type_id: str, name: str, service: str = "id-repositories"
    ) -> dict[str, Any]:
        """Get a single data store configuration."""
        return await self._get(self._id_repo_item_path(realm, service, type_id, name))

    async def update_id_repository(
        self,
        realm: str,
        type_id: str,
        name: str,
        body: dict[str, Any],
        service: str = "id-repositories",
    ) -> dict[str, Any] | None:
        """Replace a data store configuration."""
        logger.debug("Updating data store %s (%s) in realm %s", name, type_id, realm)
        result = await self._put(self._id_repo_item_path(realm, service, type_id, name), json=body)
        logger.info("Updated data store %s in realm %s", name, realm)
        return result
