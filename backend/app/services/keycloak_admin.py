"""Realm provisioning through the Keycloak admin REST API."""
from __future__ import annotations

import logging

import httpx

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

REALM_ROLES = (
    ("admin", "Administrator with full access to tenant management and configuration"),
    ("teacher", "Teacher/instructor with access to course management and student data"),
    ("student", "Student with access to own timetable, exams, and personal data"),
    ("support", "Support staff with read-only access to help users"),
)


class IdentityProviderError(RuntimeError):
    pass


def realm_id_for_slug(slug: str) -> str:
    return f"{slug}-realm"


class KeycloakAdminClient:
    def __init__(self, settings: Settings | None = None, *, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings or get_settings()
        self.base_url = self.settings.keycloak_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=self.settings.identity_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "KeycloakAdminClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _admin_token(self) -> str:
        response = self._request(
            "POST",
            f"/realms/{self.settings.keycloak_master_realm}/protocol/openid-connect/token",
            data={
                "grant_type": "password",
                "client_id": "admin-cli",
                "username": self.settings.keycloak_admin_user,
                "password": self.settings.keycloak_admin_password,
            },
        )
        token = response.json().get("access_token")
        if not token:
            raise IdentityProviderError("Admin login did not return an access token")
        return token

    def _request(self, method: str, path: str, *, token: str | None = None, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            raise IdentityProviderError(f"{method} {path} returned {response.status_code}")
        return response

    def create_tenant_realm(self, *, slug: str, realm_id: str, display_name: str, client_id: str) -> None:
        """Create realm, client and roles; the realm is removed again if a later step fails."""
        token = self._admin_token()
        self._request(
            "POST",
            "/admin/realms",
            token=token,
            json={
                "realm": realm_id,
                "enabled": True,
                "displayName": display_name,
                "registrationAllowed": True,
                "registrationEmailAsUsername": True,
                "loginWithEmailAllowed": True,
                "resetPasswordAllowed": True,
                "verifyEmail": True,
                "editUsernameAllowed": False,
                "accessTokenLifespan": 300,
                "ssoSessionIdleTimeout": 1800,
                "ssoSessionMaxLifespan": 36000,
                "offlineSessionIdleTimeout": 2592000,
                "accessTokenLifespanForImplicitFlow": 900,
            },
        )
        logger.info("Created Keycloak realm %s", realm_id)

        try:
            self._create_client(token, slug=slug, realm_id=realm_id, client_id=client_id)
            self._create_roles(token, realm_id)
        except IdentityProviderError:
            self._delete_realm(token, realm_id)
            raise

    def _create_client(self, token: str, *, slug: str, realm_id: str, client_id: str) -> None:
        origins = [f"https://{slug}.nora-nak.de", "http://localhost:3000", "http://localhost:5173"]
        self._request(
            "POST",
            f"/admin/realms/{realm_id}/clients",
            token=token,
            json={
                "clientId": client_id,
                "name": "NORA Backend Client",
                "description": "Client for NORA backend API authentication",
                "enabled": True,
                "publicClient": False,
                "directAccessGrantsEnabled": True,
                "standardFlowEnabled": True,
                "implicitFlowEnabled": False,
                "serviceAccountsEnabled": False,
                "redirectUris": [f"{origin}/*" for origin in origins],
                "webOrigins": origins,
                "fullScopeAllowed": True,
            },
        )
        logger.info("Created client %s in realm %s", client_id, realm_id)

    def _create_roles(self, token: str, realm_id: str) -> None:
        for name, description in REALM_ROLES:
            try:
                self._request(
                    "POST",
                    f"/admin/realms/{realm_id}/roles",
                    token=token,
                    json={"name": name, "description": description},
                )
            except IdentityProviderError as exc:
                logger.warning("Failed to create role %s in realm %s: %s", name, realm_id, exc)

    def _delete_realm(self, token: str, realm_id: str) -> None:
        try:
            self._request("DELETE", f"/admin/realms/{realm_id}", token=token)
        except IdentityProviderError:
            logger.exception("Failed to delete Keycloak realm %s", realm_id)
            return
        logger.info("Deleted Keycloak realm %s", realm_id)

    def delete_tenant_realm(self, realm_id: str) -> None:
        self._delete_realm(self._admin_token(), realm_id)
