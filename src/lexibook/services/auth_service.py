"""Client-side account handling: obtains and keeps the bearer token."""
import json
import logging
from typing import Any, Dict, Optional

from lexibook.config import AUTH_TOKEN_KEY, AUTH_USER_KEY
from lexibook.errors import AuthenticationError, NotReadyError, Unauthenticated, ValidationError
from lexibook.services.api_client import ApiClient
from lexibook.storage import KeyValueStore, parse_json

logger = logging.getLogger(__name__)


class AuthClient:
    """Registers, logs in and remembers the current user in the local store."""

    def __init__(self, store: KeyValueStore, api: ApiClient):
        """Restore any saved login from the store."""
        self.store = store
        self.api = api
        self._token: Optional[str] = store.get_item(AUTH_TOKEN_KEY)
        self._user: Optional[Dict[str, Any]] = None

        raw_user = store.get_item(AUTH_USER_KEY)
        if raw_user is not None:
            result = parse_json(raw_user)
            if result.ok and isinstance(result.value, dict):
                self._user = result.value
            else:
                logger.warning("Ignoring malformed saved user: %s", result.error)

    async def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        """Create an account and log in with it."""
        response = await self.api.request(
            "POST",
            "/auth/register",
            json={"username": username, "email": email, "password": password},
        )
        return self._handle_auth_response(response, "Registration failed")

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Log in and remember the returned token."""
        response = await self.api.request(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
        )
        return self._handle_auth_response(response, "Login failed")

    def _handle_auth_response(self, response, default_message: str) -> Dict[str, Any]:
        if response.is_success:
            data = response.json()
            self._set_auth(data["token"], data["user"])
            logger.info("Authenticated as %s", data["user"].get("username"))
            return data

        message = self.api.error_message(response, default_message)
        if response.status_code == 400:
            raise ValidationError(message)
        if response.status_code == 503:
            raise NotReadyError(message)
        raise AuthenticationError(message, response.status_code)

    def logout(self) -> None:
        """Forget the token and user."""
        self._token = None
        self._user = None
        self.store.remove_item(AUTH_TOKEN_KEY)
        self.store.remove_item(AUTH_USER_KEY)

    async def get_current_user(self) -> Dict[str, Any]:
        """Fetch the user behind the token; a rejected token logs out."""
        headers = self.get_auth_headers()
        response = await self.api.request("GET", "/auth/me", headers=headers)

        if not response.is_success:
            if response.status_code in (401, 403):
                logger.info("Token rejected by server, logging out")
                self.logout()
            raise AuthenticationError(
                self.api.error_message(response, "Failed to fetch user information"),
                response.status_code,
            )

        self._user = response.json()["user"]
        self.store.set_item(AUTH_USER_KEY, json.dumps(self._user, ensure_ascii=False))
        return self._user

    def is_authenticated(self) -> bool:
        return bool(self._token) and bool(self._user)

    def get_token(self) -> Optional[str]:
        return self._token

    def get_user(self) -> Optional[Dict[str, Any]]:
        return self._user

    def _set_auth(self, token: str, user: Dict[str, Any]) -> None:
        self._token = token
        self._user = user
        self.store.set_many({
            AUTH_TOKEN_KEY: token,
            AUTH_USER_KEY: json.dumps(user, ensure_ascii=False),
        })

    def get_auth_headers(self) -> Dict[str, str]:
        """Headers for authenticated requests."""
        if not self._token:
            raise Unauthenticated()
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }
