"""
Supabase Auth session handling (email/password sign-in).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import keyring
import pendulum
import requests
from keyring.errors import KeyringError, PasswordDeleteError

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


KEYRING_SERVICE_NAME = "staffslots"

# Refresh a little before the token actually expires
EXPIRY_MARGIN_SECONDS = 60


class SupabaseAuthenticator:
    """
    Signs a provider in against Supabase Auth and keeps the session cached.

    Sessions are stored in the OS keyring. When no keyring backend works the
    session falls back to a plaintext file readable only by the user.
    """

    def __init__(
        self,
        auth_url: str,
        api_key: str,
        cache_file: Path | None = None,
        timeout: float = 30,
    ):
        """
        Initialize the authenticator.

        Args:
            auth_url: Supabase Auth base URL (``<project>/auth/v1``)
            api_key: Project anon key
            cache_file: Optional path to the fallback session file
            timeout: Request timeout in seconds
        """
        self.auth_url = auth_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.cache_file = cache_file or Path.home() / ".staffslots_session.json"
        self._key_identifier = self.auth_url
        self._keyring_supported = True
        self._cache_backend = "keyring"
        self._insecure_storage_warning: Optional[str] = None
        self.session = self._load_session()

    @property
    def cache_backend(self) -> str:
        """Return the active session backend (keyring or file)."""
        return self._cache_backend

    @property
    def insecure_storage_warning(self) -> Optional[str]:
        """Warning message set when the session falls back to plaintext storage."""
        return self._insecure_storage_warning

    def sign_in(self, email: str, password: str) -> str:
        """
        Sign in with email and password and cache the new session.

        Returns:
            Access token

        Raises:
            AuthenticationError: If sign-in fails
        """
        session = self._request_token("password", {"email": email, "password": password})
        self._store_session(session)
        return session["access_token"]

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token from the cached session, refreshing if needed.

        Raises:
            AuthenticationError: If no session exists or it cannot be refreshed
        """
        if not self.session:
            raise AuthenticationError("Not signed in. Run 'staffslots login' first.")

        if not force_refresh and not self._is_expired(self.session):
            return self.session["access_token"]

        refresh_token = self.session.get("refresh_token")
        if not refresh_token:
            raise AuthenticationError("Session expired. Run 'staffslots login' again.")

        session = self._request_token("refresh_token", {"refresh_token": refresh_token})
        self._store_session(session)
        return session["access_token"]

    def sign_out(self) -> None:
        """Forget the cached session."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        try:
            keyring.delete_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except PasswordDeleteError:
            logger.debug("No session stored in keyring")
        except KeyringError as exc:  # pragma: no cover - environment dependent
            logger.warning("Could not remove session from keyring: %s", exc)
        self.session = None

    def _request_token(self, grant_type: str, payload: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.auth_url}/token"

        try:
            response = requests.post(
                url,
                params={"grant_type": grant_type},
                headers={"apikey": self.api_key, "Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise AuthenticationError(f"Could not reach Supabase Auth: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400 or "access_token" not in data:
            message = data.get("error_description") or data.get("msg") or response.reason
            raise AuthenticationError(f"Authentication failed: {message}")

        expires_in = int(data.get("expires_in", 3600))
        return {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "expires_at": data.get("expires_at")
            or pendulum.now("UTC").add(seconds=expires_in).int_timestamp,
        }

    @staticmethod
    def _is_expired(session: Dict[str, Any]) -> bool:
        expires_at = session.get("expires_at")
        if not expires_at:
            return True
        return pendulum.now("UTC").int_timestamp >= int(expires_at) - EXPIRY_MARGIN_SECONDS

    def _load_session(self) -> Optional[Dict[str, Any]]:
        """Load the session from keyring or disk if it exists."""
        serialized = self._load_from_keyring()
        if serialized is None:
            serialized = self._load_from_file()

        if not serialized:
            return None

        try:
            session = json.loads(serialized)
        except ValueError as exc:
            logger.warning("Could not deserialize cached session: %s", exc)
            return None

        return session if isinstance(session, dict) and "access_token" in session else None

    def _load_from_keyring(self) -> Optional[str]:
        if not self._keyring_supported:
            return None

        try:
            return keyring.get_password(KEYRING_SERVICE_NAME, self._key_identifier)
        except KeyringError as exc:
            self._handle_keyring_failure(f"reading credentials failed: {exc}")
            return None

    def _load_from_file(self) -> Optional[str]:
        if self.cache_file.exists():
            try:
                with open(self.cache_file, "r", encoding="utf-8") as file_handle:
                    return file_handle.read()
            except OSError as exc:
                logger.warning("Could not load session file %s: %s", self.cache_file, exc)
        return None

    def _store_session(self, session: Dict[str, Any]) -> None:
        """Save the session to the configured backend."""
        self.session = session
        serialized = json.dumps(session)

        if self._keyring_supported and self._save_to_keyring(serialized):
            return

        self._save_to_file(serialized)

    def _save_to_keyring(self, serialized: str) -> bool:
        try:
            keyring.set_password(KEYRING_SERVICE_NAME, self._key_identifier, serialized)
            self._cache_backend = "keyring"
            return True
        except KeyringError as exc:
            self._handle_keyring_failure(f"writing credentials failed: {exc}")
            return False

    def _save_to_file(self, serialized: str) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save session to %s: %s", self.cache_file, exc)

    def _handle_keyring_failure(self, reason: str) -> None:
        if self._keyring_supported:
            logger.warning(
                "Secure credential storage unavailable (%s). Falling back to plaintext cache.",
                reason,
            )
        self._keyring_supported = False
        self._cache_backend = "file"
        if not self._insecure_storage_warning:
            self._insecure_storage_warning = (
                f"Secure credential storage unavailable ({reason}). "
                f"Falling back to plaintext cache at {self.cache_file}."
            )
