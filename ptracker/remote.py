"""Hosted backend: Supabase REST tables and OAuth identity."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import requests

from ptracker.auth import AuthSession
from ptracker.errors import NotAuthenticated, RemoteCallFailed
from ptracker.models import User
from ptracker.store import TABLE_COLUMNS, TableStore, to_wire

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 20


def extract_error(response: requests.Response) -> str:
    """Best-effort error message from a Supabase response."""
    try:
        body = response.json()
        if isinstance(body, dict):
            if isinstance(body.get("error"), dict):
                msg = body["error"].get("message")
                if msg:
                    return f"HTTP {response.status_code}: {msg}"
            msg = body.get("message") or body.get("msg") or body.get("error_description") or body.get("error")
            if msg:
                return f"HTTP {response.status_code}: {msg}"
    except ValueError:
        pass
    text = (response.text or "").strip()
    if text:
        return f"HTTP {response.status_code}: {text[:300]}"
    return f"HTTP {response.status_code}: request failed"


class SupabaseTableStore(TableStore):
    """Table store over PostgREST (``/rest/v1``).

    Row-level security on the server scopes rows to the bearer token's user;
    listing still filters on ``user_id`` explicitly.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        auth: AuthSession,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = supabase_url.rstrip("/")
        self.supabase_key = supabase_key
        self.auth = auth
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def _headers(self, *, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.supabase_key,
            "Authorization": f"Bearer {self.auth.access_token or self.supabase_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _url(self, table: str) -> str:
        if table not in TABLE_COLUMNS:
            raise RemoteCallFailed(f"Unknown table: {table}")
        return f"{self.base_url}/rest/v1/{table}"

    def _request(self, method: str, table: str, **kwargs: Any) -> requests.Response:
        url = self._url(table)
        try:
            response = self.session.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise RemoteCallFailed(f"{method} {table} failed: {e}") from e
        if response.status_code >= 300:
            raise RemoteCallFailed(extract_error(response))
        return response

    @staticmethod
    def _rows(response: requests.Response) -> list[dict[str, Any]]:
        body = response.json()
        if not isinstance(body, list):
            raise RemoteCallFailed("Unexpected response format while loading rows.")
        return body

    def select(
        self,
        table: str,
        *,
        user_id: str,
        order: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        params = {"select": "*", "user_id": f"eq.{user_id}"}
        if order is not None:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        response = self._request("GET", table, headers=self._headers(), params=params)
        return self._rows(response)

    def get(self, table: str, row_id: str) -> dict[str, Any] | None:
        params = {"select": "*", "id": f"eq.{row_id}", "limit": "1"}
        response = self._request("GET", table, headers=self._headers(), params=params)
        rows = self._rows(response)
        return rows[0] if rows else None

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        payload = {key: to_wire(value) for key, value in row.items()}
        response = self._request(
            "POST",
            table,
            headers=self._headers(prefer="return=representation"),
            json=payload,
        )
        rows = self._rows(response)
        if not rows:
            raise RemoteCallFailed(f"Insert into {table} returned no row")
        return rows[0]

    def update(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        payload = {key: to_wire(value) for key, value in fields.items()}
        response = self._request(
            "PATCH",
            table,
            headers=self._headers(prefer="return=representation"),
            params={"id": f"eq.{row_id}"},
            json=payload,
        )
        rows = self._rows(response)
        if not rows:
            raise RemoteCallFailed(f"No {table} row with id {row_id}")
        return rows[0]

    def delete(self, table: str, row_id: str) -> None:
        self._request("DELETE", table, headers=self._headers(), params={"id": f"eq.{row_id}"})


class SupabaseIdentityProvider:
    """OAuth sign-in through Supabase Auth (``/auth/v1``)."""

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        site_url: str,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = supabase_url.rstrip("/")
        self.supabase_key = supabase_key
        self.site_url = site_url.rstrip("/")
        self.session = session or requests.Session()

    def authorize_url(self, provider: str = "google") -> str:
        """URL that starts the provider's consent flow.

        After consent the browser lands on ``{site_url}/auth/callback`` with
        the access token in the fragment.
        """
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": f"{self.site_url}/auth/callback",
                "access_type": "offline",
                "prompt": "consent",
            }
        )
        return f"{self.base_url}/auth/v1/authorize?{query}"

    def user_from_token(self, access_token: str) -> User:
        """Resolve an access token to the user it belongs to."""
        access_token = access_token.strip()
        if not access_token:
            raise NotAuthenticated()
        try:
            response = self.session.get(
                f"{self.base_url}/auth/v1/user",
                headers={"apikey": self.supabase_key, "Authorization": f"Bearer {access_token}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise RemoteCallFailed(f"User lookup failed: {e}") from e
        if response.status_code in (401, 403):
            raise NotAuthenticated()
        if response.status_code >= 300:
            raise RemoteCallFailed(extract_error(response))

        body = response.json()
        metadata = body.get("user_metadata") or {}
        return User(
            id=body["id"],
            email=body.get("email") or "",
            display_name=metadata.get("full_name") or metadata.get("name") or "",
            avatar_url=metadata.get("avatar_url"),
        )

    def sign_out(self, access_token: str | None) -> None:
        """Revoke the token server-side. Failures are logged, not raised."""
        if not access_token:
            return
        try:
            response = self.session.post(
                f"{self.base_url}/auth/v1/logout",
                headers={"apikey": self.supabase_key, "Authorization": f"Bearer {access_token}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.warning("Sign-out request failed: %s", e)
            return
        if response.status_code >= 300:
            logger.warning("Sign-out rejected: %s", extract_error(response))
