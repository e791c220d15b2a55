"""
API Client for the admin authentication backend

Drives the challenge-response protocol from the admin's machine:
key setup, login, key rotation and audit queries.
"""
import os
import logging
import httpx
from dataclasses import dataclass
from typing import Optional, Dict, Any

from blogauth.client.key_provider import KeyPair, KeyPairProvider

logger = logging.getLogger(__name__)

# Configuration from environment
API_BASE_URL = os.getenv("BLOGAUTH_API_URL", "http://localhost:8000")


class AdminAuthClientError(Exception):
    """Server rejected a request, or it never reached the server."""

    def __init__(self, status_code: Optional[int], kind: str, message: str):
        self.status_code = status_code
        self.kind = kind
        self.message = message
        super().__init__(f"{kind} ({status_code}): {message}" if status_code else f"{kind}: {message}")


@dataclass(frozen=True)
class AdminSession:
    token: str
    user: Dict[str, Any]

    @property
    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class AdminAuthClient:
    """
    HTTP client for the admin authentication API.

    Pass `http` to reuse an existing httpx.Client (for example FastAPI's
    TestClient); otherwise one is created for `base_url`.
    """

    def __init__(
        self,
        base_url: str = None,
        provider: Optional[KeyPairProvider] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.provider = provider or KeyPairProvider()
        self._owns_http = http is None
        if http is None:
            self.base_url = (base_url or API_BASE_URL).rstrip('/')
            http = httpx.Client(base_url=self.base_url, timeout=timeout)
        else:
            self.base_url = str(http.base_url).rstrip('/')
        self.http = http
        logger.debug(f"AdminAuthClient initialized: {self.base_url}")

    def close(self):
        if self._owns_http:
            self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        json_data: Dict[str, Any] = None,
        params: Dict[str, Any] = None,
        headers: Dict[str, str] = None,
    ) -> Dict[str, Any]:
        """Make HTTP request to backend API."""
        try:
            response = self.http.request(method, endpoint, json=json_data, params=params, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"Request error: {e}")
            raise AdminAuthClientError(None, "request_failed", str(e)) from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            kind = body.get("error") or "http_error"
            message = body.get("message") or response.text
            logger.debug(f"API error {response.status_code} on {endpoint}: {kind}")
            raise AdminAuthClientError(response.status_code, kind, message)

        return response.json()

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    def register_key(self, email: str, public_key_pem: str) -> Dict[str, Any]:
        return self._request("POST", "/api/admin/register-key", {"email": email, "publicKey": public_key_pem})

    def request_challenge(self, email: str) -> Dict[str, Any]:
        """Returns {"challenge": ..., "userId": ...}."""
        return self._request("POST", "/api/admin/challenge", {"email": email})

    def verify(self, challenge: str, signature: str, user_id: str) -> AdminSession:
        body = self._request(
            "POST",
            "/api/admin/verify",
            {"challenge": challenge, "signature": signature, "userId": user_id},
        )
        return AdminSession(token=body["token"], user=body["user"])

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def setup_keys(self, email: str) -> KeyPair:
        """
        First-time setup: generate a key pair, register the public half, and
        keep the private half only once the server has accepted it.
        """
        pair = self.provider.generate_key_pair(persist=False)
        self.register_key(email, pair.public_key)
        self.provider.store_key_pair(pair)
        logger.info(f"Registered new admin key for {email}")
        return pair

    def login(self, email: str) -> AdminSession:
        """Challenge, sign with the stored key, verify."""
        issued = self.request_challenge(email)
        signature = self.provider.sign_challenge(issued["challenge"])
        session = self.verify(issued["challenge"], signature, issued["userId"])
        logger.info(f"Logged in as {session.user.get('email')}")
        return session

    def rotate_keys(self, email: str) -> KeyPair:
        """
        Replace the admin key. The rotation request is signed with the
        current key; the new private key is stored only after the server
        accepts the rotation, so a refused rotation leaves the old key usable.
        """
        issued = self.request_challenge(email)
        signature = self.provider.sign_challenge(issued["challenge"])
        new_pair = self.provider.generate_key_pair(persist=False)
        self._request(
            "POST",
            "/api/admin/rotate-key",
            {
                "email": email,
                "newPublicKey": new_pair.public_key,
                "signature": signature,
                "challenge": issued["challenge"],
            },
        )
        self.provider.store_key_pair(new_pair)
        logger.info(f"Rotated admin key for {email}")
        return new_pair

    # ------------------------------------------------------------------
    # Session endpoints
    # ------------------------------------------------------------------

    def me(self, session: AdminSession) -> Dict[str, Any]:
        return self._request("GET", "/api/admin/me", headers=session.auth_headers)

    def audit_events(self, session: AdminSession, **filters) -> Dict[str, Any]:
        """Filters: category, event, userId, ip, startDate, endDate, limit."""
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/api/admin/audit", params=params, headers=session.auth_headers)

    def audit_stats(self, session: AdminSession, window: str = "24h") -> Dict[str, Any]:
        return self._request(
            "GET", "/api/admin/audit/stats", params={"window": window}, headers=session.auth_headers
        )
