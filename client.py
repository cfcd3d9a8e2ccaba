"""
client.py — Python client for the Vanish API.

Encryption and decryption happen here, never on the server. The key only
ever lives in the URL fragment, which is never sent in a request.
"""

import logging
import os
from enum import Enum
from urllib.parse import urlsplit

import httpx
from dotenv import load_dotenv

from encryption import decrypt_payload, encrypt_payload
from errors import (
    ERRORS_BY_STATUS,
    DecryptionFailed,
    InvalidInput,
    LinkGone,
    TransportError,
    VanishError,
)

load_dotenv()

API_BASE = os.getenv("VANISH_API_URL", "http://localhost:8000")
SITE_BASE = os.getenv("VANISH_SITE_URL", "http://localhost:8000")
API_KEY = os.getenv("VANISH_API_KEY", "")
HTTP_TIMEOUT = float(os.getenv("VANISH_HTTP_TIMEOUT", "10.0"))

logger = logging.getLogger(__name__)


def parse_share_url(url_or_id: str):
    """Split a share URL into (id, key). A bare id yields an empty key."""
    if "#" not in url_or_id:
        return url_or_id.strip().rstrip("/").split("/")[-1], ""
    before, key = url_or_id.split("#", 1)
    path = urlsplit(before).path if "://" in before else before
    return path.rstrip("/").split("/")[-1], key


class RedemptionState(Enum):
    START = "start"
    FETCHING = "fetching"
    PASSWORD_REQUIRED = "password_required"
    DECRYPTING = "decrypting"
    REVEALED = "revealed"
    DECRYPTION_FAILED = "decryption_failed"
    GONE = "gone"
    TRANSPORT_ERROR = "transport_error"


class Redemption:
    """
    One attempt to read a link.

    fetch() calls the destructive consume endpoint at most once. reveal()
    may be retried with other passwords against the ciphertext already held.
    """

    def __init__(self, client: "VanishClient", link_id: str, key: str):
        self.client = client
        self.link_id = link_id
        self.key = key
        self.state = RedemptionState.START
        self.ciphertext = None
        self.views_remaining = None
        self.burned = None
        self.password_protected = False
        self.plaintext = None
        self.error = None

    def fetch(self) -> RedemptionState:
        if self.state is not RedemptionState.START:
            return self.state

        self.state = RedemptionState.FETCHING
        try:
            data = self.client.consume(self.link_id)
        except LinkGone as e:
            self.error = e
            self.state = RedemptionState.GONE
            return self.state
        except VanishError as e:
            self.error = e
            self.state = RedemptionState.TRANSPORT_ERROR
            return self.state

        try:
            self.ciphertext = data["ciphertext"]
            self.views_remaining = data["views_remaining"]
            self.burned = data["burned"]
            self.password_protected = bool(data.get("password_protected"))
        except (KeyError, TypeError, AttributeError) as e:
            self.error = TransportError(f"Malformed consume response: {e}")
            self.state = RedemptionState.TRANSPORT_ERROR
            return self.state

        if self.password_protected:
            self.state = RedemptionState.PASSWORD_REQUIRED
            return self.state
        self.state = RedemptionState.DECRYPTING
        return self.reveal()

    def reveal(self, password: str = None) -> RedemptionState:
        if self.state is RedemptionState.START:
            self.fetch()
            # An unflagged link that fails without a password still gets the one supplied.
            if password is None or self.state not in (
                RedemptionState.PASSWORD_REQUIRED,
                RedemptionState.DECRYPTION_FAILED,
            ):
                return self.state

        if self.state not in (
            RedemptionState.DECRYPTING,
            RedemptionState.PASSWORD_REQUIRED,
            RedemptionState.DECRYPTION_FAILED,
        ):
            return self.state
        if self.password_protected and password is None:
            self.state = RedemptionState.PASSWORD_REQUIRED
            return self.state

        self.state = RedemptionState.DECRYPTING
        try:
            self.plaintext = decrypt_payload(self.ciphertext, self.key, password)
        except DecryptionFailed as e:
            self.error = e
            self.state = RedemptionState.DECRYPTION_FAILED
            return self.state

        self.error = None
        self.state = RedemptionState.REVEALED
        return self.state


class VanishClient:

    def __init__(self, api_base: str = API_BASE, site_base: str = SITE_BASE,
                 api_key: str = API_KEY, http: httpx.Client = None):
        self.api_base = api_base.rstrip("/")
        self.site_base = site_base.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers
        self._http = http or httpx.Client(timeout=HTTP_TIMEOUT)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._http.request(
                method, f"{self.api_base}{path}", headers=self._headers, **kwargs
            )
        except httpx.HTTPError as e:
            logger.warning(f"Vanish API unreachable: {e}")
            raise TransportError(f"API unreachable: {e}") from e

        if response.is_success:
            try:
                return response.json()
            except ValueError as e:
                raise TransportError(f"Malformed response from API (HTTP {response.status_code})") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = body.get("detail") or body.get("error") or f"HTTP {response.status_code}"
        error_cls = ERRORS_BY_STATUS.get(response.status_code, TransportError)
        raise error_cls(detail)

    # ─── Raw API ──────────────────────────────────────────────────────────────

    def create(self, ciphertext: str, views: int = 1, ttl_seconds: int = 3600,
               password_protected: bool = False) -> dict:
        return self._request("POST", "/api/v1/links", json={
            "ciphertext": ciphertext,
            "views": views,
            "ttl_seconds": ttl_seconds,
            "password_protected": password_protected,
        })

    def consume(self, link_id: str) -> dict:
        return self._request("POST", f"/api/v1/links/{link_id}/consume", content=b"{}")

    def status(self, link_id: str) -> dict:
        return self._request("GET", f"/api/v1/links/{link_id}")

    def delete(self, link_id: str) -> dict:
        return self._request("DELETE", f"/api/v1/links/{link_id}")

    # ─── End-to-end ───────────────────────────────────────────────────────────

    def create_link(self, plaintext: str, views: int = 1, ttl_seconds: int = 3600,
                    password: str = None) -> dict:
        """Encrypt locally, store the ciphertext, return the share URL and API response."""
        ciphertext, key = encrypt_payload(plaintext, password)
        data = self.create(ciphertext, views, ttl_seconds, password_protected=password is not None)
        return {"url": f"{self.site_base}/v/{data['id']}#{key}", **data}

    def redemption(self, url: str) -> Redemption:
        link_id, key = parse_share_url(url)
        if not link_id:
            raise InvalidInput("Invalid link.")
        return Redemption(self, link_id, key)

    def redeem(self, url: str, password: str = None) -> str:
        """Consume and decrypt in one go. Raises the error that stopped it."""
        attempt = self.redemption(url)
        if not attempt.key:
            raise InvalidInput("Missing decryption key. The #key portion is required.")
        state = attempt.reveal(password)
        if state is RedemptionState.REVEALED:
            return attempt.plaintext
        if state is RedemptionState.PASSWORD_REQUIRED:
            raise DecryptionFailed("This link is password protected.")
        raise attempt.error
