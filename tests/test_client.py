"""
Client-side redemption protocol against the real API app.
"""

import httpx
import pytest

from client import Redemption, RedemptionState, VanishClient, parse_share_url
from encryption import EncryptionManager
import client as client_module
from errors import DecryptionFailed, InvalidInput, LinkExpired, LinkNotFound, TransportError


@pytest.fixture
def fast_kdf(monkeypatch):
    manager = EncryptionManager(iterations=1000)
    monkeypatch.setattr(client_module, "encrypt_payload", manager.encrypt)
    monkeypatch.setattr(client_module, "decrypt_payload", manager.decrypt)


@pytest.fixture
def vanish(api, fast_kdf):
    return VanishClient(api_base="http://testserver", site_base="https://vanish.test", http=api)


class CountingClient(VanishClient):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.consume_calls = 0

    def consume(self, link_id):
        self.consume_calls += 1
        return super().consume(link_id)


@pytest.mark.parametrize("url,expected", [
    ("https://vanish.test/v/abc123XYZ789#a2V5+/==", ("abc123XYZ789", "a2V5+/==")),
    ("https://vanish.test/v/abc123XYZ789/#key", ("abc123XYZ789", "key")),
    ("abc123XYZ789#key", ("abc123XYZ789", "key")),
    ("abc123XYZ789", ("abc123XYZ789", "")),
])
def test_parse_share_url(url, expected):
    assert parse_share_url(url) == expected


def test_create_link_never_sends_key(vanish, store):
    result = vanish.create_link("top secret", views=2, ttl_seconds=600)

    link_id, key = parse_share_url(result["url"])
    assert result["url"].startswith("https://vanish.test/v/")
    assert link_id == result["id"]
    stored = store.fetch(link_id)
    assert key not in stored.ciphertext
    assert "top secret" not in stored.ciphertext
    assert stored.views_total == 2


def test_redeem_round_trip(vanish):
    url = vanish.create_link("hello there")["url"]
    assert vanish.redeem(url) == "hello there"
    with pytest.raises(LinkExpired):
        vanish.redeem(url)
    with pytest.raises(LinkNotFound):
        vanish.redeem(url)


def test_redeem_with_password(vanish):
    url = vanish.create_link("guarded", password="pw")["url"]
    assert vanish.redeem(url, password="pw") == "guarded"


def test_redeem_requires_key(vanish):
    url = vanish.create_link("x")["url"]
    link_id, _ = parse_share_url(url)
    with pytest.raises(InvalidInput):
        vanish.redeem(link_id)
    # Nothing was consumed
    assert vanish.status(link_id)["views_remaining"] == 1


def test_unprotected_link_is_revealed_in_one_step(vanish):
    url = vanish.create_link("plain", views=3)["url"]
    attempt = vanish.redemption(url)

    assert attempt.fetch() is RedemptionState.REVEALED
    assert attempt.plaintext == "plain"
    assert attempt.views_remaining == 2
    assert attempt.burned is False


def test_wrong_password_retries_locally(api, fast_kdf):
    counting = CountingClient(api_base="http://testserver", http=api)
    url = counting.create_link("retry me", password="right")["url"]
    attempt = counting.redemption(url)

    assert attempt.fetch() is RedemptionState.PASSWORD_REQUIRED
    assert attempt.reveal() is RedemptionState.PASSWORD_REQUIRED
    assert attempt.reveal("wrong") is RedemptionState.DECRYPTION_FAILED
    assert isinstance(attempt.error, DecryptionFailed)
    assert attempt.reveal("right") is RedemptionState.REVEALED
    assert attempt.plaintext == "retry me"
    assert counting.consume_calls == 1

    # A second fetch on the same attempt does not hit the server again
    assert attempt.fetch() is RedemptionState.REVEALED
    assert counting.consume_calls == 1


def test_wrong_key_is_decryption_failed(vanish):
    url = vanish.create_link("k")["url"]
    link_id, _ = parse_share_url(url)
    _, other_key = EncryptionManager(iterations=1000).encrypt("other")

    attempt = Redemption(vanish, link_id, other_key)
    assert attempt.fetch() is RedemptionState.DECRYPTION_FAILED
    assert attempt.burned is True


def test_gone_state(vanish):
    attempt = vanish.redemption("https://vanish.test/v/missing#a2V5")
    assert attempt.fetch() is RedemptionState.GONE
    assert isinstance(attempt.error, LinkNotFound)


def test_transport_error_state(fast_kdf):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    offline = VanishClient(
        api_base="http://offline", http=httpx.Client(transport=httpx.MockTransport(refuse))
    )
    attempt = offline.redemption("http://offline/v/abc#a2V5")
    assert attempt.fetch() is RedemptionState.TRANSPORT_ERROR
    assert isinstance(attempt.error, TransportError)
    assert attempt.error.retryable


def test_bearer_header_sent():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"id": "x", "views_remaining": 1, "views_total": 1})

    c = VanishClient(api_base="http://api", api_key="tok",
                     http=httpx.Client(transport=httpx.MockTransport(handler)))
    c.status("x")
    assert seen["auth"] == "Bearer tok"


def test_status_and_delete(vanish):
    link_id = vanish.create_link("bye", views=4)["id"]
    assert vanish.status(link_id)["views_total"] == 4
    assert vanish.delete(link_id) == {"success": True}
    with pytest.raises(LinkNotFound):
        vanish.status(link_id)


def test_non_json_success_is_transport_error(fast_kdf):
    def handler(request):
        return httpx.Response(200, text="<html>gateway login</html>")

    proxied = VanishClient(
        api_base="http://proxied", http=httpx.Client(transport=httpx.MockTransport(handler))
    )
    with pytest.raises(TransportError):
        proxied.status("abc")

    attempt = proxied.redemption("http://proxied/v/abc#a2V5")
    assert attempt.fetch() is RedemptionState.TRANSPORT_ERROR
    assert isinstance(attempt.error, TransportError)


def test_consume_body_missing_fields_is_transport_error(fast_kdf):
    def handler(request):
        return httpx.Response(200, json={"unexpected": True})

    odd = VanishClient(
        api_base="http://odd", http=httpx.Client(transport=httpx.MockTransport(handler))
    )
    attempt = odd.redemption("http://odd/v/abc#a2V5")
    assert attempt.fetch() is RedemptionState.TRANSPORT_ERROR


def test_supplied_password_used_when_flag_missing(api, fast_kdf):
    counting = CountingClient(api_base="http://testserver", http=api)
    # Raw API caller encrypted with a password but did not set the hint
    ciphertext, key = client_module.encrypt_payload("mislabelled", "pw")
    link_id = counting.create(ciphertext, views=1, password_protected=False)["id"]
    url = f"https://vanish.test/v/{link_id}#{key}"

    assert counting.redeem(url, password="pw") == "mislabelled"
    assert counting.consume_calls == 1
