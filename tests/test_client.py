"""
Tests for AsyncWalletCardsClient
"""
import json
import logging

import httpx
import pytest

from walletcards.client import USER_AGENT, AsyncWalletCardsClient, TimeoutConfig, create_client
from walletcards.config import WalletCardsSettings
from walletcards.exceptions import ConfigurationError
from walletcards.models import ApplyCardRequest, CardStatus, SubUserRequest


def _body(request: httpx.Request) -> dict:
    return json.loads(request.content)


class TestClientInitialization:
    """Tests for client initialization."""

    def test_raise_error_without_keys(self, base_url):
        """Should raise ValueError when a key is missing."""
        with pytest.raises(ValueError, match="keys are required"):
            AsyncWalletCardsClient(public_key="pk", secret_key="", base_url=base_url)

    def test_add_trailing_slash_to_base_url(self):
        """Should make the base URL end with a slash."""
        client = AsyncWalletCardsClient("pk", "sk", base_url="https://api.example.com/api")
        assert client.base_url == "https://api.example.com/api/"

    def test_default_timeouts(self):
        """Should use 15s connect/write and 30s read timeouts."""
        timeout = TimeoutConfig().to_httpx()

        assert timeout.connect == 15.0
        assert timeout.write == 15.0
        assert timeout.read == 30.0

    def test_create_client_from_settings(self):
        """Should build a client from settings."""
        settings = WalletCardsSettings(
            _env_file=None,
            api_base_url="https://api.example.com/v1",
            public_key="pk_live",
            secret_key="sk_live",
            read_timeout=45,
        )

        client = create_client(settings)

        assert client.base_url == "https://api.example.com/v1/"
        assert client.timeout.read == 45

    def test_create_client_without_credentials(self):
        """Should raise ConfigurationError when keys are not configured."""
        settings = WalletCardsSettings(_env_file=None, public_key="", secret_key="")

        with pytest.raises(ConfigurationError):
            create_client(settings)


class TestCards:
    """Tests for card endpoints."""

    async def test_list_cards(self, client, base_url, user_email, httpx_mock, card_list_payload):
        """Should POST the email with credential headers and parse cards."""
        httpx_mock.add_response(
            url=f"{base_url}getsubuseralldigital",
            method="POST",
            json=card_list_payload,
        )

        response = await client.list_cards(user_email)

        assert len(response.data) == 2
        request = httpx_mock.get_request()
        assert request.headers["publickey"] == "pk_test"
        assert request.headers["secretkey"] == "sk_test"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["user-agent"] == USER_AGENT
        assert _body(request) == {"useremail": user_email}

    async def test_get_card_detail(self, client, base_url, user_email, httpx_mock, card_detail_payload):
        """Should send the card id and parse the detail."""
        httpx_mock.add_response(
            url=f"{base_url}getsubuserdigitalcard",
            method="POST",
            json=card_detail_payload,
        )

        response = await client.get_card_detail(user_email, "card_123")

        assert response.data.status is CardStatus.ACTIVE
        assert _body(httpx_mock.get_request()) == {"useremail": user_email, "cardid": "card_123"}

    async def test_block_and_unblock(self, client, base_url, user_email, httpx_mock):
        """Should hit the block and unblock endpoints."""
        httpx_mock.add_response(
            url=f"{base_url}subuserblockdigital",
            method="POST",
            json={"code": 200, "status": "success", "message": "Card blocked"},
        )
        httpx_mock.add_response(
            url=f"{base_url}subuserunblockdigital",
            method="POST",
            json={"code": 200, "status": "success", "message": "Card unblocked"},
        )

        blocked = await client.block_card(user_email, "card_123")
        unblocked = await client.unblock_card(user_email, "card_123")

        assert blocked.message == "Card blocked"
        assert unblocked.message == "Card unblocked"

    async def test_apply_for_card_uses_wire_names(self, client, base_url, user_email, httpx_mock):
        """Should send the application with the backend's field names."""
        httpx_mock.add_response(
            url=f"{base_url}digitalnewsubusercard",
            method="POST",
            json={"status": "success", "message": "ok", "depositaddress": "0xabc", "subuserfee": 20},
        )
        request = ApplyCardRequest(
            useremail=user_email,
            firstname="Jane",
            lastname="Doe",
            dob="1990-05-17",
            address1="1 High Street",
            postalcode="SW1A 1AA",
            city="London",
            country="GB",
            countrycode="44",
            phone="7700900123",
        )

        response = await client.apply_for_card(request)

        assert response.deposit_address == "0xabc"
        body = _body(httpx_mock.get_request())
        assert body["firstname"] == "Jane"
        assert body["countrycode"] == "44"
        assert body["state"] == ""

    async def test_add_sub_user_redacts_pin(self, client, base_url, user_email, httpx_mock, caplog):
        """Should never log the PIN."""
        caplog.set_level(logging.DEBUG, logger="walletcards")
        httpx_mock.add_response(
            url=f"{base_url}subuseradd",
            method="POST",
            json={"status": "success", "message": "Sub user added"},
        )

        response = await client.add_sub_user(
            SubUserRequest(useremail=user_email, pin="zq81xk", firebaseuid="uid-1")
        )

        assert response.is_success
        assert _body(httpx_mock.get_request())["pin"] == "zq81xk"
        assert "zq81xk" not in caplog.text
        assert "***" in caplog.text


class TestFailuresCollapseToNone:
    """Tests for the no-raise failure contract."""

    async def test_timeout(self, client, base_url, user_email, httpx_mock):
        """Should return None on a timeout."""
        httpx_mock.add_exception(
            httpx.ReadTimeout("timed out"),
            url=f"{base_url}getsubuseralldigital",
        )

        assert await client.list_cards(user_email) is None

    async def test_connection_error(self, client, base_url, user_email, httpx_mock):
        """Should return None when the backend is unreachable."""
        httpx_mock.add_exception(
            httpx.ConnectError("refused"),
            url=f"{base_url}getsubuserdigitalcard",
        )

        assert await client.get_card_detail(user_email, "card_123") is None

    async def test_malformed_body(self, client, base_url, user_email, httpx_mock):
        """Should return None for a body that is not JSON."""
        httpx_mock.add_response(
            url=f"{base_url}getsubuseralldigital",
            method="POST",
            content=b"<html>oops</html>",
        )

        assert await client.list_cards(user_email) is None

    async def test_empty_body(self, client, base_url, user_email, httpx_mock):
        """Should return None for an empty body."""
        httpx_mock.add_response(
            url=f"{base_url}subuserblockdigital",
            method="POST",
            content=b"",
        )

        assert await client.block_card(user_email, "card_123") is None

    async def test_schema_mismatch(self, client, base_url, user_email, httpx_mock):
        """Should return None when required fields are missing."""
        httpx_mock.add_response(
            url=f"{base_url}getsubuseralldigital",
            method="POST",
            json={"status": "success"},
        )

        assert await client.list_cards(user_email) is None

    async def test_status_code_not_checked(self, client, base_url, user_email, httpx_mock):
        """Should parse the body of a non-2xx answer."""
        httpx_mock.add_response(
            url=f"{base_url}subusercheck3ds",
            method="POST",
            status_code=422,
            json={"status": "error", "code": 422, "message": "No pending request"},
        )

        response = await client.check_3ds(user_email, "card_123")

        assert response.code == "422"


class TestApprove3DS:
    """Tests for 3DS approval."""

    async def test_approved_on_2xx(self, client, base_url, user_email, httpx_mock):
        """Should report success for a 2xx answer and send the event id."""
        httpx_mock.add_response(
            url=f"{base_url}subuserapprove3ds",
            method="POST",
            json={"status": "success"},
        )

        assert await client.approve_3ds(user_email, "card_123", "evt_42") is True
        assert _body(httpx_mock.get_request()) == {
            "useremail": user_email,
            "cardid": "card_123",
            "eventId": "evt_42",
        }

    async def test_not_approved_on_error_status(self, client, base_url, user_email, httpx_mock):
        """Should report failure for a non-2xx answer."""
        httpx_mock.add_response(
            url=f"{base_url}subuserapprove3ds",
            method="POST",
            status_code=500,
            json={"status": "error"},
        )

        assert await client.approve_3ds(user_email, "card_123", "evt_42") is False

    async def test_not_approved_on_transport_error(self, client, base_url, user_email, httpx_mock):
        """Should report failure when the request never completes."""
        httpx_mock.add_exception(
            httpx.ConnectTimeout("timed out"),
            url=f"{base_url}subuserapprove3ds",
        )

        assert await client.approve_3ds(user_email, "card_123", "evt_42") is False


class TestContextManager:
    """Tests for async context manager."""

    async def test_use_as_context_manager(self, base_url, user_email, httpx_mock, card_list_payload):
        """Should close the HTTP client on exit."""
        httpx_mock.add_response(
            url=f"{base_url}getsubuseralldigital",
            method="POST",
            json=card_list_payload,
        )

        async with AsyncWalletCardsClient("pk", "sk", base_url=base_url) as client:
            await client.list_cards(user_email)
            assert client._client is not None

        assert client._client is None
