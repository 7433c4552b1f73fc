"""Tests for the async Invoicez API client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from invoicez.client import (
    AuthenticationError,
    InvoicezAPIError,
    InvoicezClient,
    encode_code,
)


@pytest.fixture
def client():
    """Create an InvoicezClient instance."""
    return InvoicezClient(
        base_url="http://localhost:3001",
        email="admin@folks.id",
        password="s3cret",
    )


def json_response(status_code: int, payload) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.content = b"content"
    response.raise_for_status = MagicMock()
    return response


class TestInvoicezClientInit:
    """Tests for InvoicezClient initialization."""

    def test_init_with_explicit_params(self):
        client = InvoicezClient(base_url="http://custom:9000", email="x@y.z", password="pw")

        assert client.base_url == "http://custom:9000"
        assert client._email == "x@y.z"
        assert client._password == "pw"

    def test_init_strips_trailing_slash(self):
        client = InvoicezClient(base_url="http://localhost:3001/")

        assert client.base_url == "http://localhost:3001"

    def test_init_defaults_from_settings(self):
        client = InvoicezClient()

        assert client.base_url == "http://localhost:3001"
        assert client._max_retries == 3

    def test_encode_code_escapes_slashes(self):
        assert encode_code("FOLKS/SALE/10/001") == "FOLKS%2FSALE%2F10%2F001"


class TestAuthentication:
    """Tests for authentication methods."""

    @pytest.mark.asyncio
    async def test_login_success(self, client, mock_login_response):
        """Test successful login stores the token."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=json_response(200, mock_login_response))
            mock_get.return_value = mock_http

            result = await client.login()

            assert result["user"]["email"] == "admin@folks.id"
            assert client._token == "header.payload.signature"
            assert client._get_headers()["Authorization"] == "Bearer header.payload.signature"
            call_kwargs = mock_http.request.call_args.kwargs
            assert call_kwargs["method"] == "POST"
            assert call_kwargs["url"] == "/api/auth/login"
            assert call_kwargs["json"] == {"email": "admin@folks.id", "password": "s3cret"}

    @pytest.mark.asyncio
    async def test_login_invalid_credentials(self, client):
        """Test login with invalid credentials."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                return_value=json_response(401, {"error": "Invalid email or password"})
            )
            mock_get.return_value = mock_http

            with pytest.raises(AuthenticationError) as exc_info:
                await client.login()

            assert exc_info.value.status_code == 401
            assert str(exc_info.value) == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_login_server_error(self, client):
        """A 5xx on login surfaces as InvoicezAPIError, not an httpx exception."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=json_response(500, {"error": "boom"}))
            mock_get.return_value = mock_http

            with pytest.raises(InvoicezAPIError) as exc_info:
                await client.login()

            assert not isinstance(exc_info.value, AuthenticationError)
            assert exc_info.value.status_code == 500
            assert client._token is None

    @pytest.mark.asyncio
    async def test_login_retries_then_wraps_connection_errors(self, client):
        with (
            patch.object(client, "_get_client") as mock_get,
            patch("invoicez.client.asyncio.sleep", new=AsyncMock()) as mock_sleep,
        ):
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
            mock_get.return_value = mock_http

            with pytest.raises(InvoicezAPIError, match="Request failed"):
                await client.login()

            assert mock_http.request.await_count == client._max_retries + 1
            assert mock_sleep.await_count == client._max_retries

    @pytest.mark.asyncio
    async def test_login_without_credentials(self):
        client = InvoicezClient(base_url="http://localhost:3001")
        client._email = None
        client._password = None

        with pytest.raises(AuthenticationError, match="required"):
            await client.login()

    @pytest.mark.asyncio
    async def test_context_manager_logs_in(self, client, mock_login_response):
        """Test that context manager calls login when credentials are set."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=json_response(200, mock_login_response))
            mock_http.aclose = AsyncMock()
            mock_get.return_value = mock_http

            async with client as c:
                assert c._token == "header.payload.signature"

    @pytest.mark.asyncio
    async def test_context_manager_unreachable_server(self, client):
        """Entering the context against a dead server raises InvoicezAPIError."""
        with (
            patch(
                "httpx.AsyncClient.request",
                new=AsyncMock(side_effect=httpx.ConnectError("refused")),
            ),
            patch("invoicez.client.asyncio.sleep", new=AsyncMock()),
        ):
            with pytest.raises(InvoicezAPIError, match="Request failed"):
                async with client:
                    pass

    @pytest.mark.asyncio
    async def test_context_manager_skips_login_without_credentials(self):
        client = InvoicezClient(base_url="http://localhost:3001")
        client._email = None

        with patch.object(client, "login") as mock_login:
            async with client:
                pass

        mock_login.assert_not_called()


class TestAPIRequests:
    """Tests for API request methods."""

    @pytest.mark.asyncio
    async def test_get_invoice_encodes_code(self, client, mock_invoice_response):
        """Codes are sent URL-encoded in the path."""
        client._token = "test-token"

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=json_response(200, mock_invoice_response))
            mock_get.return_value = mock_http

            result = await client.get_invoice("FOLKS/SALE/10/001")

            assert result["summary"][0]["Balance"] == 75000.0
            kwargs = mock_http.request.call_args.kwargs
            assert kwargs["method"] == "GET"
            assert kwargs["url"] == "/api/invoices/FOLKS%2FSALE%2F10%2F001"
            assert kwargs["headers"]["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_create_invoice_returns_result(self, client):
        response = json_response(
            201, {"ok": True, "result": {"InvoiceID": 7, "InvoiceCode": "FOLKS/SALE/10/001"}}
        )

        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=response)
            mock_get.return_value = mock_http

            result = await client.create_invoice(
                {"invoiceType": "SALE", "invoiceDate": "2024-10-05", "items": []}
            )

            assert result == {"InvoiceID": 7, "InvoiceCode": "FOLKS/SALE/10/001"}

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self, client):
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(return_value=json_response(200, []))
            mock_get.return_value = mock_http

            await client.list_invoices(status="Sent")

            assert mock_http.request.call_args.kwargs["params"] == {"status": "Sent"}

    @pytest.mark.asyncio
    async def test_handles_api_error(self, client):
        """Error bodies surface as InvoicezAPIError with the server message."""
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                return_value=json_response(400, {"error": "Amount exceeds remaining balance"})
            )
            mock_get.return_value = mock_http

            with pytest.raises(InvoicezAPIError) as exc_info:
                await client.create_receipt("FOLKS/SALE/10/001", 999999)

            assert exc_info.value.status_code == 400
            assert str(exc_info.value) == "Amount exceeds remaining balance"

    @pytest.mark.asyncio
    async def test_401_raises_authentication_error(self, client):
        with patch.object(client, "_get_client") as mock_get:
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                return_value=json_response(401, {"error": "Missing bearer token"})
            )
            mock_get.return_value = mock_http

            with pytest.raises(AuthenticationError):
                await client.list_clients()

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, client):
        """Connection errors are retried with backoff before giving up."""
        with (
            patch.object(client, "_get_client") as mock_get,
            patch("invoicez.client.asyncio.sleep", new=AsyncMock()) as mock_sleep,
        ):
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(
                side_effect=[
                    httpx.ConnectError("refused"),
                    httpx.ConnectError("refused"),
                    json_response(200, {"ok": True}),
                ]
            )
            mock_get.return_value = mock_http

            result = await client.health()

            assert result == {"ok": True}
            assert mock_http.request.await_count == 3
            assert [c.args[0] for c in mock_sleep.await_args_list] == [1, 2]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, client):
        with (
            patch.object(client, "_get_client") as mock_get,
            patch("invoicez.client.asyncio.sleep", new=AsyncMock()),
        ):
            mock_http = AsyncMock()
            mock_http.request = AsyncMock(side_effect=httpx.ConnectError("refused"))
            mock_get.return_value = mock_http

            with pytest.raises(InvoicezAPIError, match="Request failed"):
                await client.health()

            assert mock_http.request.await_count == client._max_retries + 1
