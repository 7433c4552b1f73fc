"""Async client for the Invoicez REST API with optional bearer-token login."""

import asyncio
from typing import Any, cast
from urllib.parse import quote

import httpx
import structlog

from invoicez.config import get_settings

logger = structlog.get_logger(__name__)

JSON = dict[str, Any] | list[dict[str, Any]]


class InvoicezAPIError(Exception):
    """Base exception for Invoicez API errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(InvoicezAPIError):
    """Login rejected or bearer token refused."""

    pass


def encode_code(code: str) -> str:
    """URL-encode an invoice code, slashes included."""
    return quote(code, safe="")


class InvoicezClient:
    """Async client for the Invoicez API.

    Used by scripts and the ``check-api`` command. When an email and password
    are configured, entering the context manager logs in and every later
    request carries the bearer token.
    """

    def __init__(
        self,
        base_url: str | None = None,
        email: str | None = None,
        password: str | None = None,
        token: str | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self._email = email or settings.api_email
        if password is None and settings.api_password is not None:
            password = settings.api_password.get_secret_value()
        self._password = password
        self._timeout = settings.api_timeout
        self._max_retries = settings.api_max_retries

        self._token: str | None = token
        self.user: dict[str, Any] | None = None
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "InvoicezClient":
        if self._email and self._password and not self._token:
            try:
                await self.login()
            except InvoicezAPIError:
                await self.close()
                raise
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Authentication ===

    async def login(self) -> dict[str, Any]:
        """Exchange email and password for a bearer token."""
        if not self._email or not self._password:
            raise AuthenticationError("Email and password are required to log in")

        self._token = None
        data_raw = await self._request(
            "POST",
            "/api/auth/login",
            json={"email": self._email, "password": self._password},
        )
        if not isinstance(data_raw, dict) or "token" not in data_raw:
            raise InvoicezAPIError("Invalid login response format")
        data = cast(dict[str, Any], data_raw)
        self._token = data["token"]
        self.user = data.get("user")

        logger.info("logged_in", email=self._email, expires_in=data.get("expiresIn"))
        return data

    async def logout(self) -> None:
        """Forget the token; the server keeps no session state."""
        if self._token:
            await self.post("/api/auth/logout")
        self._token = None
        self.user = None

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    # === Generic Request Methods ===

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        retry_count: int = 0,
    ) -> JSON:
        """Send a request; connection errors are retried with exponential backoff."""
        client = await self._get_client()
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params or None,
                json=json,
                headers=self._get_headers(),
            )
        except httpx.RequestError as e:
            if retry_count < self._max_retries:
                logger.warning("request_retry", method=method, path=path, attempt=retry_count + 1)
                await asyncio.sleep(2**retry_count)
                return await self._request(method, path, params, json, retry_count + 1)
            raise InvoicezAPIError(f"Request failed: {e}") from e

        if response.status_code >= 400:
            try:
                error_detail = response.json() if response.content else {}
            except ValueError:
                error_detail = {"raw": response.text[:500] if response.text else "empty response"}
            message = (
                error_detail.get("error") if isinstance(error_detail, dict) else None
            ) or f"API error: {response.status_code}"
            error_cls = AuthenticationError if response.status_code == 401 else InvoicezAPIError
            raise error_cls(message, status_code=response.status_code, details=error_detail)

        return response.json() if response.content else {}

    async def get(self, path: str, params: dict[str, Any] | None = None) -> JSON:
        return await self._request("GET", path, params=params)

    async def post(
        self, path: str, json: Any = None, params: dict[str, Any] | None = None
    ) -> JSON:
        return await self._request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> JSON:
        return await self._request("PUT", path, json=json)

    async def patch(self, path: str, json: Any = None) -> JSON:
        return await self._request("PATCH", path, json=json)

    async def delete(self, path: str, json: Any = None) -> JSON:
        return await self._request("DELETE", path, json=json)

    @staticmethod
    def _as_dict(result: JSON) -> dict[str, Any]:
        return result if isinstance(result, dict) else {}

    @staticmethod
    def _as_list(result: JSON) -> list[dict[str, Any]]:
        return result if isinstance(result, list) else []

    async def health(self) -> dict[str, Any]:
        return self._as_dict(await self.get("/health"))

    # === Clients ===

    async def list_clients(self, search: str | None = None) -> list[dict[str, Any]]:
        return self._as_list(await self.get("/api/clients", params={"search": search}))

    async def get_client(self, client_id: int) -> dict[str, Any]:
        return self._as_dict(await self.get(f"/api/clients/{client_id}"))

    async def create_client(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.post("/api/clients", json=data))

    async def update_client(self, client_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.patch(f"/api/clients/{client_id}", json=data))

    async def delete_client(self, client_id: int) -> dict[str, Any]:
        return self._as_dict(await self.delete(f"/api/clients/{client_id}"))

    # === Staff ===

    async def list_staff(self, search: str | None = None) -> list[dict[str, Any]]:
        return self._as_list(await self.get("/api/staff", params={"search": search}))

    async def get_staff(self, staff_id: int) -> dict[str, Any]:
        return self._as_dict(await self.get(f"/api/staff/{staff_id}"))

    async def create_staff(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.post("/api/staff", json=data))

    async def update_staff(self, staff_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.patch(f"/api/staff/{staff_id}", json=data))

    async def delete_staff(self, staff_id: int) -> dict[str, Any]:
        return self._as_dict(await self.delete(f"/api/staff/{staff_id}"))

    # === Products ===

    async def list_products(
        self, q: str | None = None, category: str | None = None, type: str | None = None
    ) -> list[dict[str, Any]]:
        result = await self.get(
            "/api/products", params={"q": q, "category": category, "type": type}
        )
        return self._as_list(result)

    async def create_product(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.post("/api/products", json=data))

    async def update_product(self, product_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.patch(f"/api/products/{product_id}", json=data))

    async def delete_product(self, product_id: int) -> dict[str, Any]:
        return self._as_dict(await self.delete(f"/api/products/{product_id}"))

    # === Invoices ===

    async def list_invoices(
        self, q: str | None = None, status: str | None = None, type: str | None = None
    ) -> list[dict[str, Any]]:
        result = await self.get("/api/invoices", params={"q": q, "status": status, "type": type})
        return self._as_list(result)

    async def get_invoice(self, code: str) -> dict[str, Any]:
        """Summary, items, receipts and handovers of one invoice."""
        return self._as_dict(await self.get(f"/api/invoices/{encode_code(code)}"))

    async def create_invoice(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create an invoice (with ``items`` if given); returns ``InvoiceID``/``InvoiceCode``."""
        result = self._as_dict(await self.post("/api/invoices", json=data))
        return result.get("result") or {}

    async def update_invoice(self, code: str, data: dict[str, Any]) -> dict[str, Any]:
        result = self._as_dict(await self.patch(f"/api/invoices/{encode_code(code)}", json=data))
        return result.get("detail") or {}

    async def delete_invoice(self, code: str) -> dict[str, Any]:
        return self._as_dict(await self.delete(f"/api/invoices/{encode_code(code)}"))

    async def add_item(self, invoice_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.post(f"/api/invoices/{invoice_id}/items", json=data))

    async def update_item(self, item_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return self._as_dict(await self.patch(f"/api/invoice-items/{item_id}", json=data))

    async def delete_item(self, item_id: int) -> dict[str, Any]:
        return self._as_dict(await self.delete(f"/api/invoice-items/{item_id}"))

    # === Receipts ===

    async def list_receipts(self, code: str | None = None) -> list[dict[str, Any]]:
        return self._as_list(await self.get("/api/receipts", params={"code": code}))

    async def create_receipt(self, code: str, amount: float, **extra: Any) -> dict[str, Any]:
        body = {"invoiceCode": code, "amount": amount, **extra}
        return self._as_dict(await self.post("/api/receipts", json=body))

    async def update_receipt(self, receipt_id: int, amount: float, **extra: Any) -> dict[str, Any]:
        body = {"amount": amount, **extra}
        return self._as_dict(await self.patch(f"/api/receipts/{receipt_id}", json=body))

    async def delete_receipt(self, receipt_id: int) -> dict[str, Any]:
        return self._as_dict(await self.delete(f"/api/receipts/{receipt_id}"))

    # === Handover letters ===

    async def list_handovers(self, code: str) -> list[dict[str, Any]]:
        return self._as_list(await self.get(f"/api/handovers/by-code/{encode_code(code)}"))

    async def create_handover(
        self, code: str, staff_nim: str, description: str | None = None
    ) -> dict[str, Any]:
        body = {"invoiceCode": code, "staffNIM": staff_nim, "description": description}
        return self._as_dict(await self.post("/api/handovers", json=body))

    async def delete_handover(self, letter_id: int) -> dict[str, Any]:
        return self._as_dict(await self.delete(f"/api/handovers/{letter_id}"))
