"""
REST Remote Store Implementation

Talks to a PostgREST-style hosted backend (``rest/v1/<kind>`` tables
filtered by ``user_email``) plus its GoTrue-style auth endpoints
(``auth/v1/token``, ``auth/v1/signup``).

DESIGN DECISION: List queries are retried on transport failures with
bounded exponential backoff. Writes are never retried: the session
controller has already committed the change locally and reports a
failed write as an event instead.

Row layout (both kinds):
    id, user_email, title, date (ISO-8601), amount (number), category,
    currency, note, photo_url; expenses add ``type`` (recurrence).
Photos never leave the device; ``photo_url`` is always null.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from spendwise.config import RemoteSettings, get_settings
from spendwise.errors import (
    AuthenticationFailedError,
    ConfigurationError,
    RemoteUnavailableError,
    ServerError,
    is_transport_failure,
)
from spendwise.log import get_logger
from spendwise.models.records import (
    Currency,
    Expense,
    ExpenseCategory,
    ExpenseType,
    FinancialRecord,
    Income,
    IncomeCategory,
    RecordKind,
)
from spendwise.services.remote.interface import AuthSession, RemoteStoreInterface


logger = get_logger(__name__)

AUTH_REJECTED_STATUSES = {400, 401, 403}


class RestRemoteStore(RemoteStoreInterface):
    """
    Remote Store over HTTP.

    A fresh ``httpx.AsyncClient`` is opened per call; ``transport`` lets
    tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        settings: Optional[RemoteSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or get_settings().remote
        self._transport = transport
        self._access_token: Optional[str] = None

    # -- Plumbing --------------------------------------------------------------

    def set_access_token(self, token: Optional[str]) -> None:
        self._access_token = token

    @property
    def has_access_token(self) -> bool:
        return self._access_token is not None

    def _url(self, path: str) -> str:
        base = self._settings.base_url.strip()
        if not base:
            raise ConfigurationError("Remote base URL is not configured")
        try:
            parsed = httpx.URL(base)
        except (httpx.InvalidURL, TypeError) as e:
            raise ConfigurationError(f"Malformed remote base URL: {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ConfigurationError("Remote base URL must be an absolute http(s) URL")
        return f"{base.rstrip('/')}/{path}"

    def _headers(self) -> dict[str, str]:
        anon_key = self._settings.anon_key
        return {
            "apikey": anon_key,
            "Authorization": f"Bearer {self._access_token or anon_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
    ) -> httpx.Response:
        url = self._url(path)
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                return await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            raise RemoteUnavailableError(
                f"Remote {method} {path} timed out after {self._settings.timeout_seconds}s"
            ) from e
        except httpx.RequestError as e:
            raise RemoteUnavailableError(f"Remote {method} {path} failed: {e}") from e

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
    ) -> httpx.Response:
        response = await self._send(method, path, params=params, json=json)
        if not response.is_success:
            raise ServerError(
                f"Remote {method} {path} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        return response

    # -- Records ---------------------------------------------------------------

    async def fetch(self, kind: RecordKind, identity: str) -> list[FinancialRecord]:
        params = [
            ("user_email", f"eq.{identity}"),
            ("select", "*"),
            ("order", "date.desc"),
        ]
        if self._settings.soft_delete:
            params.append(("is_deleted", "eq.false"))

        response = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.fetch_retry_attempts),
            wait=wait_exponential(multiplier=0.5, max=4),
            retry=retry_if_exception(is_transport_failure),
            reraise=True,
        ):
            with attempt:
                response = await self._request("GET", f"rest/v1/{kind.value}", params=params)

        try:
            rows = response.json()
        except ValueError as e:
            raise ServerError(f"Remote returned invalid JSON for {kind.value}: {e}") from e
        if not isinstance(rows, list):
            raise ServerError(f"Remote returned a non-list payload for {kind.value}")

        records = []
        for row in rows:
            record = row_to_record(kind, row)
            if record is not None:
                records.append(record)

        records.sort(key=lambda r: r.occurred_at, reverse=True)
        logger.debug("remote_fetch_complete", kind=kind.value, count=len(records), skipped=len(rows) - len(records))
        return records

    async def create(self, kind: RecordKind, identity: str, record: FinancialRecord) -> None:
        await self._request(
            "POST",
            f"rest/v1/{kind.value}",
            json=[record_to_row(record, identity)],
        )

    async def update(self, kind: RecordKind, record: FinancialRecord) -> None:
        await self._request(
            "PATCH",
            f"rest/v1/{kind.value}",
            params=[("id", f"eq.{record.id}")],
            json=record_to_row(record),
        )

    async def delete(self, kind: RecordKind, record_id: UUID, identity: str) -> None:
        if self._settings.soft_delete:
            now = datetime.now(timezone.utc).isoformat()
            await self._request(
                "PATCH",
                f"rest/v1/{kind.value}",
                params=[("id", f"eq.{record_id}")],
                json={"is_deleted": True, "deleted_at": now, "updated_at": now},
            )
        else:
            await self._request(
                "DELETE",
                f"rest/v1/{kind.value}",
                params=[("id", f"eq.{record_id}"), ("user_email", f"eq.{identity}")],
            )

    async def delete_all(self, identity: str) -> None:
        for kind in RecordKind:
            await self._request(
                "DELETE",
                f"rest/v1/{kind.value}",
                params=[("user_email", f"eq.{identity}")],
            )

    # -- Authentication --------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthSession:
        response = await self._send(
            "POST",
            "auth/v1/token",
            params=[("grant_type", "password")],
            json={"email": email, "password": password},
        )
        return self._auth_session(response, email)

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> AuthSession:
        body: dict[str, Any] = {"email": email, "password": password}
        if display_name:
            body["data"] = {"display_name": display_name}
        response = await self._send("POST", "auth/v1/signup", json=body)
        session = self._auth_session(response, email)
        if display_name and not session.display_name:
            session = session.model_copy(update={"display_name": display_name})
        return session

    def _auth_session(self, response: httpx.Response, email: str) -> AuthSession:
        if response.status_code in AUTH_REJECTED_STATUSES:
            logger.info("remote_auth_rejected", status_code=response.status_code)
            raise AuthenticationFailedError()
        if not response.is_success:
            raise ServerError(
                f"Authentication failed with status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ServerError(f"Authentication returned invalid JSON: {e}") from e
        if not isinstance(body, dict):
            body = {}

        token = body.get("access_token")
        if token is None and isinstance(body.get("session"), dict):
            token = body["session"].get("access_token")

        user = body.get("user") if isinstance(body.get("user"), dict) else {}
        metadata = user.get("user_metadata") if isinstance(user.get("user_metadata"), dict) else {}

        if token:
            self._access_token = token

        return AuthSession(
            email=user.get("email") or email,
            access_token=token,
            user_id=user.get("id"),
            display_name=metadata.get("display_name"),
        )


# =============================================================================
# ROW CONVERSION
# =============================================================================

def record_to_row(record: FinancialRecord, identity: Optional[str] = None) -> dict[str, Any]:
    """
    Wire row for a record.

    ``identity`` is omitted for updates so an edit never moves a row to
    another owner.
    """
    row: dict[str, Any] = {
        "id": str(record.id),
        "title": record.title,
        "date": record.occurred_at.isoformat(),
        "amount": float(record.amount),
        "category": record.category.value,
        "currency": record.currency.value,
        "note": record.note,
        "photo_url": None,
    }
    if isinstance(record, Expense):
        row["type"] = record.recurrence.value
    if identity is not None:
        row["user_email"] = identity
    return row


def row_to_record(kind: RecordKind, row: Any) -> Optional[FinancialRecord]:
    """Parse a wire row; rows that do not parse are logged and skipped."""
    try:
        fields = {
            "id": UUID(str(row["id"])),
            "title": row["title"],
            "occurred_at": _parse_timestamp(row["date"]),
            "amount": Decimal(str(row["amount"])),
            "currency": _enum_or(Currency, row.get("currency"), Currency.TRY),
            "note": row.get("note"),
        }
        if kind is RecordKind.INCOMES:
            return Income(
                category=_enum_or(IncomeCategory, row.get("category"), IncomeCategory.OTHER),
                **fields,
            )
        return Expense(
            category=_enum_or(ExpenseCategory, row.get("category"), ExpenseCategory.OTHER),
            recurrence=_enum_or(ExpenseType, row.get("type"), ExpenseType.ONE_TIME),
            **fields,
        )
    except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError) as e:
        logger.warning("remote_row_skipped", kind=kind.value, error=str(e))
        return None


def _parse_timestamp(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def _enum_or(enum_cls, raw, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default
