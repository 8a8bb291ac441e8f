"""HTTP client for the hosted backend (PostgREST tables, edge functions and auth).

Calls are best-effort: transport errors, timeouts and non-2xx answers are
logged and counted, never raised, so the local verdict always stands.
Authentication is the exception and reports failures to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from civictrust.config import Settings, get_settings
from civictrust.schemas.bin import Bin, BinStatus
from civictrust.schemas.common import Coordinates
from civictrust.services.location import MAX_ALLOWED_ACCURACY_METERS, MAX_LOCATION_AGE_SECONDS
from civictrust.utils.errors import InvalidCredentials
from civictrust.utils.geo import distance_m
from civictrust.utils.time import parse_iso_utc, utcnow

logger = logging.getLogger(__name__)

APP_ID_HEADER = "civictrust-api"

# Simple in-memory counters exposed on /health
_REMOTE_CALLS: int = 0
_REMOTE_ERRORS: int = 0
_REMOTE_FALLBACKS: int = 0


def _record_call() -> None:
    global _REMOTE_CALLS
    _REMOTE_CALLS += 1


def _record_error() -> None:
    global _REMOTE_ERRORS
    _REMOTE_ERRORS += 1


def _record_fallback() -> None:
    global _REMOTE_FALLBACKS
    _REMOTE_FALLBACKS += 1


def get_remote_stats() -> dict[str, int]:
    return {
        "calls": _REMOTE_CALLS,
        "errors": _REMOTE_ERRORS,
        "fallbacks": _REMOTE_FALLBACKS,
    }


def reset_remote_stats() -> None:
    global _REMOTE_CALLS, _REMOTE_ERRORS, _REMOTE_FALLBACKS
    _REMOTE_CALLS = 0
    _REMOTE_ERRORS = 0
    _REMOTE_FALLBACKS = 0


class RemoteClient:
    """Thin wrapper over ``httpx.AsyncClient`` speaking the PostgREST dialect."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.enabled = settings.remote_configured
        self._base_url = (settings.SUPABASE_URL or "").rstrip("/")
        self._anon_key = settings.SUPABASE_ANON_KEY or ""
        self._timeout = settings.REMOTE_TIMEOUT_SECONDS
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._anon_key}",
            "Content-Type": "application/json",
            "x-app-id": APP_ID_HEADER,
        }

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers(),
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response | None:
        if not self.enabled:
            return None
        _record_call()
        try:
            response = await self._http().request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException:
            _record_error()
            logger.warning("Remote call timed out", extra={"method": method, "path": path})
            return None
        except httpx.HTTPStatusError as exc:
            _record_error()
            logger.warning(
                "Remote call rejected",
                extra={"method": method, "path": path, "status_code": exc.response.status_code},
            )
            return None
        except httpx.HTTPError as exc:
            _record_error()
            logger.warning("Remote call failed", extra={"method": method, "path": path, "error": str(exc)})
            return None
        return response

    async def upsert(self, table: str, row: dict[str, Any], on_conflict: str = "id") -> bool:
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params={"on_conflict": on_conflict},
            json=row,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        return response is not None

    async def insert(self, table: str, row: dict[str, Any]) -> bool:
        response = await self._request(
            "POST", f"/rest/v1/{table}", json=row, headers={"Prefer": "return=minimal"}
        )
        return response is not None

    async def update(self, table: str, values: dict[str, Any], *, match: dict[str, str]) -> bool:
        params = {column: f"eq.{value}" for column, value in match.items()}
        response = await self._request("PATCH", f"/rest/v1/{table}", params=params, json=values)
        return response is not None

    async def select(self, table: str, columns: str, *, order: str | None = None) -> list[dict[str, Any]] | None:
        params = {"select": columns}
        if order:
            params["order"] = order
        response = await self._request("GET", f"/rest/v1/{table}", params=params)
        if response is None:
            return None
        try:
            data = response.json()
        except ValueError:
            _record_error()
            logger.warning("Remote select returned invalid JSON", extra={"table": table})
            return None
        return data if isinstance(data, list) else None

    async def invoke(self, function: str, body: dict[str, Any]) -> dict[str, Any] | None:
        response = await self._request("POST", f"/functions/v1/{function}", json=body)
        if response is None:
            return None
        try:
            data = response.json()
        except ValueError:
            _record_error()
            return None
        return data if isinstance(data, dict) else None

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """Password grant against the identity endpoint."""

        if not self.enabled:
            raise InvalidCredentials()
        _record_call()
        try:
            response = await self._http().post(
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except httpx.HTTPError as exc:
            _record_error()
            logger.warning("Identity provider unreachable", extra={"error": str(exc)})
            raise InvalidCredentials("Identity service unavailable. Try the demo credentials.") from exc

        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = {}
            message = detail.get("error_description") or detail.get("msg") or "Invalid credentials."
            raise InvalidCredentials(message)
        return response.json()


@dataclass(frozen=True)
class GeoValidationResult:
    valid: bool
    distance_meters: float
    source: str  # "server" | "fallback"


def _local_geo_verdict(
    bin_location: Coordinates,
    user_location: Coordinates,
    allowed_radius_m: float,
    accuracy_m: float,
    age_s: float,
) -> GeoValidationResult:
    distance = distance_m(user_location, bin_location)
    valid = accuracy_m <= MAX_ALLOWED_ACCURACY_METERS and age_s <= MAX_LOCATION_AGE_SECONDS and distance <= allowed_radius_m
    return GeoValidationResult(valid=valid, distance_meters=distance, source="fallback")


async def validate_geo_on_server(
    remote: RemoteClient,
    *,
    bin_location: Coordinates,
    user_location: Coordinates,
    allowed_radius_m: float,
    accuracy_m: float,
    age_s: float,
) -> GeoValidationResult:
    """Secondary geo-fence confirmation, falling back to the local rule."""

    fallback = _local_geo_verdict(bin_location, user_location, allowed_radius_m, accuracy_m, age_s)
    data = await remote.invoke(
        "geo-validate",
        {
            "bin_latitude": bin_location.latitude,
            "bin_longitude": bin_location.longitude,
            "user_latitude": user_location.latitude,
            "user_longitude": user_location.longitude,
            "allowed_radius_meters": allowed_radius_m,
            "accuracy": accuracy_m,
            "location_age_seconds": age_s,
        },
    )
    if data is None:
        _record_fallback()
        return fallback
    try:
        distance = float(data.get("distance_meters", fallback.distance_meters))
    except (TypeError, ValueError):
        distance = fallback.distance_meters
    return GeoValidationResult(valid=bool(data.get("valid")), distance_meters=distance, source="server")


def _bin_from_row(row: dict[str, Any]) -> Bin:
    created = row.get("created_at")
    last_used = row.get("last_used_at")
    return Bin(
        id=row["id"],
        name=row.get("bin_name") or row["id"],
        qr_code_id=row["qr_code_id"],
        ward=row.get("ward") or "Ward",
        location=Coordinates(latitude=float(row["latitude"]), longitude=float(row["longitude"])),
        status=BinStatus(row.get("status") or BinStatus.available.value),
        last_used_at=parse_iso_utc(last_used) if last_used else None,
        created_at=parse_iso_utc(created) if created else utcnow(),
    )


async def fetch_bins(remote: RemoteClient, fallback: list[Bin]) -> list[Bin]:
    """Load the bin registry from the backend, keeping ``fallback`` on any problem."""

    rows = await remote.select(
        "bins",
        "id,bin_name,qr_code_id,ward,latitude,longitude,status,last_used_at,created_at",
        order="created_at.asc",
    )
    if not rows:
        return fallback
    try:
        return [_bin_from_row(row) for row in rows]
    except (KeyError, TypeError, ValueError) as exc:
        _record_error()
        logger.warning("Remote bins could not be parsed, keeping local registry", extra={"error": str(exc)})
        return fallback


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


_remote_client: RemoteClient | None = None


def get_remote_client() -> RemoteClient:
    global _remote_client
    if _remote_client is None:
        _remote_client = RemoteClient(get_settings())
    return _remote_client


async def close_remote_client() -> None:
    global _remote_client
    if _remote_client is not None:
        await _remote_client.aclose()
        _remote_client = None


__all__ = [
    "RemoteClient",
    "GeoValidationResult",
    "get_remote_stats",
    "reset_remote_stats",
    "validate_geo_on_server",
    "fetch_bins",
    "iso",
    "get_remote_client",
    "close_remote_client",
]
