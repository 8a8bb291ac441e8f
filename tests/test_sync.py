import json

import httpx
import pytest

from civictrust.config import Settings
from civictrust.schemas.fraud import FraudFlag
from civictrust.services import engine
from civictrust.services.dispatcher import Dispatcher
from civictrust.services.remote import (
    RemoteClient,
    fetch_bins,
    get_remote_stats,
    reset_remote_stats,
    validate_geo_on_server,
)
from civictrust.services.sync import sync_action, wallet_entry_row
from civictrust.schemas.bin import BinStatus
from civictrust.schemas.wallet import WalletEntryType
from factories import BIN_001, NOW, dispose_action

REMOTE_SETTINGS = Settings(
    REMOTE_SYNC_ENABLED=True,
    SUPABASE_URL="https://backend.test",
    SUPABASE_ANON_KEY="anon-key",
    REMOTE_TIMEOUT_SECONDS=1.0,
)


class Recorder:
    """Mock backend answering PostgREST and function calls."""

    def __init__(self, geo: dict | None = None, status_code: int = 201) -> None:
        self.requests: list[httpx.Request] = []
        self.geo = geo if geo is not None else {"valid": True, "distance_meters": 0.4}
        self.status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/functions/v1/geo-validate":
            return httpx.Response(200, json=self.geo)
        return httpx.Response(self.status_code)

    def paths(self) -> list[tuple[str, str]]:
        return [(request.method, request.url.path) for request in self.requests]


@pytest.fixture(autouse=True)
def _reset_stats():
    reset_remote_stats()
    yield
    reset_remote_stats()


def _remote(handler) -> RemoteClient:
    return RemoteClient(REMOTE_SETTINGS, transport=httpx.MockTransport(handler))


@pytest.mark.anyio
async def test_disabled_remote_makes_no_calls(state, offline_remote):
    action = dispose_action()
    committed = engine.apply_action(state, action).state
    outcome = await sync_action(offline_remote, action, committed, user_id="u", device_id="d")
    assert outcome.geo is None
    assert get_remote_stats()["calls"] == 0


@pytest.mark.anyio
async def test_verified_disposal_pushes_rows_and_revalidates(state):
    backend = Recorder()
    remote = _remote(backend)
    action = dispose_action()
    committed = engine.apply_action(state, action).state

    outcome = await sync_action(remote, action, committed, user_id="demo-citizen-001", device_id="phone-1")
    await remote.aclose()

    assert backend.paths() == [
        ("POST", "/rest/v1/disposals"),
        ("PATCH", "/rest/v1/bins"),
        ("POST", "/rest/v1/wallet_entries"),
        ("POST", "/rest/v1/wallet_entries"),
        ("POST", "/rest/v1/user_location_logs"),
        ("POST", "/functions/v1/geo-validate"),
    ]
    upsert = backend.requests[0]
    assert upsert.url.params["on_conflict"] == "id"
    assert upsert.headers["Prefer"].startswith("resolution=merge-duplicates")
    assert upsert.headers["apikey"] == "anon-key"
    assert json.loads(upsert.content)["id"] == action.id
    assert backend.requests[1].url.params["id"] == "eq.bin-001"

    assert outcome.geo is not None
    assert outcome.geo.valid is True
    assert outcome.geo.source == "server"


@pytest.mark.anyio
async def test_fraud_alerts_are_replicated(state):
    backend = Recorder()
    remote = _remote(backend)
    action = dispose_action(qr="WRONG-CODE")
    committed = engine.apply_action(state, action).state

    await sync_action(remote, action, committed, user_id="demo-citizen-001", device_id="phone-1")
    await remote.aclose()

    fraud_rows = [json.loads(r.content) for r in backend.requests if r.url.path == "/rest/v1/fraud_flags"]
    assert [row["fraud_type"] for row in fraud_rows] == [FraudFlag.qr_mismatch.value]
    # no bin touch for a rejected disposal
    assert ("PATCH", "/rest/v1/bins") not in backend.paths()


@pytest.mark.anyio
async def test_rejected_calls_are_swallowed_and_counted(state):
    remote = _remote(Recorder(status_code=500))
    action = dispose_action()
    committed = engine.apply_action(state, action).state

    outcome = await sync_action(remote, action, committed, user_id="u", device_id="d")
    await remote.aclose()

    assert outcome.geo.source == "server"
    stats = get_remote_stats()
    assert stats["errors"] == 5
    assert stats["calls"] == 6


@pytest.mark.anyio
async def test_geo_validation_falls_back_on_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow backend", request=request)

    remote = _remote(handler)
    result = await validate_geo_on_server(
        remote,
        bin_location=BIN_001,
        user_location=BIN_001,
        allowed_radius_m=5,
        accuracy_m=4,
        age_s=3,
    )
    await remote.aclose()

    assert result.valid is True
    assert result.source == "fallback"
    assert get_remote_stats() == {"calls": 1, "errors": 1, "fallbacks": 1}


@pytest.mark.anyio
async def test_geo_fallback_applies_local_rule(offline_remote):
    result = await validate_geo_on_server(
        offline_remote,
        bin_location=BIN_001,
        user_location=BIN_001,
        allowed_radius_m=5,
        accuracy_m=18,
        age_s=3,
    )
    assert result.valid is False
    assert result.source == "fallback"


@pytest.mark.anyio
async def test_server_disagreement_adds_alert_through_dispatcher(store):
    remote = _remote(Recorder(geo={"valid": False, "distance_meters": 42.0}))
    dispatcher = Dispatcher(store, remote, clock=lambda: NOW)
    action = dispose_action()
    dispatcher.run_action(action)

    await dispatcher.sync_effects(action, user_id="demo-citizen-001", device_id="phone-1")
    await remote.aclose()

    alert = dispatcher.state.fraud_alerts[0]
    assert alert.type == FraudFlag.geo_fence_failure
    assert alert.risk_score == 70
    assert alert.message == "Server-side geovalidation failed."
    assert dispatcher.state.disposals[0].verified is True
    assert store.load().fraud_alerts[0].id == alert.id


@pytest.mark.anyio
async def test_fetch_bins_maps_rows_and_falls_back(state):
    rows = [
        {
            "id": "bin-101",
            "bin_name": "Anna Nagar Bin",
            "qr_code_id": "MMC-BIN-101",
            "ward": "Ward 30",
            "latitude": "9.9200",
            "longitude": 78.1400,
            "status": "reported_full",
            "last_used_at": None,
            "created_at": "2026-01-01T00:00:00Z",
        }
    ]
    remote = _remote(lambda request: httpx.Response(200, json=rows))
    bins = await fetch_bins(remote, state.bins)
    await remote.aclose()
    assert [item.id for item in bins] == ["bin-101"]
    assert bins[0].status == BinStatus.reported_full
    assert bins[0].location.latitude == 9.92

    broken = _remote(lambda request: httpx.Response(200, json=[{"id": "bin-102"}]))
    assert await fetch_bins(broken, state.bins) is state.bins
    await broken.aclose()

    empty = _remote(lambda request: httpx.Response(200, json=[]))
    assert await fetch_bins(empty, state.bins) is state.bins
    await empty.aclose()


def test_wallet_rows_carry_signed_points(state):
    entry = engine.apply_action(state, dispose_action()).state.wallet.history[0]
    assert entry.type == WalletEntryType.earn
    assert wallet_entry_row(entry, "u")["points"] == entry.points
    redeem = entry.model_copy(update={"type": WalletEntryType.redeem})
    assert wallet_entry_row(redeem, "u")["points"] == -entry.points
