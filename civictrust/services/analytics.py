"""Summary statistics and hotspot ranking over the action history."""
from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta
from enum import Enum

from civictrust.schemas.analytics import AnalyticsSnapshot, BinUsageRow, HotspotRow
from civictrust.schemas.bin import Bin
from civictrust.schemas.complaint import Complaint, ComplaintStatus
from civictrust.schemas.disposal import DisposalRecord
from civictrust.schemas.wallet import RedemptionRecord, WalletEntry
from civictrust.services.wallet import points_earned
from civictrust.utils.geo import hotspot_key
from civictrust.utils.time import ensure_utc, hours_between

DEFAULT_HOTSPOT_LIMIT = 6


class AnalyticsPeriod(str, Enum):
    today = "today"
    last_7_days = "last_7_days"
    last_30_days = "last_30_days"
    all = "all"


def period_start(period: AnalyticsPeriod, now: datetime) -> datetime | None:
    now = ensure_utc(now)
    if period == AnalyticsPeriod.today:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == AnalyticsPeriod.last_7_days:
        return now - timedelta(days=7)
    if period == AnalyticsPeriod.last_30_days:
        return now - timedelta(days=30)
    return None


def _bin_usage(bins: Sequence[Bin], disposals: Sequence[DisposalRecord]) -> list[BinUsageRow]:
    rows = []
    for bin_ in bins:
        at_bin = [item for item in disposals if item.bin_id == bin_.id]
        rows.append(
            BinUsageRow(
                bin_id=bin_.id,
                name=bin_.name,
                ward=bin_.ward,
                total_disposals=len(at_bin),
                verified_disposals=sum(1 for item in at_bin if item.ai_verified and item.geo_verified),
            )
        )
    # Stable sort keeps registry order for ties.
    return sorted(rows, key=lambda row: row.total_disposals, reverse=True)


def _hotspots(
    disposals: Sequence[DisposalRecord],
    complaints: Sequence[Complaint],
    limit: int,
) -> list[HotspotRow]:
    counts: Counter[str] = Counter()
    for item in disposals:
        if not item.verified:
            counts[hotspot_key(item.location)] += 1
    for complaint in complaints:
        if complaint.status != ComplaintStatus.resolved:
            counts[hotspot_key(complaint.location)] += 1
    ranked = sorted(counts.items(), key=lambda pair: pair[1], reverse=True)
    return [HotspotRow(zone=zone, issue_count=count) for zone, count in ranked[:limit]]


def build_analytics(
    disposals: Sequence[DisposalRecord],
    complaints: Sequence[Complaint],
    bins: Sequence[Bin],
    wallet_entries: Sequence[WalletEntry],
    redemptions: Sequence[RedemptionRecord],
    *,
    since: datetime | None = None,
    hotspot_limit: int = DEFAULT_HOTSPOT_LIMIT,
) -> AnalyticsSnapshot:
    if since is not None:
        start = ensure_utc(since)
        disposals = [item for item in disposals if ensure_utc(item.created_at) >= start]
        complaints = [item for item in complaints if ensure_utc(item.created_at) >= start]
        wallet_entries = [item for item in wallet_entries if ensure_utc(item.created_at) >= start]
        redemptions = [item for item in redemptions if ensure_utc(item.created_at) >= start]

    total_disposals = len(disposals)
    verified_disposals = sum(1 for item in disposals if item.verified)
    verification_rate = 0.0 if total_disposals == 0 else verified_disposals / total_disposals * 100

    resolved = [item for item in complaints if item.status == ComplaintStatus.resolved]
    durations = [
        max(hours_between(item.created_at, item.resolved_at), 0.0) for item in resolved if item.resolved_at
    ]
    avg_resolution_hours = sum(durations) / len(durations) if durations else 0.0

    active_users = {item.user_id for item in disposals} | {item.user_id for item in complaints}

    return AnalyticsSnapshot(
        total_disposals=total_disposals,
        total_complaints=len(complaints),
        verified_disposals=verified_disposals,
        verification_rate=round(verification_rate, 1),
        open_complaints=len(complaints) - len(resolved),
        resolved_complaints=len(resolved),
        avg_resolution_hours=round(avg_resolution_hours, 2),
        active_users=len(active_users),
        total_rewards_distributed=points_earned(wallet_entries),
        total_redemptions=len(redemptions),
        bin_usage=_bin_usage(bins, disposals),
        hotspots=_hotspots(disposals, complaints, hotspot_limit),
    )


__all__ = ["AnalyticsPeriod", "period_start", "build_analytics", "DEFAULT_HOTSPOT_LIMIT"]
