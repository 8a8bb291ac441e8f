"""Analytics schemas."""
from pydantic import BaseModel


class BinUsageRow(BaseModel):
    bin_id: str
    name: str
    ward: str
    total_disposals: int
    verified_disposals: int


class HotspotRow(BaseModel):
    zone: str
    issue_count: int


class AnalyticsSnapshot(BaseModel):
    total_disposals: int
    total_complaints: int
    verified_disposals: int
    verification_rate: float
    open_complaints: int
    resolved_complaints: int
    avg_resolution_hours: float
    active_users: int
    total_rewards_distributed: int
    total_redemptions: int
    bin_usage: list[BinUsageRow]
    hotspots: list[HotspotRow]
