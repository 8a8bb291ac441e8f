"""Schema package exports."""
from .actions import (
    ActionPayload,
    ActionType,
    DisposePayload,
    PendingAction,
    RedeemRewardPayload,
    ReportBinFullPayload,
    ReportIssuePayload,
    SubmitCleanupPayload,
    VerifyCleanupPayload,
)
from .analytics import AnalyticsSnapshot, BinUsageRow, HotspotRow
from .auth import DemoRole, IssuedRole, LoginRequest, LoginResponse, Role, RoleGrant, UserProfile
from .bin import Bin, BinFullRead, BinFullReport, BinStatus
from .common import (
    ActionOutcome,
    CapturedLocation,
    Coordinates,
    LocationSnapshot,
    LocationStrength,
    PositionFix,
    SnapshotRead,
    UserLocationSnapshot,
)
from .complaint import (
    CleanupCreate,
    CleanupDecision,
    CleanupProof,
    CleanupVerification,
    Complaint,
    ComplaintCreate,
    ComplaintOutcome,
    ComplaintStatus,
    IssueCategory,
)
from .disposal import DisposalCreate, DisposalOutcome, DisposalRecord, ImageValidation, WasteSize
from .fraud import AlertStatus, FraudAlert, FraudFlag, Severity
from .state import AppState, ConnectivityUpdate, SyncStatusRead
from .wallet import (
    RedemptionOutcome,
    RedemptionRecord,
    RedemptionStatus,
    RewardCatalogItem,
    WalletEntry,
    WalletEntryType,
    WalletRead,
    WalletSource,
    WalletState,
)

__all__ = [
    "ActionOutcome",
    "ComplaintOutcome",
    "DisposalOutcome",
    "RedemptionOutcome",
    "WalletRead",
    "ActionPayload",
    "ActionType",
    "DisposePayload",
    "PendingAction",
    "RedeemRewardPayload",
    "ReportBinFullPayload",
    "ReportIssuePayload",
    "SubmitCleanupPayload",
    "VerifyCleanupPayload",
    "AnalyticsSnapshot",
    "BinUsageRow",
    "HotspotRow",
    "DemoRole",
    "IssuedRole",
    "LoginRequest",
    "LoginResponse",
    "Role",
    "RoleGrant",
    "UserProfile",
    "Bin",
    "BinFullRead",
    "BinFullReport",
    "BinStatus",
    "CapturedLocation",
    "Coordinates",
    "LocationSnapshot",
    "LocationStrength",
    "PositionFix",
    "SnapshotRead",
    "UserLocationSnapshot",
    "CleanupCreate",
    "CleanupDecision",
    "CleanupProof",
    "CleanupVerification",
    "Complaint",
    "ComplaintCreate",
    "ComplaintStatus",
    "IssueCategory",
    "DisposalCreate",
    "DisposalRecord",
    "ImageValidation",
    "WasteSize",
    "AlertStatus",
    "FraudAlert",
    "FraudFlag",
    "Severity",
    "AppState",
    "ConnectivityUpdate",
    "SyncStatusRead",
    "RedemptionRecord",
    "RedemptionStatus",
    "RewardCatalogItem",
    "WalletEntry",
    "WalletEntryType",
    "WalletSource",
    "WalletState",
]
