# Services module
from app.services.asset_registry import AssetRegistry
from app.services.activity_service import ActivityService
from app.services.scan_ledger import ScanLedger
from app.services.scope_resolver import ScopeResolver
from app.services.scan_classifier import ScanClassifier
from app.services.reconciliation_service import ReconciliationService, ReconciliationSets
from app.services.settlement_service import SettlementService

__all__ = [
    "AssetRegistry",
    "ActivityService",
    "ScanLedger",
    "ScopeResolver",
    "ScanClassifier",
    "ReconciliationService",
    "ReconciliationSets",
    "SettlementService",
]
