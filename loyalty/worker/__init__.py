"""Background workers for the loyalty service"""
from .external_sync import ExternalSyncWorker
from .ledger_reconciler import LedgerReconcilerWorker
from .membership_expiry import MembershipExpiryWorker
from .scheduled_rewards import ScheduledRewardsWorker

__all__ = ["ExternalSyncWorker", "LedgerReconcilerWorker", "MembershipExpiryWorker", "ScheduledRewardsWorker"]
