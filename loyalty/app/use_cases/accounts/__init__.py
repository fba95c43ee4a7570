"""Account use cases"""

from .open_account import OpenAccount
from .update_profile import UpdateProfile
from .get_balance import GetBalance
from .list_transactions import ListTransactions
from .list_orders import ListOrders
from .reconcile_ledger import ReconcileLedger
from .expire_memberships import ExpireMemberships

__all__ = [
    "OpenAccount",
    "UpdateProfile",
    "GetBalance",
    "ListTransactions",
    "ListOrders",
    "ReconcileLedger",
    "ExpireMemberships",
]
