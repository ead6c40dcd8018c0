# RepairFlow Services
from .audit import AuditEntry, AuditLog, HttpAuditLog, get_audit_log
from .sessions import SessionClient, get_session_client
from .warehouse import WarehouseClient, get_warehouse_client
from .catalog import CatalogLookup
from .ledger import LineItemLedger
from .approval import ApprovalNegotiator
from .assignment import AssignmentResolver
from .settlement import FinancialCloser
from .state_machine import OrderStateMachine

__all__ = [
    "AuditEntry",
    "AuditLog",
    "HttpAuditLog",
    "get_audit_log",
    "SessionClient",
    "get_session_client",
    "WarehouseClient",
    "get_warehouse_client",
    "CatalogLookup",
    "LineItemLedger",
    "ApprovalNegotiator",
    "AssignmentResolver",
    "FinancialCloser",
    "OrderStateMachine",
]
