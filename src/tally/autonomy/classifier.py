"""Static risk classification of agent tools."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from ..errors import ConfigError


class ActionCategory(Enum):
    """What kind of change a tool makes."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXTERNAL = "external"
    FINANCIAL = "financial"


class RiskLevel(Enum):
    """How consequential invoking a tool is."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def is_elevated(self) -> bool:
        """High and critical actions get a compliance audit entry."""
        return self in (RiskLevel.HIGH, RiskLevel.CRITICAL)


@dataclass(frozen=True)
class ToolClassification:
    """Risk metadata for one tool."""

    category: ActionCategory
    risk_level: RiskLevel
    description: str
    requires_review: bool = False


def _c(category: str, risk: str, description: str, review: bool = False) -> ToolClassification:
    return ToolClassification(ActionCategory(category), RiskLevel(risk), description, review)


TOOL_CLASSIFICATIONS: dict[str, ToolClassification] = {
    # Read operations
    "list_invoices": _c("read", "none", "List invoices"),
    "list_documents": _c("read", "none", "List documents"),
    "get_financial_summary": _c("read", "none", "Get financial summary"),
    "check_einvoice_status": _c("read", "none", "Check e-invoice status"),
    "list_pending_einvoices": _c("read", "none", "List pending e-invoices"),
    "get_einvoice_errors": _c("read", "none", "Get e-invoice errors"),
    "suggest_expense_category": _c("read", "none", "Suggest expense category"),
    "get_uncategorized_expenses": _c("read", "none", "Get uncategorized expenses"),
    "list_categorization_rules": _c("read", "none", "List categorization rules"),
    "get_categorization_stats": _c("read", "none", "Get categorization stats"),
    "get_unreconciled_payments": _c("read", "none", "Get unreconciled payments"),
    "get_reconciliation_summary": _c("read", "none", "Get reconciliation summary"),
    "list_bank_statements": _c("read", "none", "List bank statements"),
    "list_bank_transactions": _c("read", "none", "List bank transactions"),
    "find_transaction_matches": _c("read", "none", "Find transaction matches"),
    "get_statement_progress": _c("read", "none", "Get statement progress"),
    "get_bank_reconciliation_stats": _c("read", "none", "Get bank reconciliation stats"),
    "recall_memory": _c("read", "none", "Search memory"),
    # Create operations
    "create_customer": _c("create", "low", "Create customer"),
    "create_categorization_rule": _c("create", "low", "Create categorization rule"),
    "import_bank_statement": _c("create", "low", "Import bank statement"),
    "remember": _c("create", "low", "Store a memory"),
    # Financial operations
    "create_invoice": _c("financial", "medium", "Create invoice"),
    "record_payment": _c("financial", "medium", "Record payment"),
    "record_expense": _c("financial", "medium", "Record expense"),
    "create_expense_from_document": _c("financial", "medium", "Create expense from document"),
    # Update operations
    "send_invoice": _c("update", "medium", "Send invoice"),
    "mark_invoice_paid": _c("update", "medium", "Mark invoice paid"),
    "recategorize_expense": _c("update", "medium", "Recategorize expense"),
    "mark_payment_cleared": _c("update", "low", "Mark payment cleared"),
    "reconcile_payment": _c("update", "low", "Reconcile payment"),
    "match_transaction": _c("update", "low", "Match transaction"),
    "unmatch_transaction": _c("update", "low", "Unmatch transaction"),
    "ignore_transaction": _c("update", "low", "Ignore transaction"),
    "finalize_reconciliation": _c("update", "medium", "Finalize reconciliation"),
    "process_document": _c("update", "low", "Process document"),
    # Batch operations
    "auto_categorize_expenses": _c("update", "medium", "Auto-categorize expenses", True),
    "auto_match_transactions": _c("update", "medium", "Auto-match transactions", True),
    # External operations
    "submit_einvoice": _c("external", "high", "Submit e-invoice to LHDN", True),
    "cancel_einvoice": _c("external", "critical", "Cancel e-invoice", True),
}


class RiskClassifier:
    """Looks up the risk classification of a tool by name.

    Unknown tools are treated as low-risk reads so that new tools work
    without configuration.
    """

    def __init__(
        self,
        overrides: dict[str, dict[str, Any]] | None = None,
        table: dict[str, ToolClassification] | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            overrides: Per-tool field overrides, as found in configuration,
                e.g. ``{"void_invoice": {"category": "financial", "risk_level": "high"}}``.
            table: Base table. Defaults to TOOL_CLASSIFICATIONS.

        Raises:
            ConfigError: If an override names an unknown category or risk level.
        """
        self._table = dict(TOOL_CLASSIFICATIONS if table is None else table)
        for name, fields in (overrides or {}).items():
            self._table[name] = self._apply_override(name, fields)

    def _apply_override(self, name: str, fields: dict[str, Any]) -> ToolClassification:
        base = self._table.get(name) or self.default(name)
        try:
            return replace(
                base,
                category=ActionCategory(fields.get("category", base.category.value)),
                risk_level=RiskLevel(fields.get("risk_level", base.risk_level.value)),
                description=fields.get("description", base.description),
                requires_review=bool(fields.get("requires_review", base.requires_review)),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid classification override for '{name}': {e}") from e

    @staticmethod
    def default(tool_name: str) -> ToolClassification:
        return ToolClassification(ActionCategory.READ, RiskLevel.LOW, tool_name, False)

    def classify(self, tool_name: str) -> ToolClassification:
        """Get the risk classification for a tool."""
        return self._table.get(tool_name) or self.default(tool_name)
