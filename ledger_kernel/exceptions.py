"""
Typed exception hierarchy for the ledger kernel.

Every error a public ledger operation can surface is one of five families.
Callers catch by type and read structured attributes; nothing downstream
should parse message strings.

    LedgerKernelError (base)
    |
    +-- AccessDeniedError            caller has no valid tenant / level
    |   +-- TenantResolutionError
    |   +-- InsufficientAccessError
    |   +-- CrossTenantError
    |
    +-- ValidationError              rejected before any store mutation
    |   +-- MissingFieldError
    |   +-- NonPositiveAmountError
    |   +-- RevenueSplitMismatchError
    |   +-- InvalidAlertConfigError
    |
    +-- NotFoundError                missing, or outside the caller's tenant
    |   +-- ProviderNotFoundError
    |   +-- MissionNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ExpenseNotFoundError
    |   +-- PendingRevenueNotFoundError
    |   +-- AlertConfigNotFoundError
    |
    +-- ConflictError                transition out of a terminal state
    |   +-- RevenueAlreadyFinalizedError
    |   +-- PaymentAlreadySettledError
    |   +-- InvalidExpenseTransitionError
    |   +-- ConcurrentSettlementError
    |
    +-- StoreError                   underlying store failure (rolled back)
        +-- StoreTimeoutError

Error codes
-----------

Category      | Code                        | When raised
--------------|-----------------------------|------------------------------------
Access        | TENANT_UNRESOLVED           | Profile has no company / provider link
              | INSUFFICIENT_ACCESS         | Access level below what the call needs
              | CROSS_TENANT_ACCESS         | Caller named a company that is not theirs
Validation    | MISSING_FIELD               | Required field absent or blank
              | NON_POSITIVE_AMOUNT         | Amount <= 0
              | REVENUE_SPLIT_MISMATCH      | company + provider != total (> 0.01)
              | INVALID_ALERT_CONFIG        | Bad alert rule definition
Not found     | *_NOT_FOUND                 | Entity missing or in another tenant
Conflict      | REVENUE_ALREADY_FINALIZED   | Confirm/cancel a non-pending revenue
              | PAYMENT_ALREADY_SETTLED     | Completing a completed/cancelled payment
              | INVALID_EXPENSE_TRANSITION  | Expense state machine violation
              | CONCURRENT_SETTLEMENT       | Payment changed under a settlement pass
Store         | STORE_ERROR                 | Database failure, step rolled back
              | STORE_TIMEOUT               | Statement/connect timeout after retry

Not-found errors carry only the identifier the caller supplied,
so a lookup into another tenant reads exactly like a missing row.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Access


class AccessDeniedError(LedgerKernelError):
    """Tenant resolution or an ownership check failed."""

    code: str = "ACCESS_DENIED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Access denied: {reason}")


class TenantResolutionError(AccessDeniedError):
    """The profile cannot be mapped to exactly one company."""

    code: str = "TENANT_UNRESOLVED"

    def __init__(self, profile_id: str, reason: str):
        self.profile_id = profile_id
        super().__init__(f"profile {profile_id}: {reason}")


class InsufficientAccessError(AccessDeniedError):
    """Caller's access level is below the one the operation requires."""

    code: str = "INSUFFICIENT_ACCESS"

    def __init__(self, required: str, actual: str):
        self.required = required
        self.actual = actual
        super().__init__(f"requires {required} access, caller has {actual}")


class CrossTenantError(AccessDeniedError):
    """Caller addressed a company other than the one they resolved to."""

    code: str = "CROSS_TENANT_ACCESS"

    def __init__(self, requested_company_id: str):
        self.requested_company_id = requested_company_id
        super().__init__(f"company {requested_company_id} is outside caller tenant")


# Validation


class ValidationError(LedgerKernelError):
    """Malformed input, rejected before any store mutation."""

    code: str = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    """A required field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Missing required field: {field_name}")


class NonPositiveAmountError(ValidationError):
    """Monetary amount must be strictly positive."""

    code: str = "NON_POSITIVE_AMOUNT"

    def __init__(self, field_name: str, amount: str):
        self.field_name = field_name
        self.amount = amount
        super().__init__(f"{field_name} must be positive, got {amount}")


class RevenueSplitMismatchError(ValidationError):
    """company_amount + provider_amount differs from total_amount."""

    code: str = "REVENUE_SPLIT_MISMATCH"

    def __init__(self, total_amount: str, company_amount: str, provider_amount: str):
        self.total_amount = total_amount
        self.company_amount = company_amount
        self.provider_amount = provider_amount
        super().__init__(
            f"Revenue split mismatch: company {company_amount} + "
            f"provider {provider_amount} != total {total_amount}"
        )


class InvalidAlertConfigError(ValidationError):
    """Alert rule definition is inconsistent."""

    code: str = "INVALID_ALERT_CONFIG"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid alert config: {reason}")


# Not found


class NotFoundError(LedgerKernelError):
    """Referenced entity does not exist or is outside the caller's tenant."""

    code: str = "NOT_FOUND"
    entity: str = "record"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity.capitalize()} not found: {entity_id}")


class ProviderNotFoundError(NotFoundError):
    code: str = "PROVIDER_NOT_FOUND"
    entity: str = "service provider"


class MissionNotFoundError(NotFoundError):
    code: str = "MISSION_NOT_FOUND"
    entity: str = "mission"


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity: str = "payment"


class ExpenseNotFoundError(NotFoundError):
    code: str = "EXPENSE_NOT_FOUND"
    entity: str = "expense"


class PendingRevenueNotFoundError(NotFoundError):
    code: str = "PENDING_REVENUE_NOT_FOUND"
    entity: str = "pending revenue"


class AlertConfigNotFoundError(NotFoundError):
    code: str = "ALERT_CONFIG_NOT_FOUND"
    entity: str = "alert config"


# Conflict


class ConflictError(LedgerKernelError):
    """Attempted transition from a terminal state."""

    code: str = "CONFLICT"


class RevenueAlreadyFinalizedError(ConflictError):
    """Pending revenue was already confirmed or cancelled."""

    code: str = "REVENUE_ALREADY_FINALIZED"

    def __init__(self, pending_revenue_id: str, status: str):
        self.pending_revenue_id = pending_revenue_id
        self.status = status
        super().__init__(
            f"Pending revenue {pending_revenue_id} is already {status}"
        )


class PaymentAlreadySettledError(ConflictError):
    """Payment is already completed or cancelled."""

    code: str = "PAYMENT_ALREADY_SETTLED"

    def __init__(self, payment_id: str, status: str):
        self.payment_id = payment_id
        self.status = status
        super().__init__(f"Payment {payment_id} is already {status}")


class InvalidExpenseTransitionError(ConflictError):
    """Expense status change is not allowed from its current state."""

    code: str = "INVALID_EXPENSE_TRANSITION"

    def __init__(self, expense_id: str, from_status: str, to_status: str):
        self.expense_id = expense_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Expense {expense_id} cannot move from {from_status} to {to_status}"
        )


class ConcurrentSettlementError(ConflictError):
    """A payment selected for liquidation changed before it was marked."""

    code: str = "CONCURRENT_SETTLEMENT"

    def __init__(self, provider_id: str, expected: int, updated: int):
        self.provider_id = provider_id
        self.expected = expected
        self.updated = updated
        super().__init__(
            f"Settlement for provider {provider_id} expected to complete "
            f"{expected} payment(s) but {updated} were still open"
        )


# Store


class StoreError(LedgerKernelError):
    """Underlying store failure; the enclosing step was rolled back."""

    code: str = "STORE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store failure during {operation}: {detail}")


class StoreTimeoutError(StoreError):
    """Store did not answer within the configured timeout, even after retry."""

    code: str = "STORE_TIMEOUT"
