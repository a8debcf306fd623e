from typing import Any, Optional

from src.core.utils.exceptions import AppError, ConcurrencyError


class BillingError(AppError):
    """Base exception for billing module errors."""

    code = "billing_error"


class BillingRepositoryError(BillingError):
    """Raised when a repository operation fails due to infrastructure issues."""

    code = "repository_error"

    def __init__(self, message: str, original_error: Exception = None, **context: Any):
        super().__init__(message, **context)
        self.original_error = original_error


class SubscriptionNotFoundError(BillingError):
    """Raised when a subscription is expected but not found."""

    code = "subscription_not_found"


class PlanNotFoundError(BillingError):
    """Raised when a plan is expected but not found."""

    code = "plan_not_found"


class FeatureNotFoundError(BillingError):
    """Raised when a feature is not registered in the catalog."""

    code = "feature_not_found"


class TenantNotFoundError(BillingError):
    """Raised when a tenant has no subscription history at all."""

    code = "tenant_not_found"


class PlanInUseError(BillingError):
    """Raised when editing the entitlements of a plan a live subscription uses."""

    code = "plan_in_use"


class NotEntitledError(BillingError):
    """Raised when the tenant's plan does not include the feature."""

    code = "not_entitled"

    def __init__(self, tenant_id: str, feature_id: str, metric: Optional[str] = None, plan_id: str = None):
        super().__init__(
            f"Tenant {tenant_id} is not entitled to {feature_id}",
            tenant_id=tenant_id,
            feature_id=feature_id,
            metric=metric,
            plan_id=plan_id,
        )
        self.tenant_id = tenant_id
        self.feature_id = feature_id


class QuotaExceededError(BillingError):
    """Raised when recording usage would push a counter past its limit."""

    code = "quota_exceeded"

    def __init__(
        self,
        message: str,
        current: int,
        limit: Optional[int],
        required: int = 1,
        **context: Any,
    ):
        super().__init__(message, current_usage=current, limit=limit, required=required, **context)
        self.current = current
        self.limit = limit
        self.required = required


class InvalidStateTransitionError(BillingError):
    """Raised when a lifecycle command is not allowed from the current status."""

    code = "invalid_state_transition"

    def __init__(self, from_status: Any, command: str, message: str = None, **context: Any):
        status = getattr(from_status, "value", from_status)
        super().__init__(
            message or f"Cannot {command} a subscription in status {status}",
            from_status=status,
            command=command,
            **context,
        )
        self.from_status = from_status
        self.command = command


class OfferNotFoundError(BillingError):
    code = "offer_not_found"


class OfferExpiredError(BillingError):
    """Raised when accepting an offer after its validity window."""

    code = "offer_expired"


class OfferAlreadyConsumedError(BillingError):
    """Raised when accepting an offer that was already accepted."""

    code = "offer_already_consumed"


class ConcurrentModificationError(ConcurrencyError, BillingError):
    """Raised when a subscription changed between read and compare-and-swap write."""

    code = "concurrent_modification"
