"""Domain services and external integrations."""

from skoolife.services.billing import BillingGateway, get_billing_gateway
from skoolife.services.storage import StorageService, get_storage_service
from skoolife.services.subscription import SubscriptionCache

__all__ = [
    "BillingGateway",
    "get_billing_gateway",
    "StorageService",
    "get_storage_service",
    "SubscriptionCache",
]
