from hotspot_billing.models.base import Base
from hotspot_billing.models.enums import ProvisioningJobStatus, TransactionStatus
from hotspot_billing.models.models import HotspotUser, Plan, ProvisioningJob, Transaction

__all__ = [
    "Base",
    "HotspotUser",
    "Plan",
    "ProvisioningJob",
    "ProvisioningJobStatus",
    "Transaction",
    "TransactionStatus",
]
