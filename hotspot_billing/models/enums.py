"""Status enums for billing rows.

- TransactionStatus: lifecycle of a payment request
- ProvisioningJobStatus: lifecycle of a queued controller provisioning retry
"""

import enum


class TransactionStatus(str, enum.Enum):
    """Status of a payment transaction. Only PENDING may transition."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class ProvisioningJobStatus(str, enum.Enum):
    """Status of a provisioning retry job."""

    PENDING = "pending"
    DONE = "done"
    DEAD = "dead"
