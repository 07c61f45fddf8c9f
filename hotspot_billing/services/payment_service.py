"""Payment initiation: validate, record a pending transaction, send the STK push."""

import logging
import re
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.database.plan_repo import plan_repository
from hotspot_billing.database.transaction_repo import transaction_repository
from hotspot_billing.integrations.mpesa_client import MpesaClient
from hotspot_billing.utils.exceptions import ValidationException

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^254\d{9}$")


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and PHONE_RE.match(phone) is not None


class PaymentService:
    """Service for starting M-Pesa payments."""

    @staticmethod
    async def initiate(
        db: AsyncSession,
        gateway: MpesaClient,
        phone: Optional[str],
        plan_id: Optional[int],
    ) -> str:
        """
        Start a payment for a plan.

        The pending transaction is committed before the gateway is called, so a
        gateway failure leaves a pending row without a correlation id.

        Args:
            db: Database session
            gateway: M-Pesa client
            phone: Customer phone number, must match 254XXXXXXXXX
            plan_id: ID of an active plan

        Returns:
            The CheckoutRequestID of the STK push

        Raises:
            ValidationException: If the phone number or plan is invalid
            PaymentGatewayError: If the STK push could not be sent
        """
        if not is_valid_phone(phone):
            raise ValidationException("Invalid phone number")
        if plan_id is None:
            raise ValidationException("Invalid plan")

        plan = await plan_repository.get_active_plan(db, plan_id)
        if plan is None:
            raise ValidationException("Invalid plan")

        transaction = await transaction_repository.create_pending(db, phone, plan.price, plan.id)

        checkout_id = await gateway.stk_push(phone, plan.price)

        await transaction_repository.set_request_id(db, transaction, checkout_id)
        logger.info(
            "Payment %s started for %s (plan %s, amount %s)",
            transaction.id,
            phone,
            plan.id,
            plan.price,
        )
        return checkout_id


payment_service = PaymentService()
