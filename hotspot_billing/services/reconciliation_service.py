"""Service layer for M-Pesa callback reconciliation.

Turns an asynchronous payment result into billing state and network access.

Steps for a successful payment:
1. Locate the transaction by CheckoutRequestID
2. Move it from pending to success (conditional, so duplicates are no-ops)
3. Resolve the plan that was paid for
4. Extend the phone number's access window, stacking on any unexpired time
5. Push the hotspot user to the router (best-effort, retried via the outbox)

Steps 2 and 4 are separate commits, and step 5 never rolls them back: the
billing record and the access window are authoritative even while the router
is out of reach.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.database.plan_repo import plan_repository
from hotspot_billing.database.transaction_repo import transaction_repository
from hotspot_billing.database.user_repo import user_repository
from hotspot_billing.integrations.routeros_executor import RouterOSCommandExecutor
from hotspot_billing.integrations.routeros_session import RouterOSSessionManager
from hotspot_billing.models.enums import TransactionStatus
from hotspot_billing.models.models import HotspotUser, Plan, Transaction
from hotspot_billing.schemas.payments import StkCallback, StkCallbackEnvelope
from hotspot_billing.services.provisioning_service import provisioning_service
from hotspot_billing.utils.clock import ensure_aware, utc_now
from hotspot_billing.utils.exceptions import InvalidCallbackError

logger = logging.getLogger(__name__)


class CallbackOutcome(str, enum.Enum):
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    NO_PLAN = "no_plan"
    SUCCESS = "success"


@dataclass
class CallbackResult:
    outcome: CallbackOutcome
    transaction_id: Optional[int] = None
    phone: Optional[str] = None
    active_until: Optional[datetime] = None
    provisioned: bool = False

    @property
    def message(self) -> str:
        if self.outcome is CallbackOutcome.NOT_FOUND:
            return "Transaction not found"
        if self.outcome is CallbackOutcome.DUPLICATE:
            return "Callback already processed"
        return "Callback processed"


def extend_active_until(current: Optional[datetime], duration: timedelta, now: datetime) -> datetime:
    """New end of an access window after buying ``duration`` more.

    An unexpired window is extended; an expired or missing one restarts from ``now``.
    """
    current = ensure_aware(current)
    base = current if current is not None and current > now else now
    return base + duration


def parse_callback(payload: Any) -> StkCallback:
    """Extract ``Body.stkCallback`` or raise InvalidCallbackError."""
    if not isinstance(payload, dict):
        raise InvalidCallbackError()
    try:
        envelope = StkCallbackEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise InvalidCallbackError(details=exc.errors()) from exc
    callback = envelope.body.stk_callback
    if not callback.checkout_request_id:
        raise InvalidCallbackError()
    return callback


class ReconciliationService:
    """Applies payment callbacks to transactions, entitlements and the router."""

    @staticmethod
    async def _resolve_plan(
        db: AsyncSession, transaction: Transaction, amount: Optional[int]
    ) -> Optional[Plan]:
        """
        Find the plan a payment was for.

        The plan chosen at /pay wins when it is still active and its price matches
        the amount paid. Otherwise the first active plan with that price is used.
        """
        if amount is None:
            amount = transaction.amount

        if transaction.plan_id is not None:
            plan = await plan_repository.get_active_plan(db, transaction.plan_id)
            if plan is not None and plan.price == amount:
                return plan

        return await plan_repository.find_active_plan_by_price(db, amount)

    @staticmethod
    async def _grant_access(db: AsyncSession, phone: str, plan: Plan, now: datetime) -> HotspotUser:
        """Insert or extend the entitlement for a phone number."""
        user = await user_repository.get_by_phone(db, phone, for_update=True)
        if user is None:
            user = HotspotUser(
                phone_number=phone,
                username=phone,
                password=phone,
                profile_name=plan.profile_name,
                active_until=extend_active_until(None, plan.duration, now),
            )
            try:
                return await user_repository.save(db, user)
            except IntegrityError:
                # a concurrent callback inserted the same phone first
                await db.rollback()
                user = await user_repository.get_by_phone(db, phone, for_update=True)
                if user is None:
                    raise

        user.profile_name = plan.profile_name
        user.active_until = extend_active_until(user.active_until, plan.duration, now)
        return await user_repository.save(db, user)

    @staticmethod
    async def handle_callback(
        db: AsyncSession,
        payload: Any,
        manager: RouterOSSessionManager,
        executor: RouterOSCommandExecutor,
        now: Optional[datetime] = None,
    ) -> CallbackResult:
        """
        Process one STK push result callback.

        Args:
            db: Database session
            payload: Decoded JSON body posted by Daraja
            manager: RouterOS session manager
            executor: RouterOS command executor
            now: Current time (defaults to UTC now)

        Returns:
            CallbackResult describing what happened

        Raises:
            InvalidCallbackError: If the body has no usable stkCallback
        """
        callback = parse_callback(payload)
        checkout_id = callback.checkout_request_id

        transaction = await transaction_repository.get_by_request_id(db, checkout_id)
        if transaction is None:
            logger.warning("Transaction not found for %s", checkout_id)
            return CallbackResult(outcome=CallbackOutcome.NOT_FOUND)

        if transaction.status.is_terminal:
            logger.info(
                "Ignoring duplicate callback for transaction %s (already %s)",
                transaction.id,
                transaction.status.value,
            )
            return CallbackResult(outcome=CallbackOutcome.DUPLICATE, transaction_id=transaction.id)

        if callback.result_code != 0:
            changed = await transaction_repository.mark_terminal(
                db, transaction, TransactionStatus.FAILED, result_desc=callback.result_desc
            )
            if not changed:
                return CallbackResult(outcome=CallbackOutcome.DUPLICATE, transaction_id=transaction.id)
            logger.info("Payment failed for transaction %s: %s", transaction.id, callback.result_desc)
            return CallbackResult(outcome=CallbackOutcome.FAILED, transaction_id=transaction.id)

        changed = await transaction_repository.mark_terminal(
            db,
            transaction,
            TransactionStatus.SUCCESS,
            receipt=callback.receipt,
            result_desc=callback.result_desc,
        )
        if not changed:
            return CallbackResult(outcome=CallbackOutcome.DUPLICATE, transaction_id=transaction.id)

        phone = callback.phone_number or transaction.phone_number
        amount = callback.amount
        plan = await ReconciliationService._resolve_plan(db, transaction, amount)
        if plan is None:
            logger.warning(
                "No plan found for amount %s (transaction %s); access not granted",
                amount,
                transaction.id,
            )
            return CallbackResult(outcome=CallbackOutcome.NO_PLAN, transaction_id=transaction.id, phone=phone)

        user = await ReconciliationService._grant_access(db, phone, plan, now or utc_now())
        result = CallbackResult(
            outcome=CallbackOutcome.SUCCESS,
            transaction_id=transaction.id,
            phone=phone,
            active_until=ensure_aware(user.active_until),
        )

        try:
            await provisioning_service.provision(manager, executor, phone, plan.profile_name)
        except Exception as exc:
            logger.error("Failed to create hotspot user %s: %s", phone, exc)
            try:
                await provisioning_service.enqueue_retry(
                    db, phone, plan.profile_name, transaction.id, str(exc)
                )
            except Exception:
                logger.exception("Could not queue provisioning retry for %s", phone)
                await db.rollback()
        else:
            result.provisioned = True
            try:
                await provisioning_service.resolve_open_job(db, phone)
            except Exception:
                logger.exception("Could not close provisioning retry for %s", phone)
                await db.rollback()

        return result


reconciliation_service = ReconciliationService()
