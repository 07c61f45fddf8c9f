"""Transaction repository for database operations."""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.models.enums import TransactionStatus
from hotspot_billing.models.models import Transaction


class TransactionRepository:
    """Repository for payment transaction database operations."""

    @staticmethod
    async def create_pending(
        db: AsyncSession, phone_number: str, amount: int, plan_id: Optional[int]
    ) -> Transaction:
        """
        Insert a pending transaction and commit.

        Args:
            db: Database session
            phone_number: Paying phone number (2547XXXXXXXX)
            amount: Amount requested
            plan_id: Plan the customer chose

        Returns:
            The created Transaction with generated ID
        """
        transaction = Transaction(
            phone_number=phone_number,
            amount=amount,
            plan_id=plan_id,
            status=TransactionStatus.PENDING,
        )
        db.add(transaction)
        await db.commit()
        await db.refresh(transaction)
        return transaction

    @staticmethod
    async def set_request_id(db: AsyncSession, transaction: Transaction, request_id: str) -> Transaction:
        """
        Store the gateway's CheckoutRequestID on a transaction and commit.

        Args:
            db: Database session
            transaction: Transaction to update
            request_id: Correlation id returned by the STK push

        Returns:
            The updated Transaction
        """
        transaction.mpesa_request_id = request_id
        await db.commit()
        await db.refresh(transaction)
        return transaction

    @staticmethod
    async def get_by_request_id(db: AsyncSession, request_id: str) -> Optional[Transaction]:
        """
        Fetch a transaction by its CheckoutRequestID.

        Args:
            db: Database session
            request_id: Correlation id from the payment callback

        Returns:
            Transaction object or None if not found
        """
        result = await db.execute(
            select(Transaction).where(Transaction.mpesa_request_id == request_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def mark_terminal(
        db: AsyncSession,
        transaction: Transaction,
        status: TransactionStatus,
        receipt: Optional[str] = None,
        result_desc: Optional[str] = None,
    ) -> bool:
        """
        Move a pending transaction to a terminal status and commit.

        The update is conditional on the row still being pending, so a duplicate or
        concurrent callback cannot overwrite an earlier outcome.

        Args:
            db: Database session
            transaction: Transaction to update
            status: SUCCESS or FAILED
            receipt: M-Pesa receipt number, for successful payments
            result_desc: Gateway result description

        Returns:
            True if this call performed the transition, False if the row was already terminal
        """
        values: dict = {"status": status, "result_desc": result_desc}
        if receipt is not None:
            values["mpesa_receipt"] = receipt

        result = await db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction.id,
                Transaction.status == TransactionStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        await db.refresh(transaction)
        return result.rowcount == 1


transaction_repository = TransactionRepository()
