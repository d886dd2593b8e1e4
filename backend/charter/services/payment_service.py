"""
Payment initiation and confirmation for accepted bookings.

IDEMPOTENCY STRATEGY
====================

Initiation:
  The idempotency key is a hash of (customer, quote). It does not change
  between attempts, so a double-clicked "Pay now" or a client retry finds
  the same key. A partial unique index forbids a second *processing*
  transaction under one key: when two initiations race, one insert wins and
  the other hits DuplicateKeyError, re-reads, and reuses the winner's row.
  A failed attempt leaves the key free for a fresh transaction.

Confirmation:
  Webhooks are delivered at least once. The transaction row only leaves
  ``processing`` through a compare-and-swap, so a redelivered callback
  matches zero rows and becomes a no-op. Bookings are never marked Paid
  unless the settled amount equals the amount frozen at acceptance.
"""

import hashlib
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from charter.core.config import get_settings
from charter.core.exceptions import (
    AmountMismatchError,
    CharterError,
    DuplicateKeyError,
    InvalidStateError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from charter.core.logging import get_logger
from charter.core.metrics import (
    record_payment_confirmation,
    record_payment_initiation,
    record_transition,
)
from charter.core.security import ROLE_ADMIN, CurrentUser, require_identity
from charter.db.types import round_money
from charter.domain.query import (
    PAYMENT_SEARCH_FIELDS,
    PageSlice,
    apply_filters,
    by_status,
    matches_search,
    paginate,
)
from charter.domain.statuses import (
    TERMINAL_TRANSACTION_STATUSES,
    PaymentStatus,
    QuoteStatus,
    TransactionStatus,
)
from charter.models.booking import Booking
from charter.models.payment import PaymentTransaction
from charter.models.quote import Quote
from charter.services.audit_service import record_audit
from charter.services.booking_service import get_booking, get_owned_booking
from charter.services.interfaces.payment_gateway import CheckoutRequest, PaymentGateway
from charter.services.interfaces.persistence import PersistenceGateway

logger = get_logger(__name__)

# Bump the prefix if the key derivation ever changes, so old keys never collide.
IDEMPOTENCY_KEY_VERSION = "payment-v2"


def payment_idempotency_key(customer_id: str, quote_id: str) -> str:
    raw = f"{IDEMPOTENCY_KEY_VERSION}:{customer_id}:{quote_id}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass
class PaymentInitiation:
    transaction_id: str
    redirect_url: str
    reused: bool = False


async def _find_processing(gateway: PersistenceGateway, key: str) -> Optional[PaymentTransaction]:
    found = await gateway.query(
        PaymentTransaction,
        PaymentTransaction.idempotency_key == key,
        PaymentTransaction.status == TransactionStatus.PROCESSING.value,
    )
    return found[0] if found else None


async def initiate_payment(
    gateway: PersistenceGateway,
    payments: PaymentGateway,
    actor: Optional[CurrentUser],
    booking_id: str,
) -> PaymentInitiation:
    """
    Start (or resume) settlement of the caller's booking and return the
    gateway's hosted checkout URL.
    """
    actor = require_identity(actor)
    settings = get_settings()

    booking = await get_owned_booking(gateway, actor, booking_id)
    if booking.payment_status == PaymentStatus.PAID:
        raise InvalidStateError("booking already paid")

    key = payment_idempotency_key(actor.id, booking.quote_id)
    reference = booking.booking_reference
    amount = booking.total_amount
    currency = booking.currency

    tx = await _find_processing(gateway, key)
    reused = tx is not None
    if tx is None:
        try:
            async with gateway.transaction():
                tx = await gateway.insert(PaymentTransaction(
                    booking_id=booking_id,
                    quote_id=booking.quote_id,
                    user_id=actor.id,
                    amount=amount,
                    currency=currency,
                    status=TransactionStatus.PROCESSING.value,
                    idempotency_key=key,
                ))
                await record_audit(
                    gateway, actor, "INITIATE_PAYMENT", "payment_transaction", tx.id,
                    booking_id=booking_id, amount=amount,
                )
        except DuplicateKeyError:
            # A concurrent initiation won the insert; converge on its row.
            tx = await _find_processing(gateway, key)
            if tx is None:
                raise
            reused = True
        else:
            record_transition(
                "transaction",
                TransactionStatus.NOT_STARTED.value,
                TransactionStatus.PROCESSING.value,
            )

    tx_id = tx.id
    if tx.checkout_url:
        record_payment_initiation("reused")
        logger.info("payment_initiation_reused", transaction_id=tx_id, booking_id=booking_id)
        return PaymentInitiation(transaction_id=tx_id, redirect_url=tx.checkout_url, reused=True)

    request = CheckoutRequest(
        transaction_id=tx_id,
        booking_reference=reference,
        amount=amount,
        currency=currency,
        success_url=settings.PAYMENT_SUCCESS_URL,
        cancel_url=settings.PAYMENT_CANCEL_URL,
        idempotency_key=key,
    )
    try:
        session = await payments.create_checkout_session(request)
    except PaymentGatewayError as exc:
        await _fail_transaction(gateway, actor, tx_id, str(exc))
        raise
    except CharterError:
        raise
    except Exception as exc:
        await _fail_transaction(gateway, actor, tx_id, str(exc))
        raise PaymentGatewayError(f"Checkout session failed for {tx_id}") from exc

    async with gateway.transaction():
        await gateway.update(
            PaymentTransaction, tx_id,
            {"gateway_session_id": session.session_id, "checkout_url": session.redirect_url},
            expected={"status": TransactionStatus.PROCESSING},
        )

    record_payment_initiation("reused" if reused else "created")
    logger.info(
        "payment_initiated",
        transaction_id=tx_id,
        booking_id=booking_id,
        gateway=payments.name,
        amount=str(amount),
        reused=reused,
    )
    return PaymentInitiation(transaction_id=tx_id, redirect_url=session.redirect_url, reused=reused)


async def _fail_transaction(
    gateway: PersistenceGateway,
    actor: CurrentUser,
    tx_id: str,
    reason: str,
) -> None:
    record_payment_initiation("gateway_error")
    logger.error("payment_gateway_failed", transaction_id=tx_id, error=reason)
    async with gateway.transaction():
        failed = await gateway.update(
            PaymentTransaction, tx_id,
            {"status": TransactionStatus.FAILED, "failure_reason": reason[:500]},
            expected={"status": TransactionStatus.PROCESSING},
        )
        if failed:
            await record_audit(
                gateway, actor, "INITIATE_PAYMENT", "payment_transaction", tx_id,
                outcome="FAILURE", reason=reason,
            )
    if failed:
        record_transition(
            "transaction",
            TransactionStatus.PROCESSING.value,
            TransactionStatus.FAILED.value,
        )


async def confirm_payment(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    transaction_id: str,
    outcome: str,
    amount: Optional[Decimal] = None,
) -> PaymentTransaction:
    """
    Apply a gateway-reported outcome to a processing transaction.

    Redeliveries are no-ops. A successful settlement whose amount disagrees
    with the booking total is recorded for reconciliation and raises
    AmountMismatchError; the booking stays unpaid.
    """
    actor = require_identity(actor)
    if outcome not in (TransactionStatus.SUCCEEDED.value, TransactionStatus.FAILED.value):
        raise ValidationError([f"unsupported payment outcome: {outcome}"])

    tx = await gateway.get(PaymentTransaction, transaction_id)
    if tx is None:
        raise NotFoundError(f"Payment transaction {transaction_id} not found")
    if tx.status in {s.value for s in TERMINAL_TRANSACTION_STATUSES}:
        record_payment_confirmation("duplicate")
        logger.info("payment_confirmation_duplicate", transaction_id=transaction_id, status=tx.status)
        return tx

    booking = await gateway.get(Booking, tx.booking_id)
    if booking is None:
        raise NotFoundError(f"Booking {tx.booking_id} not found")

    succeeded = outcome == TransactionStatus.SUCCEEDED.value
    expected_total = booking.total_amount
    settled = round_money(amount) if amount is not None else tx.amount
    mismatch = succeeded and (settled != expected_total or tx.amount != expected_total)
    booking_id = booking.id
    quote_id = tx.quote_id

    async with gateway.transaction():
        swapped = await gateway.update(
            PaymentTransaction, transaction_id,
            {
                "status": outcome,
                "settled_amount": settled if succeeded else None,
                "needs_reconciliation": mismatch,
            },
            expected={"status": TransactionStatus.PROCESSING},
        )
        if swapped:
            if mismatch:
                await record_audit(
                    gateway, actor, "PAYMENT_AMOUNT_MISMATCH", "payment_transaction", transaction_id,
                    outcome="FAILURE", expected=expected_total, received=settled,
                )
            else:
                if succeeded:
                    await gateway.update(
                        Booking, booking_id,
                        {"payment_status": PaymentStatus.PAID},
                        expected={"payment_status": [PaymentStatus.UNPAID, PaymentStatus.PARTIAL]},
                    )
                    await gateway.update(
                        Quote, quote_id,
                        {"status": QuoteStatus.BOOKED},
                        expected={"status": QuoteStatus.ACCEPTED},
                    )
                await record_audit(
                    gateway, actor, "CONFIRM_PAYMENT", "payment_transaction", transaction_id,
                    outcome="SUCCESS" if succeeded else "FAILURE",
                    booking_id=booking_id, amount=settled,
                )

    if not swapped:
        # Another delivery settled it between our read and the swap.
        record_payment_confirmation("duplicate")
        logger.info("payment_confirmation_duplicate", transaction_id=transaction_id)
        return await gateway.get(PaymentTransaction, transaction_id)

    record_transition("transaction", TransactionStatus.PROCESSING.value, outcome)
    if mismatch:
        record_payment_confirmation("mismatch")
        logger.error(
            "payment_amount_mismatch",
            transaction_id=transaction_id,
            booking_id=booking_id,
            expected=str(expected_total),
            received=str(settled),
        )
        raise AmountMismatchError(transaction_id, expected_total, settled)

    record_payment_confirmation(outcome)
    if succeeded:
        record_transition("payment_status", PaymentStatus.UNPAID.value, PaymentStatus.PAID.value)
        record_transition("quote", QuoteStatus.ACCEPTED.value, QuoteStatus.BOOKED.value)
    logger.info(
        "payment_confirmed",
        transaction_id=transaction_id,
        booking_id=booking_id,
        outcome=outcome,
        amount=str(settled),
    )
    return await gateway.get(PaymentTransaction, transaction_id)


async def get_payment_status(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    booking_id: str,
) -> dict:
    """Booking settlement state plus the latest transaction, for polling after checkout."""
    booking = await get_booking(gateway, actor, booking_id)
    latest = await gateway.query(
        PaymentTransaction,
        PaymentTransaction.booking_id == booking_id,
        order_by=(PaymentTransaction.created_at.desc(),),
        limit=1,
    )
    tx = latest[0] if latest else None
    return {
        "booking_id": booking_id,
        "payment_status": booking.payment_status,
        "transaction_id": tx.id if tx else None,
        "transaction_status": tx.status if tx else TransactionStatus.NOT_STARTED.value,
        "needs_reconciliation": tx.needs_reconciliation if tx else False,
    }


async def list_payments(
    gateway: PersistenceGateway,
    actor: Optional[CurrentUser],
    page: int = 1,
    page_size: int = 10,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> PageSlice:
    """Payment history: the caller's own transactions, or all of them for admins."""
    actor = require_identity(actor)
    criteria = [] if actor.role == ROLE_ADMIN else [PaymentTransaction.user_id == actor.id]
    transactions = await gateway.query(
        PaymentTransaction, *criteria, order_by=(PaymentTransaction.created_at.desc(),),
    )
    transactions = apply_filters(
        transactions,
        by_status(status),
        matches_search(search, PAYMENT_SEARCH_FIELDS),
    )
    return paginate(transactions, page, page_size)
