# Overview: Credit ledger; customer debt balances, BORROW/PAYMENT transactions and settlement.

"""
Credit Ledger

WHY: Shops sell on credit to known customers. The running balance must always
be explainable from the transaction log.

DESIGN PRINCIPLES:
- Customer.balance_cents == SUM(BORROW) - SUM(PAYMENT), always >= 0
- DebtTransactions are append-only
- A BORROW is always a credit sale (sales_service.sell with is_credit=True)
- A PAYMENT settles the customer's open credit sales oldest-first through
  SalePayment rows; a payment larger than the balance is rejected
- Balance increments are atomic; payment decrements are conditional
  (balance -= n WHERE balance >= n)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InvalidInput, NotFound, Overpayment
from ..models import Customer, DebtTransaction, DebtType, Sale, SalePayment
from ..validation import MAX_PRICE_CENTS, optional_text, positive_int, required_text
from .concurrency import atomic_increment, conditional_decrement, lock_for_update, run_with_retry


@dataclass
class PaymentResult:
    customer: Customer
    transaction: DebtTransaction
    settlements: list[SalePayment] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "customer": self.customer.to_dict(),
            "transaction": self.transaction.to_dict(),
            "settlements": [s.to_dict() for s in self.settlements],
            "remaining_balance_cents": self.customer.balance_cents,
        }


# =============================================================================
# CUSTOMERS
# =============================================================================

def get_customer(customer_id: int, *, lock: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id)
    if lock:
        query = lock_for_update(query)
    customer = query.first()
    if customer is None:
        raise NotFound("Customer not found", details={"customer_id": customer_id})
    return customer


def create_customer(*, name: str, phone: str | None = None) -> Customer:
    customer = Customer(
        name=required_text("name", name, max_length=128),
        phone=optional_text("phone", phone, max_length=32),
        balance_cents=0,
    )
    db.session.add(customer)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise InvalidInput("Customer name already exists", details={"name": name})
    return customer


def list_debtors() -> list[Customer]:
    """Customers with an outstanding balance, largest first."""
    return (
        db.session.query(Customer)
        .filter(Customer.balance_cents > 0)
        .order_by(Customer.balance_cents.desc(), Customer.name.asc())
        .all()
    )


# =============================================================================
# BORROW
# =============================================================================

def record_borrow_inner(
    customer: Customer,
    amount_cents: int,
    *,
    product_id: int | None = None,
    quantity: int | None = None,
    sale_request_id: str | None = None,
    note: str | None = None,
) -> DebtTransaction:
    """Raise the customer's balance and log the BORROW. No commit."""
    if amount_cents <= 0:
        raise InvalidInput("amount_cents must be > 0")
    atomic_increment(customer, "balance_cents", amount_cents)
    tx = DebtTransaction(
        customer_id=customer.id,
        type=DebtType.BORROW,
        amount_cents=amount_cents,
        product_id=product_id,
        quantity=quantity,
        sale_request_id=sale_request_id,
        note=note,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def borrow(customer_id: int, product_id: int, quantity: int, *, actor: str | None = None):
    """A customer takes goods on credit: a credit sale charged to their balance."""
    # Lazy import: sales_service imports this module.
    from .sales_service import sell

    return sell(product_id, quantity, customer_id=customer_id, is_credit=True, actor=actor)


# =============================================================================
# PAYMENT
# =============================================================================

def _settle_open_sales_inner(customer: Customer, tx: DebtTransaction) -> list[SalePayment]:
    """Spread a payment over the customer's unpaid credit sales, oldest first."""
    open_sales = (
        lock_for_update(
            db.session.query(Sale).filter(
                Sale.customer_id == customer.id,
                Sale.is_paid.is_(False),
                Sale.balance_cents > 0,
            )
        )
        .order_by(Sale.sold_at.asc(), Sale.id.asc())
        .all()
    )

    left = tx.amount_cents
    settlements = []
    for sale in open_sales:
        if left <= 0:
            break
        portion = min(sale.balance_cents, left)
        if not conditional_decrement(sale, "balance_cents", portion):
            continue
        if sale.balance_cents == 0:
            sale.is_paid = True
        settlement = SalePayment(
            sale_id=sale.id,
            customer_id=customer.id,
            debt_transaction_id=tx.id,
            amount_cents=portion,
        )
        db.session.add(settlement)
        settlements.append(settlement)
        left -= portion

    if left > 0:
        # Balance not backed by open sales (legacy data); nothing left to settle.
        current_app.logger.warning(
            "Payment %s for customer %s left %s cents unallocated to sales",
            tx.id, customer.id, left,
        )
    db.session.flush()
    return settlements


def pay_debt(customer_id: int, amount_cents: int, *, note: str | None = None) -> PaymentResult:
    """
    Record a payment against a customer's balance.

    Raises Overpayment when amount exceeds the balance, leaving it untouched.
    """
    amount_cents = positive_int("amount_cents", amount_cents, maximum=MAX_PRICE_CENTS)
    note = optional_text("note", note, max_length=255)

    def _op():
        customer = get_customer(customer_id, lock=True)
        if amount_cents > customer.balance_cents:
            raise Overpayment(
                "Payment exceeds outstanding balance",
                details={"customer_id": customer.id, "amount_cents": amount_cents,
                         "balance_cents": customer.balance_cents},
            )
        if not conditional_decrement(customer, "balance_cents", amount_cents):
            raise Overpayment(
                "Payment exceeds outstanding balance",
                details={"customer_id": customer.id, "amount_cents": amount_cents,
                         "balance_cents": customer.balance_cents},
            )

        tx = DebtTransaction(
            customer_id=customer.id,
            type=DebtType.PAYMENT,
            amount_cents=amount_cents,
            note=note,
        )
        db.session.add(tx)
        db.session.flush()

        settlements = _settle_open_sales_inner(customer, tx)
        db.session.commit()
        return PaymentResult(customer, tx, settlements)

    return run_with_retry(_op)


# =============================================================================
# READS
# =============================================================================

def get_customer_history(customer_id: int) -> dict:
    customer = get_customer(customer_id)
    transactions = (
        db.session.query(DebtTransaction)
        .filter(DebtTransaction.customer_id == customer.id)
        .order_by(DebtTransaction.created_at.desc(), DebtTransaction.id.desc())
        .all()
    )
    open_sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id, Sale.is_paid.is_(False))
        .order_by(Sale.sold_at.asc(), Sale.id.asc())
        .all()
    )
    total_borrowed = sum(t.amount_cents for t in transactions if t.type == DebtType.BORROW)
    total_paid = sum(t.amount_cents for t in transactions if t.type == DebtType.PAYMENT)
    return {
        "customer": customer.to_dict(),
        "transactions": [t.to_dict() for t in transactions],
        "open_sales": [s.to_dict() for s in open_sales],
        "total_borrowed_cents": total_borrowed,
        "total_paid_cents": total_paid,
    }


def reconcile_customer(customer_id: int) -> dict:
    """Compare the stored balance with SUM(BORROW) - SUM(PAYMENT)."""
    customer = get_customer(customer_id)
    rows = (
        db.session.query(DebtTransaction.type, func.coalesce(func.sum(DebtTransaction.amount_cents), 0))
        .filter(DebtTransaction.customer_id == customer.id)
        .group_by(DebtTransaction.type)
        .all()
    )
    totals = {debt_type: int(total) for debt_type, total in rows}
    expected = totals.get(DebtType.BORROW, 0) - totals.get(DebtType.PAYMENT, 0)
    return {
        "customer_id": customer.id,
        "balance_cents": customer.balance_cents,
        "expected_balance_cents": expected,
        "is_consistent": expected == customer.balance_cents,
    }
