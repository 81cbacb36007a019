# Overview: Atomic allocation of human-readable transaction numbers.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import TransactionSequence


TRANSACTION_PREFIX = "TXN"


def format_transaction_number(business_date: date, number: int, pad: int = 4) -> str:
    return f"{TRANSACTION_PREFIX}-{business_date:%Y%m%d}-{number:0{pad}d}"


def next_transaction_number(business_date: date) -> str:
    """
    Allocate the next TXN-YYYYMMDD-NNNN number for a business date.

    Runs inside the caller's transaction: the UPDATE holds the counter row
    lock until the sale commits, and a rolled-back sale releases its number.
    The first sale of a day inserts the row under a savepoint so a
    concurrent insert surfaces as IntegrityError and falls back to UPDATE.
    """
    stmt = (
        update(TransactionSequence)
        .where(TransactionSequence.business_date == business_date)
        .values(next_number=TransactionSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(TransactionSequence(business_date=business_date, next_number=2))
            return format_transaction_number(business_date, 1)
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(TransactionSequence.next_number)
        .filter_by(business_date=business_date)
        .scalar()
    )
    return format_transaction_number(business_date, current - 1)
