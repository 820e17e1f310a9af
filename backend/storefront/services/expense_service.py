# Overview: Shop expenses; recorded, listed and purged per day. Only reports read them.

from __future__ import annotations

from datetime import date, datetime

from ..extensions import db
from ..models import Expense
from storefront.time_utils import utcnow, day_bounds


def create_expense(*, amount_cents: int, description: str | None = None, occurred_at: datetime | None = None) -> Expense:
    expense = Expense(
        amount_cents=amount_cents,
        description=description,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(expense)
    db.session.commit()
    return expense


def _in_range(q, start: datetime | None, end: datetime | None):
    if start is not None:
        q = q.filter(Expense.occurred_at >= start)
    if end is not None:
        q = q.filter(Expense.occurred_at <= end)
    return q


def list_expenses(start: datetime | None = None, end: datetime | None = None) -> list[Expense]:
    q = _in_range(db.session.query(Expense), start, end)
    return q.order_by(Expense.occurred_at.desc(), Expense.id.desc()).all()


def total_expenses_cents(start: datetime | None = None, end: datetime | None = None) -> int:
    q = _in_range(db.session.query(db.func.coalesce(db.func.sum(Expense.amount_cents), 0)), start, end)
    return int(q.scalar() or 0)


def delete_expenses_for_day(day: date) -> int:
    """Delete every expense of one calendar day; returns how many were removed."""
    start, end = day_bounds(day)
    deleted = (
        db.session.query(Expense)
        .filter(Expense.occurred_at >= start, Expense.occurred_at <= end)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
