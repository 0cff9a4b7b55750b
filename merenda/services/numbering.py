from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from merenda.app.db.base import utcnow


def next_document_number(
    db: Session,
    column: InstrumentedAttribute,
    kind: str,
    *,
    at: datetime | None = None,
) -> str:
    """
    Next human-readable number for a document family, e.g. ``PD-2026-000042``.

    The sequence restarts every year. Callers must flush previously added
    documents before asking for the next number (sessions do not autoflush).
    """
    year = (at or utcnow()).year
    prefix = f"{kind}-{year}-"
    taken = db.execute(
        select(func.count())
        .select_from(column.class_)
        .where(column.like(f"{prefix}%"))
    ).scalar_one()
    return f"{prefix}{int(taken) + 1:06d}"
