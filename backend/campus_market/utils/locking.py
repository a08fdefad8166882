from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm import lazyload

from campus_market.extensions import db


def lock_rows(model, ids) -> list:
    """Take row locks on ``model`` rows and return them freshly loaded.

    Rows are locked in ascending id order so that two writers touching the
    same set never deadlock. The ``lock_version`` bump is a real write, which
    serialises writers even on SQLite where ``FOR UPDATE`` is not rendered.
    """
    wanted = sorted({int(i) for i in ids if i is not None})
    if not wanted:
        return []
    values = {"lock_version": model.lock_version + 1}
    if hasattr(model, "updated_at"):
        # Locking is not a modification.
        values["updated_at"] = model.updated_at
    for row_id in wanted:
        db.session.execute(
            update(model)
            .where(model.id == row_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
    return (
        model.query
        .filter(model.id.in_(wanted))
        .order_by(model.id.asc())
        # Eager joins would put FOR UPDATE on an outer join.
        .options(lazyload("*"))
        .populate_existing()
        .with_for_update()
        .all()
    )


def lock_row(model, row_id):
    rows = lock_rows(model, [row_id])
    return rows[0] if rows else None
