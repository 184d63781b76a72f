# tables.py
"""
Table/grid service.

Tables are created with three starter TEXT columns. Columns and rows are
appended at max(position) + 1; positions are unique per table and a
concurrent append that loses the race is retried. Deleting a column or a
row leaves a gap in the positions. Cells are sparse: a missing cell reads
as empty, and adding a column does not backfill cells for existing rows.
"""

import logging

from faker import Faker
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from bases import find_owned_base
from errors import ConflictError, NotFoundError, ValidationError
from models import Base, Cell, Column, Row, Table
from rpc import MUTATION, QUERY, Procedure, router
from schemas import (AddColumnInput, AddRowInput, ByIdInput, CreateTableInput,
                     DeleteColumnInput, DeleteRowInput, EnsureDefaultTableInput,
                     UpdateCellInput, UpdateColumnNameInput)

logger = logging.getLogger(__name__)

fake = Faker()

DEFAULT_TABLE_NAME = "Table 1"
DEFAULT_COLUMNS = ("Name", "Notes", "Status")
CELL_UPSERT_ATTEMPTS = 2
POSITION_CONSTRAINTS = {Column: "unique_column_position", Row: "unique_row_position"}


def placeholder_text():
    return " ".join(fake.words(3))


def _get_or_404(ctx, model, ident, kind):
    obj = ctx.db.get(model, ident)
    if obj is None:
        raise NotFoundError(kind)
    return obj


def _next_position(ctx, model, table_id):
    current = ctx.db.execute(
        select(func.max(model.position)).where(model.table_id == table_id)
    ).scalar()
    return 0 if current is None else current + 1


def _commit(ctx):
    try:
        ctx.db.commit()
    except Exception:
        ctx.db.rollback()
        raise


def _is_position_conflict(error, model):
    """True when ``error`` is the (table_id, position) unique constraint of ``model``."""
    constraint = POSITION_CONSTRAINTS[model]
    diag = getattr(error.orig, "diag", None)
    if getattr(diag, "constraint_name", None) == constraint:
        return True
    # SQLite names the columns instead of the constraint
    table = model.__tablename__
    message = str(error.orig)
    return constraint in message or f"{table}.table_id, {table}.position" in message


def _commit_with_position_retry(ctx, model, kind, work):
    """Run ``work`` and commit, redoing the whole unit when a position collides."""
    attempts = max(1, ctx.position_retries)
    for attempt in range(1, attempts + 1):
        try:
            result = work()
            ctx.db.commit()
            return result
        except IntegrityError as e:
            ctx.db.rollback()
            if not _is_position_conflict(e, model):
                raise
            logger.warning("Position conflict adding %s (attempt %d/%d)", kind, attempt, attempts)
        except Exception:
            ctx.db.rollback()
            raise
    raise ConflictError(f"Could not assign a {kind} position after {attempts} attempts")


def _default_columns(table):
    return [
        Column(name=name, type="TEXT", table_id=table.id, position=position)
        for position, name in enumerate(DEFAULT_COLUMNS)
    ]


def _create_table(ctx, base_id, name):
    # table and starter columns commit together or not at all
    try:
        table = Table(name=name, base_id=base_id)
        ctx.db.add(table)
        ctx.db.flush()
        ctx.db.add_all(_default_columns(table))
        ctx.db.commit()
    except Exception:
        ctx.db.rollback()
        raise
    logger.info("Created table %s in base %s", table.id, base_id)
    return table.to_dict()


def create_table(ctx, data):
    base = _get_or_404(ctx, Base, data.base_id, "base")
    return _create_table(ctx, base.id, data.name)


def ensure_default_table(ctx, data):
    """Return the base's first table, creating "Table 1" if it has none."""
    base = find_owned_base(ctx, data.base_id, for_update=True)
    existing = ctx.db.execute(
        select(Table).where(Table.base_id == base.id).order_by(Table.created_at, Table.id).limit(1)
    ).scalar_one_or_none()
    if existing is not None:
        return existing.to_dict()
    return _create_table(ctx, base.id, DEFAULT_TABLE_NAME)


def get_table(ctx, data):
    table = ctx.db.get(Table, data.id, options=[
        selectinload(Table.columns),
        selectinload(Table.rows).selectinload(Row.cells),
    ])
    if table is None:
        raise NotFoundError("table")
    return table.to_dict(with_grid=True)


def update_column_name(ctx, data):
    column = _get_or_404(ctx, Column, data.column_id, "column")
    column.name = data.name
    _commit(ctx)
    logger.info("Renamed column %s", column.id)
    return column.to_dict()


def add_column(ctx, data):
    def work():
        table = _get_or_404(ctx, Table, data.table_id, "table")
        column = Column(
            name=data.name,
            type="TEXT",
            table_id=table.id,
            position=_next_position(ctx, Column, table.id),
        )
        ctx.db.add(column)
        ctx.db.flush()
        return column.to_dict()

    column = _commit_with_position_retry(ctx, Column, "column", work)
    logger.info("Added column %s to table %s at %d", column["id"], data.table_id, column["position"])
    return column


def add_row(ctx, data):
    def work():
        table = _get_or_404(ctx, Table, data.table_id, "table")
        row = Row(table_id=table.id, position=_next_position(ctx, Row, table.id))
        ctx.db.add(row)
        ctx.db.flush()
        columns = ctx.db.execute(select(Column).where(Column.table_id == table.id)).scalars().all()
        ctx.db.add_all(
            Cell(row_id=row.id, column_id=column.id, value=placeholder_text())
            for column in columns
        )
        ctx.db.flush()
        return row.to_dict()

    row = _commit_with_position_retry(ctx, Row, "row", work)
    logger.info("Added row %s to table %s at %d", row["id"], data.table_id, row["position"])
    return row


def delete_column(ctx, data):
    column = _get_or_404(ctx, Column, data.column_id, "column")
    deleted = column.to_dict()
    ctx.db.delete(column)
    _commit(ctx)
    logger.info("Deleted column %s", deleted["id"])
    return deleted


def delete_row(ctx, data):
    row = _get_or_404(ctx, Row, data.row_id, "row")
    deleted = row.to_dict()
    ctx.db.delete(row)
    _commit(ctx)
    logger.info("Deleted row %s", deleted["id"])
    return deleted


def update_cell(ctx, data):
    row = _get_or_404(ctx, Row, data.row_id, "row")
    column = _get_or_404(ctx, Column, data.column_id, "column")
    if row.table_id != column.table_id:
        raise ValidationError("Row and column belong to different tables",
                              [{"field": "columnId", "message": "not in the row's table"}])

    for attempt in range(1, CELL_UPSERT_ATTEMPTS + 1):
        cell = ctx.db.get(Cell, (row.id, column.id))
        if cell is None:
            cell = Cell(row_id=row.id, column_id=column.id, value=data.value)
            ctx.db.add(cell)
        else:
            cell.value = data.value
        try:
            ctx.db.commit()
            return cell.to_dict()
        except IntegrityError:
            # another request inserted the same cell first; retry as an update
            ctx.db.rollback()
            if attempt == CELL_UPSERT_ATTEMPTS:
                raise
            logger.warning("Cell %s/%s inserted concurrently, retrying", row.id, column.id)
        except Exception:
            ctx.db.rollback()
            raise


procedures = router("table", {
    "create":           Procedure(create_table, CreateTableInput, MUTATION),
    "ensureDefault":    Procedure(ensure_default_table, EnsureDefaultTableInput, MUTATION),
    "getById":          Procedure(get_table, ByIdInput, QUERY),
    "updateColumnName": Procedure(update_column_name, UpdateColumnNameInput, MUTATION),
    "updateCell":       Procedure(update_cell, UpdateCellInput, MUTATION),
    "addColumn":        Procedure(add_column, AddColumnInput, MUTATION),
    "addRow":           Procedure(add_row, AddRowInput, MUTATION),
    "deleteColumn":     Procedure(delete_column, DeleteColumnInput, MUTATION),
    "deleteRow":        Procedure(delete_row, DeleteRowInput, MUTATION),
})
