# models.py

import sqlite3
import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import UniqueConstraint, event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

COLUMN_TYPES = ("TEXT", "NUMBER", "USER", "STATUS", "ATTACHMENT")


def _new_id():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enforce foreign keys on SQLite so ON DELETE CASCADE applies."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Base(db.Model):
    __tablename__ = "base"

    id         = db.Column(db.String(36), primary_key=True, default=_new_id)
    name       = db.Column(db.Text, nullable=False)
    owner_id   = db.Column(db.String(255), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)

    tables = db.relationship(
        "Table", back_populates="base", cascade="all, delete-orphan",
        passive_deletes=True, order_by="[Table.created_at, Table.id]",
    )

    def to_dict(self, with_tables=False):
        data = {
            "id": self.id,
            "name": self.name,
            "ownerId": self.owner_id,
            "createdAt": self.created_at.isoformat(),
        }
        if with_tables:
            data["tables"] = [table.to_dict() for table in self.tables]
        return data

    def __repr__(self):
        return f"<Base {self.name} owner={self.owner_id}>"


class Table(db.Model):
    __tablename__ = "grid_table"

    id         = db.Column(db.String(36), primary_key=True, default=_new_id)
    name       = db.Column(db.Text, nullable=False)
    base_id    = db.Column(db.String(36), db.ForeignKey("base.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_now)

    base    = db.relationship("Base", back_populates="tables")
    columns = db.relationship(
        "Column", back_populates="table", cascade="all, delete-orphan",
        passive_deletes=True, order_by="[Column.position, Column.id]",
    )
    rows    = db.relationship(
        "Row", back_populates="table", cascade="all, delete-orphan",
        passive_deletes=True, order_by="[Row.position, Row.id]",
    )

    def to_dict(self, with_grid=False):
        data = {
            "id": self.id,
            "name": self.name,
            "baseId": self.base_id,
            "createdAt": self.created_at.isoformat(),
        }
        if with_grid:
            data["columns"] = [column.to_dict() for column in self.columns]
            data["rows"] = [row.to_dict(with_cells=True) for row in self.rows]
        return data

    def __repr__(self):
        return f"<Table {self.name} base={self.base_id}>"


class Column(db.Model):
    __tablename__ = "grid_column"

    id       = db.Column(db.String(36), primary_key=True, default=_new_id)
    name     = db.Column(db.Text, nullable=False)
    type     = db.Column(db.Enum(*COLUMN_TYPES, name="column_type"), nullable=False, default="TEXT")
    table_id = db.Column(db.String(36), db.ForeignKey("grid_table.id", ondelete="CASCADE"),
                         nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    table = db.relationship("Table", back_populates="columns")
    cells = db.relationship("Cell", back_populates="column", cascade="all, delete-orphan",
                            passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("table_id", "position", name="unique_column_position"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "tableId": self.table_id,
            "position": self.position,
        }

    def __repr__(self):
        return f"<Column {self.name} [{self.position}] table={self.table_id}>"


class Row(db.Model):
    __tablename__ = "grid_row"

    id       = db.Column(db.String(36), primary_key=True, default=_new_id)
    table_id = db.Column(db.String(36), db.ForeignKey("grid_table.id", ondelete="CASCADE"),
                         nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    table = db.relationship("Table", back_populates="rows")
    cells = db.relationship("Cell", back_populates="row", cascade="all, delete-orphan",
                            passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("table_id", "position", name="unique_row_position"),
    )

    def to_dict(self, with_cells=False):
        data = {"id": self.id, "tableId": self.table_id, "position": self.position}
        if with_cells:
            data["cells"] = [cell.to_dict() for cell in self.cells]
        return data

    def __repr__(self):
        return f"<Row [{self.position}] table={self.table_id}>"


class Cell(db.Model):
    __tablename__ = "grid_cell"

    row_id    = db.Column(db.String(36), db.ForeignKey("grid_row.id", ondelete="CASCADE"),
                          primary_key=True)
    column_id = db.Column(db.String(36), db.ForeignKey("grid_column.id", ondelete="CASCADE"),
                          primary_key=True)
    value     = db.Column(db.Text, nullable=False, default="")

    row    = db.relationship("Row", back_populates="cells")
    column = db.relationship("Column", back_populates="cells")

    # (row_id, column_id) is the primary key: at most one cell per row/column pair

    def to_dict(self):
        return {"rowId": self.row_id, "columnId": self.column_id, "value": self.value}

    def __repr__(self):
        return f"<Cell [{self.row_id},{self.column_id}] = {self.value}>"
