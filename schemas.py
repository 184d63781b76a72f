# schemas.py
"""Input schemas for the grid procedures. camelCase on the wire, snake_case in Python."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProcedureInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmptyInput(ProcedureInput):
    pass


class ByIdInput(ProcedureInput):
    id: str


class CreateBaseInput(ProcedureInput):
    name: str = Field(..., min_length=1)


class CreateTableInput(ProcedureInput):
    base_id: str
    name: str = Field(..., min_length=1)


class EnsureDefaultTableInput(ProcedureInput):
    base_id: str


class UpdateColumnNameInput(ProcedureInput):
    column_id: str
    name: str


class UpdateCellInput(ProcedureInput):
    row_id: str
    column_id: str
    value: str


class AddColumnInput(ProcedureInput):
    table_id: str
    name: str


class AddRowInput(ProcedureInput):
    table_id: str


class DeleteColumnInput(ProcedureInput):
    column_id: str


class DeleteRowInput(ProcedureInput):
    row_id: str
