# rpc.py
"""
Procedure registry and dispatch.

Each procedure is a plain function ``fn(ctx, data)`` where ``ctx`` is the
request-scoped RequestContext and ``data`` the validated input model.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

import pydantic

from errors import MethodNotAllowedError, NotFoundError, ValidationError
from schemas import ProcedureInput

logger = logging.getLogger(__name__)

QUERY = "query"
MUTATION = "mutation"


@dataclass(frozen=True)
class RequestContext:
    """Caller identity and storage handle for one request."""
    user_id: str
    db: Any  # sqlalchemy.orm.Session
    position_retries: int = 5


@dataclass(frozen=True)
class Procedure:
    fn: Callable[[RequestContext, ProcedureInput], Any]
    schema: Type[ProcedureInput]
    kind: str


def router(prefix: str, procedures: Dict[str, Procedure]) -> Dict[str, Procedure]:
    return {f"{prefix}.{name}": proc for name, proc in procedures.items()}


def parse_input(schema: Type[ProcedureInput], raw: Optional[dict]) -> ProcedureInput:
    try:
        return schema.model_validate(raw or {})
    except pydantic.ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationError("Invalid input", errors) from e


def dispatch(registry: Dict[str, Procedure], name: str, ctx: RequestContext,
             raw_input: Optional[dict], kind: str):
    """Validate ``raw_input`` against the procedure's schema and run it."""
    proc = registry.get(name)
    if proc is None:
        raise NotFoundError("procedure")
    if proc.kind != kind:
        raise MethodNotAllowedError(f"{name} is a {proc.kind}")
    data = parse_input(proc.schema, raw_input)
    logger.debug("Calling %s for user %s", name, ctx.user_id)
    return proc.fn(ctx, data)
