# bases.py
"""Base registry: bases are listed, created and fetched per owning user."""

import logging

from sqlalchemy import select

from errors import NotFoundError
from models import Base
from rpc import MUTATION, QUERY, Procedure, router
from schemas import ByIdInput, CreateBaseInput, EmptyInput

logger = logging.getLogger(__name__)


def find_owned_base(ctx, base_id, for_update=False):
    """Ownership is part of the lookup; someone else's base is simply not found."""
    stmt = select(Base).where(Base.id == base_id, Base.owner_id == ctx.user_id)
    if for_update:
        stmt = stmt.with_for_update()
    base = ctx.db.execute(stmt).scalar_one_or_none()
    if base is None:
        raise NotFoundError("base")
    return base


def list_bases(ctx, data=None):
    stmt = (
        select(Base)
        .where(Base.owner_id == ctx.user_id)
        .order_by(Base.created_at.desc(), Base.id)
    )
    return [base.to_dict() for base in ctx.db.execute(stmt).scalars()]


def create_base(ctx, data):
    base = Base(name=data.name, owner_id=ctx.user_id)
    ctx.db.add(base)
    try:
        ctx.db.commit()
    except Exception:
        ctx.db.rollback()
        raise
    logger.info("Created base %s for user %s", base.id, ctx.user_id)
    return base.to_dict()


def get_base(ctx, data):
    return find_owned_base(ctx, data.id).to_dict(with_tables=True)


procedures = router("base", {
    "getAll":  Procedure(list_bases, EmptyInput, QUERY),
    "create":  Procedure(create_base, CreateBaseInput, MUTATION),
    "getById": Procedure(get_base, ByIdInput, QUERY),
})
