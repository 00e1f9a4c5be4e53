"""
IRIS Research Administration
Blueprint helpers shared by the route modules.
"""

from flask import request
from sqlalchemy import func, select

from iris.models import db


def _int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (ValueError, TypeError):
        return default


def paginate_query(stmt, default_limit=200, max_limit=1000):
    """Run a ``select()`` statement with ``?limit=&offset=`` applied.

    limit is capped at max_limit; negative offsets count as 0.

    Returns:
        (rows, total) where total ignores limit/offset.
    """
    total = db.session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    limit = max(min(_int_arg("limit", default_limit), max_limit), 0)
    offset = max(_int_arg("offset", 0), 0)
    rows = db.session.execute(stmt.limit(limit).offset(offset)).scalars().all()
    return rows, total
