# Overview: Shared page/per_page handling for list endpoints.

from __future__ import annotations

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def paginate(query, page: int | None = None, per_page: int | None = None, *, serialize=None) -> dict:
    """
    Run a query one page at a time.

    Returns a dict with 'items', 'count' and 'pagination' metadata.
    serialize defaults to each row's to_dict().
    """
    serialize = serialize or (lambda row: row.to_dict())
    per_page = min(max(per_page or DEFAULT_PER_PAGE, 1), MAX_PER_PAGE)  # Default 20, range 1..100
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [serialize(r) for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
