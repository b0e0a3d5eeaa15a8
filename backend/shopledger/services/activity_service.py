# Overview: Service-layer operations for the activity log; fire-and-forget audit writes and read views.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import ActivityLog, User
from ..validation import parse_date_range
from .pagination import paginate

# Actions recorded by the routes
ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ACTION_DELETE = "DELETE"
ACTION_LOGIN = "LOGIN"
ACTION_LOGOUT = "LOGOUT"
ACTION_LOGIN_FAILED = "LOGIN_FAILED"
ACTION_PAYMENT = "PAYMENT"
ACTION_STATUS_CHANGE = "STATUS_CHANGE"
ACTION_STOCK_ADJUST = "STOCK_ADJUST"
ACTION_IMPORT = "IMPORT"


def log_activity(
    *,
    user_id: int | None,
    action: str,
    resource_type: str | None = None,
    resource_id: int | None = None,
    description: str | None = None,
    changes: dict | None = None,
    ip_address: str | None = None,
) -> ActivityLog | None:
    """
    Record an audit entry.

    Called after the business transaction has committed, in its own
    transaction. A failure here is logged and swallowed: the operation it
    describes has already happened and must not be reported as failed.
    """
    if not action:
        current_app.logger.warning("Activity log entry without action skipped (resource=%s)", resource_type)
        return None
    try:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            changes=changes,
            ip_address=ip_address,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to write activity log entry (%s %s)", action, resource_type)
        return None


def list_activity(
    *,
    action: str | None = None,
    resource_type: str | None = None,
    resource_id: int | None = None,
    user_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(ActivityLog)
    if action:
        query = query.filter(ActivityLog.action == action.upper())
    if resource_type:
        query = query.filter(ActivityLog.resource_type == resource_type.upper())
    if resource_id is not None:
        query = query.filter(ActivityLog.resource_id == resource_id)
    if user_id is not None:
        query = query.filter(ActivityLog.user_id == user_id)
    start, end = parse_date_range(start_date, end_date)
    if start is not None:
        query = query.filter(ActivityLog.created_at >= start)
    if end is not None:
        query = query.filter(ActivityLog.created_at <= end)
    if search:
        query = query.filter(ActivityLog.description.ilike(f"%{search.strip()}%"))

    query = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
    return paginate(query, page, per_page)


def get_activity_summary(*, start_date: str | None = None, end_date: str | None = None) -> dict:
    """Counts by action, by resource type and the most active users."""
    base = db.session.query(ActivityLog)
    start, end = parse_date_range(start_date, end_date)
    if start is not None:
        base = base.filter(ActivityLog.created_at >= start)
    if end is not None:
        base = base.filter(ActivityLog.created_at <= end)

    by_action = (
        base.with_entities(ActivityLog.action, func.count(ActivityLog.id))
        .group_by(ActivityLog.action)
        .all()
    )
    by_resource = (
        base.with_entities(ActivityLog.resource_type, func.count(ActivityLog.id))
        .group_by(ActivityLog.resource_type)
        .all()
    )
    top_users = (
        base.join(User, User.id == ActivityLog.user_id)
        .with_entities(User.id, User.username, func.count(ActivityLog.id).label("n"))
        .group_by(User.id, User.username)
        .order_by(func.count(ActivityLog.id).desc())
        .limit(10)
        .all()
    )

    return {
        "total": base.count(),
        "by_action": {a: n for a, n in by_action},
        "by_resource_type": {(r or "NONE"): n for r, n in by_resource},
        "top_users": [{"user_id": uid, "username": name, "count": n} for uid, name, n in top_users],
    }


def list_activity_types() -> dict:
    """Distinct actions and resource types present in the log, for filter pickers."""
    actions = db.session.query(ActivityLog.action).distinct().order_by(ActivityLog.action.asc()).all()
    resource_types = (
        db.session.query(ActivityLog.resource_type)
        .filter(ActivityLog.resource_type.isnot(None))
        .distinct()
        .order_by(ActivityLog.resource_type.asc())
        .all()
    )
    return {
        "actions": [a for (a,) in actions],
        "resource_types": [r for (r,) in resource_types],
    }
