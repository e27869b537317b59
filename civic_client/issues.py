"""Client-side list handling for issues: filter, sort, export, distances."""

from datetime import date, datetime, timezone

import pandas as pd

from .catalog import PRIORITY_RANK, STATUS
from .location import calculate_distance

DATE_FIELDS = ("createdAt", "updatedAt")
EXPORT_COLUMNS = ["ID", "Title", "Category", "Status", "Priority", "Reporter", "Created", "Location"]


def coordinates_of(issue):
    """(lat, lng) of an issue's GeoJSON point, or None."""
    location = issue.get("location") or {}
    coords = location.get("coordinates")
    if not coords or len(coords) < 2 or coords[0] is None or coords[1] is None:
        return None
    lng, lat = coords[0], coords[1]
    return float(lat), float(lng)


def parse_datetime(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def reporter_name(issue):
    reporter = issue.get("reportedBy")
    if not isinstance(reporter, dict):
        return ""
    return f"{reporter.get('firstName', '')} {reporter.get('lastName', '')}".strip()


def matches_search(issue, search):
    needle = search.lower()
    blob = " ".join([
        issue.get("title", ""),
        issue.get("description", ""),
        issue.get("category", ""),
        reporter_name(issue),
    ]).lower()
    return needle in blob


def filter_issues(issues, search="", status="all", priority="all", category="all"):
    result = []
    for it in issues:
        if search and not matches_search(it, search):
            continue
        if status != "all" and it.get("status") != status:
            continue
        if priority != "all" and it.get("priority") != priority:
            continue
        if category != "all" and it.get("category") != category:
            continue
        result.append(it)
    return result


def _sort_value(issue, sort_by):
    value = issue.get(sort_by)
    if sort_by in DATE_FIELDS:
        parsed = parse_datetime(value)
        return (parsed is not None, parsed.timestamp() if parsed else 0)
    if sort_by == "priority":
        return (True, PRIORITY_RANK.get(value, -1))
    if sort_by == "status":
        return (True, STATUS.index(value) if value in STATUS else len(STATUS))
    if isinstance(value, str):
        return (True, value.lower())
    if value is None:
        return (False, "")
    return (True, value)


def sort_issues(issues, sort_by="createdAt", order="desc"):
    return sorted(issues, key=lambda it: _sort_value(it, sort_by), reverse=(order == "desc"))


def issues_frame(issues):
    rows = []
    for it in issues:
        created = parse_datetime(it.get("createdAt"))
        rows.append({
            "ID": it.get("_id", ""),
            "Title": it.get("title", ""),
            "Category": it.get("category", ""),
            "Status": it.get("status", ""),
            "Priority": it.get("priority", ""),
            "Reporter": reporter_name(it),
            "Created": created.date().isoformat() if created else "",
            "Location": (it.get("address") or {}).get("formatted") or "N/A",
        })
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_csv(issues):
    return issues_frame(issues).to_csv(index=False)


def export_filename(today=None):
    today = today or date.today()
    return f"civic-issues-{today.isoformat()}.csv"


def visible_notes(issue, is_admin=False):
    """Admin notes a viewer may read; reporters only get the public ones."""
    notes = issue.get("adminNotes") or []
    if is_admin:
        return list(notes)
    return [n for n in notes if n.get("isPublic")]


def build_update_payload(issue, status=None, priority=None, note="", note_public=False,
                         scheduled_visit_at=None, schedule_confirmed=None, schedule_message=""):
    """Admin update body holding only what actually changed."""
    payload = {}
    if status and status != issue.get("status"):
        payload["status"] = status
    if priority and priority != issue.get("priority"):
        payload["priority"] = priority
    if note and note.strip():
        payload["adminNote"] = note.strip()
        payload["noteIsPublic"] = bool(note_public)
    if scheduled_visit_at:
        if isinstance(scheduled_visit_at, datetime):
            scheduled_visit_at = scheduled_visit_at.isoformat()
        payload["scheduledVisitAt"] = scheduled_visit_at
    if isinstance(schedule_confirmed, bool) and schedule_confirmed != bool(issue.get("scheduleConfirmed")):
        payload["scheduleConfirmed"] = schedule_confirmed
    if schedule_message and schedule_message.strip():
        payload["scheduleMessage"] = schedule_message.strip()[:200]
    return payload


def issue_distance(issue, origin):
    """Kilometres from ``origin`` (lat, lng) to the issue, or None."""
    coords = coordinates_of(issue)
    if coords is None or origin is None:
        return None
    return round(calculate_distance(origin[0], origin[1], coords[0], coords[1]), 2)


def sort_by_distance(issues, origin):
    def key(it):
        d = issue_distance(it, origin)
        return (d is None, d or 0)
    return sorted(issues, key=key)


def status_counts(issues):
    counts = {s: 0 for s in STATUS}
    for it in issues:
        s = it.get("status", "pending")
        counts[s] = counts.get(s, 0) + 1
    counts["total"] = len(issues)
    return counts


def _as_utc(value):
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def dashboard_stats(issues, now=None):
    """Headline numbers for the admin dashboard, computed from the issue list."""
    now = _as_utc(now or datetime.now(timezone.utc))
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    created = [parse_datetime(it.get("createdAt")) for it in issues]
    resolution_times = [
        it["actualResolutionTime"] for it in issues
        if it.get("status") == "resolved" and it.get("actualResolutionTime")
    ]
    return {
        "totalIssues": len(issues),
        "pendingIssues": sum(1 for it in issues if it.get("status") == "pending"),
        "inProgressIssues": sum(1 for it in issues if it.get("status") == "in_progress"),
        "resolvedIssues": sum(1 for it in issues if it.get("status") == "resolved"),
        "todayIssues": sum(1 for c in created if c and _as_utc(c) >= today_start),
        "avgResolutionTime": round(sum(resolution_times) / len(resolution_times)) if resolution_times else None,
    }


def urgent_open_issues(issues):
    return [it for it in issues if it.get("priority") == "urgent" and it.get("status") != "resolved"]


def recent_issues(issues, limit=10):
    return sort_issues(issues, "createdAt", "desc")[:limit]
