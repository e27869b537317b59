"""Issue categories, statuses and priorities as the backend defines them."""

CATEGORIES = [
    {"id": "pothole", "label": "Pothole", "color": "#ef4444"},
    {"id": "street_light", "label": "Street Light", "color": "#f59e0b"},
    {"id": "drainage", "label": "Drainage", "color": "#3b82f6"},
    {"id": "traffic_signal", "label": "Traffic Signal", "color": "#f97316"},
    {"id": "road_damage", "label": "Road Damage", "color": "#b91c1c"},
    {"id": "sidewalk", "label": "Sidewalk", "color": "#a16207"},
    {"id": "graffiti", "label": "Graffiti", "color": "#db2777"},
    {"id": "garbage", "label": "Garbage / Waste", "color": "#10b981"},
    {"id": "water_leak", "label": "Water Leak", "color": "#0ea5e9"},
    {"id": "park_maintenance", "label": "Park Maintenance", "color": "#16a34a"},
    {"id": "noise_complaint", "label": "Noise Complaint", "color": "#8b5cf6"},
    {"id": "other", "label": "Other", "color": "#6b7280"},
]

STATUS = ["pending", "in_progress", "resolved", "rejected", "duplicate"]

# folium.Icon colour names
STATUS_COLORS = {
    "pending": "red",
    "in_progress": "orange",
    "resolved": "green",
    "rejected": "gray",
    "duplicate": "lightgray",
}

PRIORITIES = ["low", "medium", "high", "urgent"]
PRIORITY_RANK = {p: i for i, p in enumerate(PRIORITIES)}

SORT_OPTIONS = [
    {"id": "createdAt", "label": "Date Created"},
    {"id": "updatedAt", "label": "Last Updated"},
    {"id": "title", "label": "Title"},
    {"id": "status", "label": "Status"},
    {"id": "priority", "label": "Priority"},
    {"id": "category", "label": "Category"},
]

VOTE_TYPES = ["upvote", "downvote"]

# notification flags the backend keeps under user.preferences.notifications
NOTIFICATION_PREFERENCES = [
    {"id": "email", "label": "Email notifications", "default": True},
    {"id": "push", "label": "Push notifications", "default": False},
    {"id": "issueUpdates", "label": "Updates on my issues", "default": True},
    {"id": "adminMessages", "label": "Messages from administrators", "default": True},
    {"id": "weeklyDigest", "label": "Weekly digest", "default": False},
]


def category_meta(cat_id):
    for c in CATEGORIES:
        if c["id"] == cat_id:
            return c
    return CATEGORIES[-1]


def category_label(cat_id):
    return category_meta(cat_id)["label"]


def status_label(status):
    return (status or "pending").replace("_", " ").title()


def status_color(status):
    return STATUS_COLORS.get(status, "blue")
