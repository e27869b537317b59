"""
Backend AI endpoints (/ai/*) with local fallbacks.

Every call degrades to a deterministic local answer when AI is switched off
or the backend cannot be reached, so reporting never blocks on it.
"""

import base64
from collections import Counter
from datetime import date, datetime, timedelta, timezone

from .config import get_settings
from .errors import ApiError, ImageAnalysisError
from .logging_config import get_logger

logger = get_logger(__name__)

CATEGORY_KEYWORDS = {
    "pothole": ["pothole", "hole", "road damage", "asphalt", "pavement"],
    "street_light": ["light", "lamp", "lighting", "dark", "bulb"],
    "drainage": ["drain", "water", "flood", "sewer", "drainage"],
    "traffic_signal": ["traffic", "signal", "light", "intersection", "stop"],
    "sidewalk": ["sidewalk", "walkway", "pedestrian", "path"],
    "graffiti": ["graffiti", "vandalism", "spray", "tag"],
    "garbage": ["garbage", "trash", "litter", "waste", "dump"],
}


def fallback_analysis():
    return {
        "description": "Image uploaded successfully. AI analysis is currently unavailable.",
        "suggestedCategory": "other",
        "confidence": 0,
        "source": "fallback",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def fallback_categorization(description):
    text = (description or "").lower()
    for category, terms in CATEGORY_KEYWORDS.items():
        found = [t for t in terms if t in text]
        if found:
            return {
                "suggestedCategory": category,
                "confidence": 0.7,
                "reasoning": f"Detected keywords: {', '.join(found)}",
                "source": "keyword_matching",
            }
    return {
        "suggestedCategory": "other",
        "confidence": 0.3,
        "reasoning": "No specific keywords detected",
        "source": "default",
    }


def fallback_suggestions():
    return {
        "estimatedTime": "varies",
        "department": "Public Works",
        "priority": "standard",
        "steps": [
            "Issue will be reviewed by relevant department",
            "Assessment will be conducted if necessary",
            "Appropriate action will be taken based on severity",
            "Updates will be provided as work progresses",
        ],
        "source": "fallback",
    }


def combine_analyses(analyses):
    if not analyses:
        return fallback_analysis()
    if len(analyses) == 1:
        return analyses[0]

    descriptions = [a.get("description") for a in analyses if a.get("description")]
    categories = [a.get("suggestedCategory") for a in analyses if a.get("suggestedCategory")]
    scores = [a.get("confidence") or 0 for a in analyses]

    # Counter keeps first-seen order, so ties go to the earliest category
    most_common = Counter(categories).most_common(1)[0][0] if categories else "other"

    return {
        "description": ". ".join(descriptions),
        "suggestedCategory": most_common,
        "confidence": sum(scores) / len(scores),
        "imageCount": len(analyses),
        "individualAnalyses": analyses,
    }


def validate_image(filename, content, content_type):
    settings = get_settings()
    if content_type not in settings.supported_image_types:
        raise ImageAnalysisError(f"Unsupported image type: {content_type}")
    if len(content) > settings.upload_max_bytes:
        raise ImageAnalysisError(f"{filename} is larger than {settings.upload_max_bytes // (1024 * 1024)}MB")


class AIService:
    def __init__(self, client, enabled=None):
        self.client = client
        self.enabled = get_settings().ai_enabled if enabled is None else enabled

    def analyze_image(self, filename, content, content_type="image/jpeg"):
        validate_image(filename, content, content_type)
        if not self.enabled:
            return fallback_analysis()
        try:
            return self.client.post("/ai/analyze-image", json_body={
                "image": base64.b64encode(content).decode("ascii"),
                "filename": filename,
                "fileType": content_type,
            })
        except ApiError as e:
            logger.warning("ai_analyze_image_failed", filename=filename, status=e.status)
            return fallback_analysis()

    def analyze_images(self, images):
        """``images`` is a list of ``(filename, bytes, content_type)``."""
        limit = get_settings().max_batch_size
        if len(images) > limit:
            raise ImageAnalysisError(f"At most {limit} images can be analyzed at once")
        return combine_analyses([self.analyze_image(*image) for image in images])

    def categorize_issue(self, description, image_analyses=None):
        if not self.enabled:
            return fallback_categorization(description)
        try:
            return self.client.post("/ai/categorize-issue", json_body={
                "description": description,
                "imageAnalyses": image_analyses or [],
                "context": "civic_infrastructure",
            })
        except ApiError as e:
            logger.warning("ai_categorize_failed", status=e.status)
            return fallback_categorization(description)

    def generate_resolution_suggestions(self, issue):
        if not self.enabled:
            return fallback_suggestions()
        try:
            return self.client.post("/ai/resolution-suggestions", json_body={
                "category": issue.get("category"),
                "description": issue.get("description"),
                "imageAnalyses": (issue.get("aiAnalysis") or {}).get("imageAnalyses") or [],
                "priority": issue.get("priority"),
                "location": issue.get("location"),
            })
        except ApiError as e:
            logger.warning("ai_suggestions_failed", status=e.status)
            return fallback_suggestions()

    def check_service_health(self):
        try:
            data = self.client.get("/ai/health")
        except ApiError:
            return False
        return isinstance(data, dict) and data.get("status") == "healthy"

    def get_service_stats(self):
        try:
            return self.client.get("/ai/stats")
        except ApiError as e:
            logger.warning("ai_stats_failed", status=e.status)
            return {"analysisCount": 0, "accuracy": 0, "averageResponseTime": 0, "lastUpdate": None}

    def get_weekly_report(self, start_date=None, end_date=None):
        """Admin-only AI summary of issues reported between two dates (default: last 7 days)."""
        start_date, end_date = report_range(start_date, end_date)
        return self.client.get("/ai/weekly-report", params={
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
        })

    def config(self):
        settings = get_settings()
        return {
            "enabled": self.enabled,
            "supportedFormats": list(settings.supported_image_types),
            "maxFileSize": settings.upload_max_bytes,
            "maxBatchSize": settings.max_batch_size,
        }


def report_range(start_date=None, end_date=None):
    end_date = end_date or date.today()
    return start_date or end_date - timedelta(days=7), end_date


def weekly_report_markdown(report, start_date, end_date):
    """Downloadable markdown rendering of a weekly report."""
    lines = [
        "# Civic Issues Weekly Report",
        f"{start_date} to {end_date}",
        "",
        "## Summary",
        report.get("summary") or "",
        "",
        "## Statistics",
        f"- Total Issues: {report.get('issueCount', 0)}",
        "",
        "### Top Categories",
    ]
    lines += [f"- {c.get('category')}: {c.get('count')} issues" for c in report.get("topCategories") or []]
    for title, key in (("Priority Distribution", "priorityDistribution"), ("Status Distribution", "statusDistribution")):
        lines += ["", f"### {title}"]
        lines += [f"- {name}: {count} issues" for name, count in (report.get(key) or {}).items()]
    for title, key in (("Key Insights", "insights"), ("Recommendations", "recommendations")):
        lines += ["", f"## {title}"]
        lines += [f"{i}. {text}" for i, text in enumerate(report.get(key) or [], start=1)]
    if report.get("trendAnalysis"):
        lines += ["", "## Trend Analysis", report["trendAnalysis"]]
    return "\n".join(lines) + "\n"


def weekly_report_filename(start_date, end_date):
    return f"civic-issues-report-{start_date}-to-{end_date}.md"
