"""Unit tests for the AI endpoints wrapper and its local fallbacks."""

from datetime import date
from unittest.mock import Mock

import pytest

from civic_client.ai import (
    AIService, combine_analyses, fallback_categorization, fallback_suggestions, report_range, validate_image,
    weekly_report_filename, weekly_report_markdown,
)
from civic_client.api import ApiClient
from civic_client.errors import ApiError, ImageAnalysisError

JPEG = ("hole.jpg", b"\xff\xd8\xff" + b"0" * 64, "image/jpeg")


@pytest.fixture
def client():
    return Mock(spec=ApiClient)


class TestFallbacks:
    def test_keyword_categorization(self):
        result = fallback_categorization("There is a huge POTHOLE and loose asphalt")

        assert result["suggestedCategory"] == "pothole"
        assert result["confidence"] == 0.7
        assert result["reasoning"] == "Detected keywords: pothole, hole, asphalt"
        assert result["source"] == "keyword_matching"

    def test_first_matching_category_wins(self):
        # "light" belongs to street_light and traffic_signal; street_light is checked first
        assert fallback_categorization("traffic light broken")["suggestedCategory"] == "street_light"

    def test_default_categorization(self):
        result = fallback_categorization("neighbours are noisy")

        assert result == {
            "suggestedCategory": "other",
            "confidence": 0.3,
            "reasoning": "No specific keywords detected",
            "source": "default",
        }

    def test_suggestions(self):
        assert fallback_suggestions()["department"] == "Public Works"
        assert len(fallback_suggestions()["steps"]) == 4


class TestCombineAnalyses:
    def test_empty_gives_fallback(self):
        assert combine_analyses([])["source"] == "fallback"

    def test_single_is_returned_as_is(self):
        one = {"description": "x", "suggestedCategory": "garbage", "confidence": 0.9}

        assert combine_analyses([one]) is one

    def test_majority_category_and_mean_confidence(self):
        analyses = [
            {"description": "Hole in road", "suggestedCategory": "pothole", "confidence": 0.9},
            {"description": "Trash bag", "suggestedCategory": "garbage", "confidence": 0.5},
            {"description": "", "suggestedCategory": "pothole", "confidence": 0.4},
        ]

        combined = combine_analyses(analyses)

        assert combined["description"] == "Hole in road. Trash bag"
        assert combined["suggestedCategory"] == "pothole"
        assert combined["confidence"] == pytest.approx(0.6)
        assert combined["imageCount"] == 3
        assert combined["individualAnalyses"] == analyses

    def test_tie_goes_to_first_seen(self):
        combined = combine_analyses([
            {"suggestedCategory": "drainage", "confidence": 1},
            {"suggestedCategory": "garbage", "confidence": 0},
        ])

        assert combined["suggestedCategory"] == "drainage"


class TestValidation:
    def test_rejects_unsupported_type(self):
        with pytest.raises(ImageAnalysisError):
            validate_image("doc.pdf", b"x", "application/pdf")

    def test_rejects_large_file(self):
        with pytest.raises(ImageAnalysisError):
            validate_image("big.jpg", b"0" * (5 * 1024 * 1024 + 1), "image/jpeg")

    def test_accepts_jpeg(self):
        validate_image(*JPEG)


class TestAIService:
    def test_analyze_image_posts_base64(self, client):
        client.post.return_value = {"description": "A pothole", "suggestedCategory": "pothole", "confidence": 0.8}

        result = AIService(client, enabled=True).analyze_image(*JPEG)

        path = client.post.call_args.args[0]
        body = client.post.call_args.kwargs["json_body"]
        assert path == "/ai/analyze-image"
        assert body["filename"] == "hole.jpg"
        assert body["fileType"] == "image/jpeg"
        assert body["image"].startswith("/9j/")
        assert result["suggestedCategory"] == "pothole"

    def test_backend_failure_falls_back(self, client):
        client.post.side_effect = ApiError("Server error", status=500)
        service = AIService(client, enabled=True)

        assert service.analyze_image(*JPEG)["source"] == "fallback"
        assert service.categorize_issue("garbage pile")["suggestedCategory"] == "garbage"
        assert service.generate_resolution_suggestions({"category": "pothole"})["source"] == "fallback"

    def test_disabled_never_calls_backend(self, client):
        service = AIService(client, enabled=False)

        service.analyze_image(*JPEG)
        service.categorize_issue("pothole")
        service.generate_resolution_suggestions({})

        client.post.assert_not_called()

    def test_batch_limit(self, client):
        with pytest.raises(ImageAnalysisError):
            AIService(client, enabled=False).analyze_images([JPEG] * 6)

    def test_batch_combines(self, client):
        client.post.side_effect = [
            {"description": "a", "suggestedCategory": "graffiti", "confidence": 0.4},
            {"description": "b", "suggestedCategory": "graffiti", "confidence": 0.8},
        ]

        combined = AIService(client, enabled=True).analyze_images([JPEG, JPEG])

        assert combined["suggestedCategory"] == "graffiti"
        assert combined["imageCount"] == 2

    def test_health(self, client):
        client.get.return_value = {"status": "healthy"}
        assert AIService(client).check_service_health() is True

        client.get.side_effect = ApiError("down", status=0)
        assert AIService(client).check_service_health() is False

    def test_stats_fallback(self, client):
        client.get.side_effect = ApiError("Forbidden", status=403)

        assert AIService(client).get_service_stats()["analysisCount"] == 0


class TestWeeklyReport:
    def test_date_range_is_sent(self, client):
        client.get.return_value = {"summary": "quiet week", "issueCount": 2}

        AIService(client).get_weekly_report(date(2026, 10, 1), date(2026, 10, 8))

        assert client.get.call_args.args[0] == "/ai/weekly-report"
        assert client.get.call_args.kwargs["params"] == {"startDate": "2026-10-01", "endDate": "2026-10-08"}

    def test_default_range_is_last_seven_days(self):
        assert report_range(end_date=date(2026, 10, 18)) == (date(2026, 10, 11), date(2026, 10, 18))

    def test_markdown(self):
        report = {
            "summary": "Mostly potholes.",
            "issueCount": 4,
            "topCategories": [{"category": "pothole", "count": 3}],
            "priorityDistribution": {"high": 1},
            "statusDistribution": {"pending": 4},
            "insights": ["Roads near schools"],
            "recommendations": ["Resurface Main St"],
        }

        text = weekly_report_markdown(report, date(2026, 10, 11), date(2026, 10, 18))

        assert text.startswith("# Civic Issues Weekly Report\n2026-10-11 to 2026-10-18\n")
        assert "- Total Issues: 4" in text
        assert "- pothole: 3 issues" in text
        assert "- high: 1 issues" in text
        assert "1. Resurface Main St" in text
        assert "Trend Analysis" not in text

    def test_filename(self):
        assert weekly_report_filename(date(2026, 10, 11), date(2026, 10, 18)) == \
            "civic-issues-report-2026-10-11-to-2026-10-18.md"

    def test_health_needs_a_dict_reply(self, client):
        client.get.return_value = "OK"

        assert AIService(client).check_service_health() is False

    def test_config_reflects_settings(self, client):
        config = AIService(client, enabled=False).config()

        assert config["enabled"] is False
        assert config["maxBatchSize"] == 5
        assert config["maxFileSize"] == 5 * 1024 * 1024
