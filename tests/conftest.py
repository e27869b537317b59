"""Shared fixtures for the civic client tests."""

import io
import json

import pytest
import requests
from PIL import Image


def make_response(status=200, body=None, url="http://api.test/api/x"):
    """A real ``requests.Response`` carrying a JSON body."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    response._content = b"" if body is None else json.dumps(body).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response


@pytest.fixture
def sample_issues():
    return [
        {
            "_id": "a1",
            "title": "Deep pothole on Main St",
            "description": "Car tyres keep bursting",
            "category": "pothole",
            "status": "pending",
            "priority": "high",
            "location": {"type": "Point", "coordinates": [77.5946, 12.9716]},
            "address": {"formatted": "Main St, Bengaluru"},
            "reportedBy": {"firstName": "Asha", "lastName": "Rao"},
            "createdAt": "2026-10-01T09:00:00.000Z",
            "updatedAt": "2026-10-03T09:00:00.000Z",
            "adminNotes": [
                {"note": "Crew assigned", "isPublic": True},
                {"note": "Budget check pending", "isPublic": False},
            ],
        },
        {
            "_id": "b2",
            "title": "broken street light",
            "description": "Lamp out near the park",
            "category": "street_light",
            "status": "in_progress",
            "priority": "low",
            "location": {"type": "Point", "coordinates": [77.6100, 12.9800]},
            "address": {"formatted": "Park Rd, Bengaluru"},
            "reportedBy": {"firstName": "Vikram", "lastName": "Iyer"},
            "createdAt": "2026-10-05T09:00:00.000Z",
            "updatedAt": "2026-10-05T10:00:00.000Z",
        },
        {
            "_id": "c3",
            "title": "Overflowing garbage bin",
            "description": "Trash everywhere",
            "category": "garbage",
            "status": "resolved",
            "priority": "urgent",
            "location": {"type": "Point", "coordinates": [77.5000, 12.9000]},
            "reportedBy": {"firstName": "Meera", "lastName": "Nair"},
            "createdAt": "2026-09-20T09:00:00.000Z",
            "updatedAt": "2026-09-21T09:00:00.000Z",
        },
    ]


@pytest.fixture
def jpeg_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (320, 240), (90, 90, 90)).save(buf, format="JPEG")
    return buf.getvalue()
