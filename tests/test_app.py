"""
Smoke tests for the Streamlit pages.

The app runs under ``AppTest`` against a real ``CivicAPI`` whose HTTP
session is a mock, so each test can assert on what reached the backend.
"""

import json
from datetime import date
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
import requests
from streamlit.testing.v1 import AppTest

from civic_client.api import ApiClient, CivicAPI, TokenStore
from civic_client.catalog import STATUS
from civic_client.location import LocationService
from tests.conftest import make_response

APP_PATH = str(Path(__file__).resolve().parent.parent / "app.py")
BASE_URL = "http://backend.test/api"

CITIZEN = {"_id": "u1", "role": "user", "firstName": "Asha", "lastName": "Rao"}
ADMIN = {"_id": "adm", "role": "admin", "firstName": "Ravi", "lastName": "Kumar"}


def fake_backend(issues):
    """Route (method, url) to canned replies shaped like the backend's."""
    by_id = {it["_id"]: it for it in issues}

    def route(method, url, **kwargs):
        path = url[len(BASE_URL):]
        if method == "POST" and path == "/auth/login":
            return make_response(200, {"success": True, "data": {
                "user": CITIZEN, "tokens": {"accessToken": "A", "refreshToken": "R"}}})
        if method == "GET" and path == "/issues":
            return make_response(200, {"success": True, "data": {"issues": issues, "pagination": {}}})
        if method == "POST" and path == "/issues":
            return make_response(201, {"success": True, "data": {"issue": {"_id": "new"}}})
        issue_id = path.rsplit("/", 1)[-1]
        if method in ("GET", "PUT") and path.startswith("/issues/") and issue_id in by_id:
            return make_response(200, {"success": True, "data": {"issue": by_id[issue_id]}})
        return make_response(200, {"success": True, "data": {}})

    return route


def sent(session, method, path):
    return [c for c in session.request.call_args_list if c.args == (method, BASE_URL + path)]


def click(at, label):
    next(b for b in at.button if b.label == label).click()
    return at.run()


@pytest.fixture
def session(sample_issues):
    session = Mock(spec=requests.Session)
    session.request.side_effect = fake_backend(sample_issues)
    return session


@pytest.fixture
def geolocator():
    geo = Mock()
    geo.reverse.return_value = SimpleNamespace(raw={
        "lat": "12.9716", "lon": "77.5946",
        "address": {"road": "MG Road", "city": "Bengaluru", "state": "Karnataka",
                    "postcode": "560001", "country_code": "in"},
    })
    return geo


def make_app(session, geolocator, tokens, **state):
    at = AppTest.from_file(APP_PATH, default_timeout=30)
    at.session_state["tokens"] = tokens
    at.session_state["api"] = CivicAPI(ApiClient(base_url=BASE_URL, tokens=tokens, session=session))
    at.session_state["location_service"] = LocationService(geolocator=geolocator, min_delay=0)
    for key, value in state.items():
        at.session_state[key] = value
    return at.run()


class TestLogin:
    def test_sign_in_stores_tokens(self, session, geolocator):
        tokens = TokenStore()
        at = make_app(session, geolocator, tokens)
        assert not at.exception

        at.text_input(key="login_email").input("asha@example.com")
        at.text_input(key="login_password").input("secret")
        at = click(at, "Sign in")

        assert not at.exception
        login = sent(session, "POST", "/auth/login")
        assert login[0].kwargs["json"] == {"email": "asha@example.com", "password": "secret"}
        assert tokens.is_authenticated
        assert tokens.user_id == "u1"
        assert at.session_state["api"].tokens is at.session_state["tokens"]


class TestReportIssue:
    def test_submission_sends_lng_lat_point(self, session, geolocator):
        tokens = TokenStore("A", "R", dict(CITIZEN))
        at = make_app(session, geolocator, tokens, clicked_latlng=[12.9716, 77.5946])

        at.radio(key="page").set_value("Report Issue").run()
        at.text_input(key="report_title").input("Pothole on MG Road")
        at.text_area(key="report_description").input("Deep hole near the metro exit")
        at = click(at, "Submit Issue")

        assert not at.exception
        created = sent(session, "POST", "/issues")
        assert len(created) == 1
        fields = created[0].kwargs["data"]
        assert fields["title"] == "Pothole on MG Road"
        assert json.loads(fields["location"])["coordinates"] == [77.5946, 12.9716]
        assert json.loads(fields["address"])["city"] == "Bengaluru"
        assert created[0].kwargs["headers"]["Authorization"] == "Bearer A"

    def test_missing_title_is_not_sent(self, session, geolocator):
        tokens = TokenStore("A", "R", dict(CITIZEN))
        at = make_app(session, geolocator, tokens, clicked_latlng=[12.9716, 77.5946])

        at.radio(key="page").set_value("Report Issue").run()
        at.text_area(key="report_description").input("Deep hole near the metro exit")
        at = click(at, "Submit Issue")

        assert not sent(session, "POST", "/issues")
        assert any("Title and Description" in e.value for e in at.error)


class TestAdminUpdate:
    def test_update_sends_changed_fields(self, session, geolocator):
        tokens = TokenStore("A", "R", dict(ADMIN))
        at = make_app(session, geolocator, tokens, selected_issue_id="a1")
        assert not at.exception

        at.radio(key="page").set_value("Issue Details").run()
        at.selectbox(key="update_detail_a1_status").select_index(STATUS.index("resolved"))
        at.date_input(key="update_detail_a1_date").set_value(date(2026, 10, 20))
        at = click(at, "Update issue")

        assert not at.exception
        updates = sent(session, "PUT", "/issues/a1")
        assert len(updates) == 1
        assert updates[0].kwargs["json"] == {"status": "resolved", "scheduledVisitAt": "2026-10-20T10:00:00"}

    def test_unchanged_form_sends_nothing(self, session, geolocator):
        tokens = TokenStore("A", "R", dict(ADMIN))
        at = make_app(session, geolocator, tokens, selected_issue_id="a1")

        at.radio(key="page").set_value("Issue Details").run()
        at = click(at, "Update issue")

        assert not sent(session, "PUT", "/issues/a1")
        assert any(i.value == "Nothing changed." for i in at.info)
