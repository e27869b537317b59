"""
REST client for the Civic Issues backend.

One ``requests.Session`` per ``ApiClient``. The bearer token is attached to
every call except the authentication endpoints; a 401 triggers a single
refresh-token exchange and a replay of the original request.
"""

import json

import requests

from .config import get_settings
from .errors import NETWORK_ERROR_MESSAGE, ApiError
from .issues import build_update_payload
from .logging_config import get_logger

logger = get_logger(__name__)

AUTH_ENDPOINTS = (
    "/auth/login",
    "/auth/admin/login",
    "/auth/register",
    "/auth/admin/register",
    "/auth/refresh-token",
)


class TokenStore:
    """Access/refresh token pair plus the signed-in user."""

    def __init__(self, access_token=None, refresh_token=None, user=None):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.user = user

    def set_tokens(self, tokens, user=None):
        self.access_token = tokens.get("accessToken")
        self.refresh_token = tokens.get("refreshToken")
        if user is not None:
            self.user = user

    def clear(self):
        self.access_token = None
        self.refresh_token = None
        self.user = None

    @property
    def is_authenticated(self):
        return bool(self.access_token)

    @property
    def is_admin(self):
        return bool(self.user) and self.user.get("role") == "admin"

    @property
    def user_id(self):
        if not self.user:
            return None
        return self.user.get("_id") or self.user.get("id")


def is_auth_endpoint(path):
    return any(path.endswith(endpoint) for endpoint in AUTH_ENDPOINTS)


def unwrap(body):
    """Return ``data`` from the backend's ``{"success", "data"}`` envelope."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class ApiClient:
    def __init__(self, base_url=None, timeout=None, tokens=None, session=None):
        settings = get_settings()
        self.base_url = (base_url or settings.api_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.tokens = tokens if tokens is not None else TokenStore()
        self.session = session or requests.Session()

    def url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, path, json_body):
        headers = {}
        if json_body:
            headers["Content-Type"] = "application/json"
        if not is_auth_endpoint(path) and self.tokens.access_token:
            headers["Authorization"] = f"Bearer {self.tokens.access_token}"
        return headers

    def _send(self, method, path, params=None, json_body=None, data=None, files=None, timeout=None):
        try:
            return self.session.request(
                method,
                self.url(path),
                params=params,
                json=json_body,
                data=data,
                files=files,
                headers=self._headers(path, json_body is not None),
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("api_network_error", method=method, path=path, error=str(e))
            raise ApiError(NETWORK_ERROR_MESSAGE, status=0) from e

    def refresh(self):
        """Exchange the refresh token for a new pair. Returns True on success."""
        if not self.tokens.refresh_token:
            return False
        response = self._send("POST", "/auth/refresh-token", json_body={"refreshToken": self.tokens.refresh_token})
        if not response.ok:
            logger.warning("token_refresh_failed", status=response.status_code)
            return False
        try:
            body = unwrap(response.json())
        except ValueError:
            body = None
        tokens = (body.get("tokens") if isinstance(body, dict) else None) or {}
        if not tokens.get("accessToken"):
            logger.warning("token_refresh_failed", status=response.status_code, reason="no tokens in reply")
            return False
        self.tokens.set_tokens(tokens)
        logger.info("token_refreshed")
        return True

    def request(self, method, path, params=None, json_body=None, data=None, files=None, timeout=None):
        response = self._send(method, path, params, json_body, data, files, timeout)

        if response.status_code == 401 and not is_auth_endpoint(path):
            if self.refresh():
                response = self._send(method, path, params, json_body, data, files, timeout)
            if response.status_code == 401:
                self.tokens.clear()
                raise ApiError.from_response(response)

        if not response.ok:
            error = ApiError.from_response(response)
            logger.warning("api_error", method=method, path=path, status=error.status, message=error.message)
            raise error

        if not response.content:
            return None
        try:
            return unwrap(response.json())
        except ValueError:
            return response.text

    def get(self, path, params=None, timeout=None):
        return self.request("GET", path, params=params, timeout=timeout)

    def post(self, path, json_body=None, data=None, files=None, timeout=None):
        return self.request("POST", path, json_body=json_body, data=data, files=files, timeout=timeout)

    def put(self, path, json_body=None):
        return self.request("PUT", path, json_body=json_body)

    def patch(self, path, json_body=None):
        return self.request("PATCH", path, json_body=json_body)

    def delete(self, path):
        return self.request("DELETE", path)


# ----------------- endpoint groups -----------------

class AuthAPI:
    def __init__(self, client):
        self.client = client

    def _login(self, path, credentials):
        data = self.client.post(path, json_body=credentials)
        self.client.tokens.set_tokens(data.get("tokens") or {}, data.get("user"))
        logger.info("logged_in", path=path, user_id=self.client.tokens.user_id)
        return data

    def login_user(self, email, password):
        return self._login("/auth/login", {"email": email, "password": password})

    def login_admin(self, email, password):
        return self._login("/auth/admin/login", {"email": email, "password": password})

    def register_user(self, user_data):
        data = self.client.post("/auth/register", json_body=user_data)
        if data and data.get("tokens"):
            self.client.tokens.set_tokens(data["tokens"], data.get("user"))
        return data

    def _store_user(self, data):
        user = data.get("user") if isinstance(data, dict) else None
        if user:
            self.client.tokens.user = user
        return user

    def get_profile(self):
        return self._store_user(self.client.get("/auth/profile"))

    def update_profile(self, user_data):
        """Only firstName, lastName, phone and address are editable here."""
        return self._store_user(self.client.put("/auth/profile", json_body=user_data))

    def change_password(self, current_password, new_password):
        return self.client.put(
            "/auth/change-password",
            json_body={"currentPassword": current_password, "newPassword": new_password},
        )

    def logout(self):
        try:
            if self.client.tokens.refresh_token:
                self.client.post("/auth/logout", json_body={"refreshToken": self.client.tokens.refresh_token})
        finally:
            self.client.tokens.clear()

    def logout_all(self):
        try:
            self.client.post("/auth/logout-all")
        finally:
            self.client.tokens.clear()


def issue_form_fields(issue_data):
    """Flatten issue fields for a multipart body; nested values go as JSON."""
    fields = {}
    for key, value in issue_data.items():
        if key == "images" or value is None:
            continue
        if isinstance(value, (dict, list)):
            fields[key] = json.dumps(value)
        elif isinstance(value, bool):
            fields[key] = "true" if value else "false"
        else:
            fields[key] = str(value)
    return fields


class IssuesAPI:
    def __init__(self, client):
        self.client = client

    def create_issue(self, issue_data):
        """``issue_data["images"]`` is a list of ``(filename, bytes, content_type)``."""
        files = [("images", image) for image in issue_data.get("images") or []]
        data = self.client.post("/issues", data=issue_form_fields(issue_data), files=files or None)
        return data.get("issue", data) if isinstance(data, dict) else data

    def get_issues(self, params=None):
        data = self.client.get("/issues", params=params or {}, timeout=get_settings().issues_timeout)
        return data or {"issues": [], "pagination": {}}

    def list_issues(self, **params):
        return self.get_issues(params).get("issues", [])

    def get_issue(self, issue_id):
        data = self.client.get(f"/issues/{issue_id}")
        return data.get("issue", data) if isinstance(data, dict) else data

    def update_issue(self, issue_id, update_data):
        data = self.client.put(f"/issues/{issue_id}", json_body=update_data)
        return data.get("issue", data) if isinstance(data, dict) else data

    def delete_issue(self, issue_id):
        return self.client.delete(f"/issues/{issue_id}")

    def vote(self, issue_id, vote_type="upvote"):
        return self.client.post(f"/issues/{issue_id}/vote", json_body={"voteType": vote_type})

    def get_by_location(self, latitude, longitude, radius=5000, limit=20):
        return self.list_issues(latitude=latitude, longitude=longitude, radius=radius, limit=limit)

    def get_by_user(self, user_id, limit=None):
        params = {"reportedBy": user_id}
        if limit:
            params["limit"] = limit
        return self.list_issues(**params)

    def update_status(self, issue_id, status, admin_note=""):
        body = {"status": status}
        if admin_note:
            body["adminNote"] = admin_note
        return self.update_issue(issue_id, body)

    def update_issue_admin(self, issue, **changes):
        """Send only the admin fields that differ from ``issue``; None when nothing changed."""
        payload = build_update_payload(issue, **changes)
        if not payload:
            return None
        return self.update_issue(issue["_id"], payload)

    def get_stats(self):
        return self.client.get("/issues/stats/overview")


class UsersAPI:
    def __init__(self, client):
        self.client = client

    def get_users(self, params=None):
        return self.client.get("/users", params=params or {})

    def get_user(self, user_id):
        """User record with ``issueStats`` (totalReported, pendingIssues, resolvedIssues)."""
        data = self.client.get(f"/users/{user_id}")
        return data.get("user", data) if isinstance(data, dict) else data

    def update_user(self, user_id, user_data):
        data = self.client.put(f"/users/{user_id}", json_body=user_data)
        return data.get("user", data) if isinstance(data, dict) else data

    def toggle_user_status(self, user_id):
        return self.client.patch(f"/users/{user_id}/toggle-status")

    def get_user_issues(self, user_id, params=None):
        data = self.client.get(f"/users/{user_id}/issues", params=params or {})
        return (data or {}).get("issues", [])

    def get_admin_stats(self):
        return self.client.get("/users/stats")

    def update_preferences(self, notifications):
        """Merge ``notifications`` flags into the signed-in user's preferences."""
        return self.client.patch("/users/me/preferences", json_body={"notifications": notifications})


class UtilsAPI:
    def __init__(self, client):
        self.client = client

    def health_check(self):
        return self.client.get("/health")


class CivicAPI:
    """All endpoint groups over one shared client."""

    def __init__(self, client=None):
        self.client = client or ApiClient()
        self.auth = AuthAPI(self.client)
        self.issues = IssuesAPI(self.client)
        self.users = UsersAPI(self.client)
        self.utils = UtilsAPI(self.client)

    @property
    def tokens(self):
        return self.client.tokens
