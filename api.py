"""
api.py
HTTP client for the library backend (students, schedules, seats, branches, image upload).
"""

from __future__ import annotations

import logging
import os

import requests
from dotenv import load_dotenv

from models import Branch, Member, Seat, Shift

load_dotenv()

API_BASE_URL = os.getenv("LIBRARY_API_URL", "http://localhost:5000/api")
API_TIMEOUT = float(os.getenv("LIBRARY_API_TIMEOUT", "15"))
LOG_LEVEL = os.getenv("LIBRARY_LOG_LEVEL", "INFO")

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised for any failed gateway call. The message is safe to show to the user."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code in (400, 404)


def _error_message(resp: requests.Response, fallback: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or fallback)
    return fallback


class ApiClient:
    def __init__(self, base_url: str | None = None, token: str | None = None,
                 timeout: float | None = None, session: requests.Session | None = None):
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else API_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _request(self, method: str, path: str, fallback: str, **kwargs):
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            resp = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ApiError(fallback) from exc

        if not resp.ok:
            message = _error_message(resp, fallback)
            logger.warning("%s %s -> %s: %s", method, url, resp.status_code, message)
            raise ApiError(message, resp.status_code)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(fallback, resp.status_code) from exc

    # ---------- Auth ----------

    def login(self, username: str, password: str) -> dict:
        data = self._request(
            "POST", "/auth/login", "Login failed",
            json={"username": username, "password": password},
        )
        self.token = data.get("token")
        return data

    def logout(self) -> None:
        self.token = None

    # ---------- Reads ----------

    def get_expired_memberships(self) -> list[Member]:
        data = self._request("GET", "/students/expired", "Failed to fetch expired memberships.")
        return [Member.from_api(s) for s in data.get("students", [])]

    def get_student(self, student_id: int) -> Member:
        data = self._request("GET", f"/students/{student_id}", "Failed to load student.")
        return Member.from_api(data)

    def get_schedules(self) -> list[Shift]:
        data = self._request("GET", "/schedules", "Failed to load shifts.")
        return [Shift.from_api(s) for s in data.get("schedules", [])]

    def get_seats(self, branch_id: int | None = None, shift_id: int | None = None) -> list[Seat]:
        params = {}
        if branch_id is not None:
            params["branchId"] = branch_id
        if shift_id is not None:
            params["shiftId"] = shift_id
        data = self._request("GET", "/seats", "Failed to load seats", params=params)
        return [Seat.from_api(s) for s in data.get("seats", [])]

    def get_available_shifts(self, seat_id: int) -> list[Shift]:
        data = self._request("GET", f"/seats/{seat_id}/available-shifts", "Failed to load available shifts")
        return [Shift.from_api(s) for s in data.get("availableShifts", [])]

    def get_branches(self) -> list[Branch]:
        data = self._request("GET", "/branches", "Failed to load branches.")
        return [Branch.from_api(b) for b in data]

    # ---------- Writes ----------

    def renew_student(self, student_id: int, payload: dict) -> dict:
        return self._request("POST", f"/students/{student_id}/renew", "Failed to renew membership", json=payload)

    def update_student(self, student_id: int, payload: dict) -> dict:
        return self._request("PUT", f"/students/{student_id}", "Failed to update student", json=payload)

    def delete_student(self, student_id: int) -> dict:
        return self._request("DELETE", f"/students/{student_id}", "Failed to delete student.")

    def upload_image(self, filename: str, content: bytes, content_type: str) -> str:
        data = self._request(
            "POST", "/upload/image", "Failed to upload image",
            files={"image": (filename, content, content_type)},
        )
        return data.get("imageUrl") or ""
