"""
Shared fixtures: an in-memory stand-in for the backend client.
"""

import pytest

from api import ApiError
from models import Assignment, Branch, Member, Seat, Shift


class FakeClient:
    """Serves canned data and records every call made to it."""

    def __init__(self):
        self.calls = []
        self.students = {}
        self.expired = []
        self.shifts = []
        self.branches = []
        self.seats = []
        self.available = {}
        self.image_url = "https://cdn.example.com/img/1.png"
        self.fail_with = None

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_with is not None:
            raise self.fail_with

    def names(self):
        return [c[0] for c in self.calls]

    def get_expired_memberships(self):
        self._record("get_expired_memberships")
        return list(self.expired)

    def get_student(self, student_id):
        self._record("get_student", student_id)
        if student_id not in self.students:
            raise ApiError("Student not found", 404)
        return self.students[student_id]

    def get_schedules(self):
        self._record("get_schedules")
        return list(self.shifts)

    def get_branches(self):
        self._record("get_branches")
        return list(self.branches)

    def get_seats(self, branch_id=None, shift_id=None):
        self._record("get_seats", branch_id, shift_id)
        seats = self.seats
        if branch_id is not None:
            seats = [s for s in seats if s.branch_id == branch_id]
        return list(seats)

    def get_available_shifts(self, seat_id):
        self._record("get_available_shifts", seat_id)
        return list(self.available.get(seat_id, []))

    def renew_student(self, student_id, payload):
        self._record("renew_student", student_id, payload)
        return {"message": "ok"}

    def update_student(self, student_id, payload):
        self._record("update_student", student_id, payload)
        return {"message": "ok"}

    def delete_student(self, student_id):
        self._record("delete_student", student_id)
        return {}

    def upload_image(self, filename, content, content_type):
        self._record("upload_image", filename, content_type)
        return self.image_url


@pytest.fixture
def shifts():
    return [
        Shift(id=3, title="Morning", time="06:00", event_date="2024-01-01"),
        Shift(id=5, title="Evening", time="18:00", event_date="2024-01-01"),
        Shift(id=7, title="Night", time="22:00", event_date="2024-01-01"),
    ]


@pytest.fixture
def student():
    return Member(
        id=42,
        name="Ravi Kumar",
        phone="98765 43210",
        email="ravi@example.com",
        registration_number="REG-042",
        father_name="Suresh Kumar",
        aadhar_number="1234 5678 9012",
        address="12 MG Road",
        branch_id=1,
        branch_name="Central",
        membership_start="2024-01-01",
        membership_end="2024-02-01",
        total_fee=1000.0,
        cash=400.0,
        online=100.0,
        security_money=200.0,
        remark="Prefers window seat",
        profile_image_url="https://cdn.example.com/img/old.png",
        assignments=(
            Assignment(seat_id=11, shift_id=3, seat_number="A1", shift_title="Morning"),
            Assignment(seat_id=11, shift_id=5, seat_number="A1", shift_title="Evening"),
        ),
    )


@pytest.fixture
def fake_client(student, shifts):
    c = FakeClient()
    c.students[student.id] = student
    c.expired = [
        student,
        Member(id=43, name="Anita Sharma", phone="90000 11111", registration_number="REG-043"),
        Member(id=44, name="Mohan Das", phone="90000 22222"),
    ]
    c.shifts = shifts
    c.branches = [Branch(id=1, name="Central", code="CEN"), Branch(id=2, name="North")]
    c.seats = [
        Seat(id=11, seat_number="A1", branch_id=1, student_id=42),
        Seat(id=12, seat_number="A2", branch_id=1),
        Seat(id=13, seat_number="A3", branch_id=1, student_id=99),
        Seat(id=21, seat_number="N1", branch_id=2),
    ]
    # Night (7) is taken on seat 11; only Morning is free on seat 12
    c.available = {11: [shifts[0], shifts[1]], 12: [shifts[0]], 21: list(shifts)}
    return c
