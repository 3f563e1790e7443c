"""
forms.py
State holders behind the Streamlit pages: expired-memberships list, renewal dialog, edit form.

They hold the field values as the user types them (strings for amounts) and
talk to the backend only through an ApiClient. ApiError is left to the caller
so the page can show it without losing what was typed. The one exception is
the seat/shift lookups during EditStudentForm.load, which land in load_errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

import selection
import utils
from api import ApiClient, ApiError
from models import Branch, FeeSummary, Member, Seat, SelectOption, Shift

logger = logging.getLogger(__name__)


def parse_student_id(raw_id) -> int | None:
    raw = str(raw_id if raw_id is not None else "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


@dataclass
class StagedImage:
    filename: str
    content: bytes
    content_type: str


# ---------- Expired memberships ----------

@dataclass
class ExpiredMembershipsView:
    members: list[Member] = field(default_factory=list)
    shifts: list[Shift] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)

    def load(self, client: ApiClient) -> None:
        self.members = client.get_expired_memberships()
        self.shifts = client.get_schedules()
        self.branches = client.get_branches()
        logger.info("Loaded %d expired memberships", len(self.members))

    def refresh(self, client: ApiClient) -> None:
        self.members = client.get_expired_memberships()

    def filtered(self, term: str) -> list[Member]:
        return utils.filter_members(self.members, term)

    def delete(self, client: ApiClient, member_id: int) -> None:
        client.delete_student(member_id)
        self.members = [m for m in self.members if m.id != member_id]
        logger.info("Deleted student %s", member_id)


# ---------- Renewal ----------

@dataclass
class RenewalForm:
    member: Member | None = None
    name: str = ""
    registration_number: str = ""
    father_name: str = ""
    aadhar_number: str = ""
    address: str = ""
    email: str = ""
    phone: str = ""
    membership_start: str = ""
    membership_end: str = ""
    branch_id: int | None = None
    shift_id: int | None = None
    seat_id: int | None = None
    seats: list[Seat] = field(default_factory=list)
    total_fee: str = ""
    cash: str = ""
    online: str = ""
    security_money: str = ""
    remark: str = ""
    is_open: bool = False

    def open(self, client: ApiClient, member_id: int, today: date | None = None) -> None:
        m = client.get_student(member_id)
        self.member = m
        self.membership_start, self.membership_end = utils.default_renewal_window(today)

        self.name = m.name
        self.registration_number = m.registration_number or ""
        self.father_name = m.father_name or ""
        self.aadhar_number = m.aadhar_number or ""
        self.email = m.email or ""
        self.phone = m.phone or ""
        self.address = m.address or ""
        self.branch_id = m.branch_id

        current = m.assignments[0] if m.assignments else None
        self.shift_id = current.shift_id if current else None
        self.seat_id = current.seat_id if current else None
        self.refresh_seats(client)

        self.total_fee = utils.amount_text(m.total_fee)
        self.cash = utils.amount_text(m.cash)
        self.online = utils.amount_text(m.online)
        self.security_money = utils.amount_text(m.security_money)
        self.remark = m.remark or ""
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def refresh_seats(self, client: ApiClient) -> None:
        if self.shift_id is None or self.member is None:
            self.seats = []
            self.seat_id = None
            return
        all_seats = client.get_seats(shift_id=self.shift_id)
        self.seats = selection.renewal_seat_candidates(all_seats, self.member.id)
        self.seat_id = selection.reconcile_seat(self.seat_id, self.seats)

    def set_shift(self, client: ApiClient, shift_id: int | None) -> None:
        self.shift_id = shift_id
        self.refresh_seats(client)

    def set_seat(self, seat_id: int | None) -> None:
        self.seat_id = seat_id

    def set_branch(self, branch_id: int | None) -> None:
        self.branch_id = branch_id

    @property
    def seat_options(self) -> list[SelectOption]:
        return selection.seat_options(self.seats)

    @property
    def fees(self) -> FeeSummary:
        return utils.reconcile_fees(self.total_fee, self.cash, self.online)

    def validate(self) -> list[str]:
        if self.member is None:
            return ["No student selected for renewal."]
        return utils.validate_renewal_inputs(
            self.name, self.phone, self.address, self.branch_id, self.shift_id,
            self.total_fee, self.membership_start, self.membership_end,
        )

    def build_payload(self) -> dict:
        # amountPaid/dueAmount are left to the backend here
        payload = {
            "name": self.name,
            "registrationNumber": self.registration_number,
            "fatherName": self.father_name,
            "aadharNumber": self.aadhar_number,
            "address": self.address,
            "membershipStart": self.membership_start,
            "membershipEnd": self.membership_end,
            "email": self.email,
            "phone": self.phone,
            "branchId": self.branch_id,
            "shiftIds": [self.shift_id],
            "totalFee": utils.parse_amount(self.total_fee),
            "cash": utils.parse_amount(self.cash),
            "online": utils.parse_amount(self.online),
            "securityMoney": utils.parse_amount(self.security_money),
        }
        if self.seat_id is not None:
            payload["seatId"] = self.seat_id
        if self.remark.strip():
            payload["remark"] = self.remark.strip()
        return payload

    def submit(self, client: ApiClient) -> list[str]:
        errors = self.validate()
        if errors:
            return errors
        client.renew_student(self.member.id, self.build_payload())
        logger.info("Renewed membership for student %s", self.member.id)
        self.is_open = False
        return []


# ---------- Edit student ----------

@dataclass
class EditStudentForm:
    student_id: int | None = None
    invalid_id: bool = False
    original: Member | None = None
    all_shifts: list[Shift] = field(default_factory=list)
    available_shifts: list[Shift] = field(default_factory=list)
    seats: list[Seat] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)

    name: str = ""
    registration_number: str = ""
    father_name: str = ""
    aadhar_number: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    branch_id: int | None = None
    membership_start: str = ""
    membership_end: str = ""
    shift_ids: list[int] = field(default_factory=list)
    seat_id: int | None = None
    total_fee: str = ""
    cash: str = ""
    online: str = ""
    security_money: str = ""
    remark: str = ""
    image: StagedImage | None = None
    profile_image_url: str = ""
    load_errors: list[str] = field(default_factory=list)

    def is_for(self, raw_id) -> bool:
        """True if this form already holds the student the raw route id points at."""
        return self.student_id is not None and parse_student_id(raw_id) == self.student_id

    def load(self, client: ApiClient, raw_id) -> None:
        self.student_id = parse_student_id(raw_id)
        self.invalid_id = self.student_id is None
        if self.invalid_id:
            return

        student = client.get_student(self.student_id)
        self.all_shifts = client.get_schedules()
        self.branches = client.get_branches()
        self.original = student
        self._prefill(student)

        # the prefilled seat is kept as is; only a branch change reconciles it
        self.load_errors = []
        try:
            self.seats = self._fetch_seats(client)
        except ApiError as e:
            logger.warning("Failed to load seats for student %s: %s", self.student_id, e.message)
            self.load_errors.append(e.message or "Failed to load seats")
        try:
            self.refresh_available_shifts(client)
        except ApiError as e:
            logger.warning("Failed to load available shifts for student %s: %s", self.student_id, e.message)
            self.load_errors.append(e.message or "Failed to load available shifts")

    def _prefill(self, s: Member) -> None:
        self.name = s.name
        self.registration_number = s.registration_number or ""
        self.father_name = s.father_name or ""
        self.aadhar_number = s.aadhar_number or ""
        self.email = s.email or ""
        self.phone = s.phone or ""
        self.address = s.address or ""
        self.branch_id = s.branch_id or None
        self.membership_start = s.membership_start
        self.membership_end = s.membership_end
        self.shift_ids = s.assigned_shift_ids
        self.seat_id = s.assignments[0].seat_id if s.assignments else None
        self.total_fee = utils.amount_text(s.total_fee)
        self.cash = utils.amount_text(s.cash)
        self.online = utils.amount_text(s.online)
        self.security_money = utils.amount_text(s.security_money)
        self.remark = s.remark or ""
        self.image = None
        self.profile_image_url = s.profile_image_url or ""

    def _fetch_seats(self, client: ApiClient) -> list[Seat]:
        if self.branch_id:
            return client.get_seats(branch_id=self.branch_id)
        return []

    def refresh_seats(self, client: ApiClient) -> None:
        self.seats = self._fetch_seats(client)
        kept = selection.reconcile_seat(self.seat_id, self.seats)
        if kept != self.seat_id:
            self.set_seat(client, kept)

    def refresh_available_shifts(self, client: ApiClient) -> None:
        if self.seat_id is not None:
            self.available_shifts = client.get_available_shifts(self.seat_id)
        else:
            self.available_shifts = list(self.all_shifts)

    def set_branch(self, client: ApiClient, branch_id: int | None) -> None:
        self.branch_id = branch_id
        self.refresh_seats(client)

    def set_seat(self, client: ApiClient, seat_id: int | None) -> None:
        # a new seat invalidates whatever shifts were picked for the old one
        self.seat_id = seat_id
        self.shift_ids = []
        self.refresh_available_shifts(client)

    def set_shift_ids(self, shift_ids: list[int]) -> None:
        allowed = set(selection.selectable_shift_ids(self.shift_options))
        self.shift_ids = [i for i in shift_ids if i in allowed]

    def set_image(self, filename: str, content: bytes, content_type: str) -> str | None:
        """Stage an image for upload on submit. Returns an error message if rejected."""
        error = utils.validate_image(content_type, len(content))
        if error:
            return error
        self.image = StagedImage(filename, content, content_type)
        return None

    @property
    def assigned_shift_ids(self) -> list[int]:
        return self.original.assigned_shift_ids if self.original else []

    @property
    def seat_options(self) -> list[SelectOption]:
        options = selection.seat_options(self.seats)
        if self.seat_id is not None and all(o.value != self.seat_id for o in options):
            # prefilled seat missing from the branch list still shows
            held = [a for a in self.original.assignments if a.seat_id == self.seat_id] if self.original else []
            label = held[0].seat_number if held else str(self.seat_id)
            options.append(SelectOption(self.seat_id, label))
        return options

    @property
    def shift_options(self) -> list[SelectOption]:
        return selection.shift_options(
            self.all_shifts, self.available_shifts, self.assigned_shift_ids, self.seat_id
        )

    @property
    def fees(self) -> FeeSummary:
        return utils.reconcile_fees(self.total_fee, self.cash, self.online)

    def validate(self) -> list[str]:
        return utils.validate_edit_inputs(
            self.name, self.phone, self.address, self.branch_id,
            self.membership_start, self.membership_end, email=self.email,
        )

    def build_payload(self, image_url: str) -> dict:
        fees = self.fees
        return {
            "name": self.name,
            "registrationNumber": self.registration_number,
            "fatherName": self.father_name,
            "aadharNumber": self.aadhar_number,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "branchId": self.branch_id,
            "membershipStart": self.membership_start,
            "membershipEnd": self.membership_end,
            "totalFee": utils.parse_amount(self.total_fee),
            "amountPaid": fees.amount_paid,
            "dueAmount": fees.due,
            "shiftIds": list(self.shift_ids),
            "seatId": self.seat_id,
            "cash": utils.parse_amount(self.cash),
            "online": utils.parse_amount(self.online),
            "securityMoney": utils.parse_amount(self.security_money),
            "remark": self.remark,
            "profileImageUrl": image_url,
        }

    def submit(self, client: ApiClient) -> list[str]:
        errors = self.validate()
        if errors:
            return errors

        image_url = self.profile_image_url
        if self.image is not None:
            image_url = client.upload_image(self.image.filename, self.image.content, self.image.content_type)
            self.profile_image_url = image_url
            self.image = None

        client.update_student(self.student_id, self.build_payload(image_url))
        logger.info("Updated student %s", self.student_id)
        return []
