"""
models.py
Lightweight domain types (members, seats, shifts, branches) and API JSON conversion.
"""

from __future__ import annotations
from dataclasses import dataclass, field


def iso_date(value: str | None) -> str:
    # Backend may send "2024-01-10T00:00:00.000Z"; we only keep the calendar date
    if not value:
        return ""
    return str(value).split("T")[0]


def _opt_int(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


@dataclass(frozen=True)
class Assignment:
    seat_id: int
    shift_id: int
    seat_number: str
    shift_title: str

    @classmethod
    def from_api(cls, data: dict) -> "Assignment":
        return cls(
            seat_id=int(data["seatId"]),
            shift_id=int(data["shiftId"]),
            seat_number=str(data.get("seatNumber") or ""),
            shift_title=str(data.get("shiftTitle") or ""),
        )


@dataclass(frozen=True)
class Member:
    id: int
    name: str
    phone: str
    email: str = ""
    registration_number: str | None = None
    father_name: str | None = None
    aadhar_number: str | None = None
    address: str | None = None
    branch_id: int | None = None
    branch_name: str | None = None
    membership_start: str = ""
    membership_end: str = ""
    status: str = "expired"  # 'active' or 'expired'
    total_fee: float = 0.0
    amount_paid: float = 0.0
    due_amount: float = 0.0
    cash: float = 0.0
    online: float = 0.0
    security_money: float = 0.0
    remark: str | None = None
    profile_image_url: str | None = None
    assignments: tuple[Assignment, ...] = field(default_factory=tuple)

    @classmethod
    def from_api(cls, data: dict) -> "Member":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            phone=data.get("phone") or "",
            email=data.get("email") or "",
            registration_number=data.get("registrationNumber"),
            father_name=data.get("fatherName"),
            aadhar_number=data.get("aadharNumber"),
            address=data.get("address"),
            branch_id=_opt_int(data.get("branchId")),
            branch_name=data.get("branchName"),
            membership_start=iso_date(data.get("membershipStart")),
            membership_end=iso_date(data.get("membershipEnd")),
            status=data.get("status") or "expired",
            total_fee=float(data.get("totalFee") or 0),
            amount_paid=float(data.get("amountPaid") or 0),
            due_amount=float(data.get("dueAmount") or 0),
            cash=float(data.get("cash") or 0),
            online=float(data.get("online") or 0),
            security_money=float(data.get("securityMoney") or 0),
            remark=data.get("remark"),
            profile_image_url=data.get("profileImageUrl"),
            assignments=tuple(Assignment.from_api(a) for a in data.get("assignments") or []),
        )

    @property
    def assigned_shift_ids(self) -> list[int]:
        return [a.shift_id for a in self.assignments]

    def to_row(self) -> dict:
        """Flat dict used for the list table and CSV export."""
        return {
            "id": self.id,
            "name": self.name,
            "registration_number": self.registration_number or "N/A",
            "email": self.email,
            "phone": self.phone,
            "expiry": self.membership_end or "N/A",
        }


@dataclass(frozen=True)
class Shift:
    id: int
    title: str
    time: str = ""
    event_date: str = ""
    description: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "Shift":
        return cls(
            id=int(data["id"]),
            title=data.get("title") or "",
            time=data.get("time") or "",
            event_date=iso_date(data.get("eventDate")),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class Seat:
    id: int
    seat_number: str
    branch_id: int | None = None
    student_id: int | None = None  # current holder, if any

    @classmethod
    def from_api(cls, data: dict) -> "Seat":
        return cls(
            id=int(data["id"]),
            seat_number=str(data.get("seatNumber") or ""),
            branch_id=_opt_int(data.get("branchId")),
            student_id=_opt_int(data.get("studentId")),
        )


@dataclass(frozen=True)
class Branch:
    id: int
    name: str
    code: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "Branch":
        return cls(id=int(data["id"]), name=data.get("name") or "", code=data.get("code"))


@dataclass(frozen=True)
class SelectOption:
    value: int | None
    label: str
    disabled: bool = False


@dataclass(frozen=True)
class FeeSummary:
    amount_paid: float
    due: float
