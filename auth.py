"""
auth.py
Login through the backend and role handling (admin vs. permission-based staff).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from api import ApiClient

MANAGE_STUDENTS = "manage_students"


@dataclass(frozen=True)
class Admin:
    username: str


@dataclass(frozen=True)
class Staff:
    username: str
    role: str
    permissions: frozenset[str] = field(default_factory=frozenset)


User = Admin | Staff


@dataclass(frozen=True)
class Session:
    token: str | None
    user: User


def user_from_api(data: dict | None) -> User:
    """
    Build a User from the backend's user object.
    Anything that is not an admin becomes Staff; a missing or malformed
    permission list means no permissions.
    """
    data = data or {}
    username = str(data.get("username") or data.get("name") or "")
    role = str(data.get("role") or "")
    if role == "admin":
        return Admin(username)
    perms = data.get("permissions")
    if not isinstance(perms, list):
        perms = []
    return Staff(username, role, frozenset(str(p) for p in perms))


def login(client: ApiClient, username: str, password: str) -> Session:
    data = client.login(username, password)
    return Session(token=data.get("token"), user=user_from_api(data.get("user")))


def logout(client: ApiClient) -> None:
    client.logout()


def can_renew(user: User) -> bool:
    match user:
        case Admin():
            return True
        case Staff():
            return False


def can_delete_students(user: User) -> bool:
    match user:
        case Admin():
            return True
        case Staff(permissions=perms):
            return MANAGE_STUDENTS in perms


def display_name(user: User) -> str:
    match user:
        case Admin(username=name):
            return f"{name} (admin)"
        case Staff(username=name, role=role):
            return f"{name} ({role or 'staff'})"
