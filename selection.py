"""
selection.py
Seat and shift option derivation for the edit form and the renewal dialog.
"""

from __future__ import annotations

from models import Seat, SelectOption, Shift

NO_SEAT = SelectOption(value=None, label="None")


def seat_options(seats: list[Seat]) -> list[SelectOption]:
    return [NO_SEAT] + [SelectOption(s.id, s.seat_number) for s in seats]


def reconcile_seat(seat_id: int | None, seats: list[Seat]) -> int | None:
    """Drop the selected seat if the refreshed list no longer contains it."""
    if seat_id is None:
        return None
    if any(s.id == seat_id for s in seats):
        return seat_id
    return None


def shift_label(shift: Shift) -> str:
    return f"{shift.title} at {shift.time} ({shift.event_date})"


def shift_options(all_shifts: list[Shift], available_shifts: list[Shift],
                  assigned_shift_ids: list[int], seat_id: int | None) -> list[SelectOption]:
    """
    One option per known shift. With a seat selected, shifts that are neither
    free on that seat nor already held by the member are disabled; the
    member's own shifts stay selectable so editing does not drop them.
    """
    available = {s.id for s in available_shifts}
    assigned = set(assigned_shift_ids)
    seat_selected = seat_id is not None

    options = []
    for shift in all_shifts:
        selectable = shift.id in available or shift.id in assigned
        label = shift_label(shift)
        if seat_selected:
            label += " (Available)" if selectable else " (Assigned)"
        options.append(SelectOption(shift.id, label, disabled=seat_selected and not selectable))
    return options


def selectable_shift_ids(options: list[SelectOption]) -> list[int]:
    return [o.value for o in options if not o.disabled]


def renewal_seat_candidates(seats: list[Seat], member_id: int) -> list[Seat]:
    # Free seats, plus the one the renewing member already holds
    return [s for s in seats if not s.student_id or s.student_id == member_id]


def renewal_seat_options(seats: list[Seat], member_id: int) -> list[SelectOption]:
    return seat_options(renewal_seat_candidates(seats, member_id))
