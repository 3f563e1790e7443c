from dataclasses import replace
from datetime import date

import pytest

from api import ApiError
from forms import EditStudentForm, ExpiredMembershipsView, RenewalForm


# ---------- Expired list ----------

def test_expired_view_load_and_search(fake_client):
    view = ExpiredMembershipsView()
    view.load(fake_client)
    assert [m.id for m in view.members] == [42, 43, 44]
    assert [m.id for m in view.filtered("anita")] == [43]
    assert fake_client.names() == ["get_expired_memberships", "get_schedules", "get_branches"]


def test_delete_removes_exactly_one_row(fake_client):
    view = ExpiredMembershipsView()
    view.load(fake_client)
    view.delete(fake_client, 43)
    assert [m.id for m in view.members] == [42, 44]
    assert ("delete_student", 43) in fake_client.calls


def test_failed_delete_keeps_rows(fake_client):
    view = ExpiredMembershipsView()
    view.load(fake_client)
    fake_client.fail_with = ApiError("Student has active assignments", 409)
    with pytest.raises(ApiError, match="active assignments"):
        view.delete(fake_client, 43)
    assert len(view.members) == 3


# ---------- Edit form ----------

@pytest.fixture
def edit_form(fake_client):
    form = EditStudentForm()
    form.load(fake_client, "42")
    return form


def test_non_numeric_id_makes_no_calls(fake_client):
    form = EditStudentForm()
    form.load(fake_client, "abc")
    assert form.invalid_id
    assert fake_client.calls == []


def test_load_prefills_from_student(edit_form, fake_client):
    assert edit_form.student_id == 42
    assert edit_form.name == "Ravi Kumar"
    assert edit_form.shift_ids == [3, 5]
    assert edit_form.seat_id == 11
    assert edit_form.total_fee == "1000.0"
    assert [s.id for s in edit_form.seats] == [11, 12, 13]
    assert ("get_seats", 1, None) in fake_client.calls
    assert ("get_available_shifts", 11) in fake_client.calls


def test_load_keeps_assignments_for_member_without_branch(fake_client, student):
    fake_client.students[42] = replace(student, branch_id=None)
    form = EditStudentForm()
    form.load(fake_client, "42")
    assert form.seats == []
    assert form.seat_id == 11
    assert form.shift_ids == [3, 5]
    assert "get_seats" not in fake_client.names()
    assert (11, "A1") in [(o.value, o.label) for o in form.seat_options]
    payload = form.build_payload(form.profile_image_url)
    assert payload["shiftIds"] == [3, 5]
    assert payload["seatId"] == 11


def test_load_keeps_seat_missing_from_branch_list(fake_client):
    fake_client.seats = [s for s in fake_client.seats if s.id != 11]
    form = EditStudentForm()
    form.load(fake_client, "42")
    assert [s.id for s in form.seats] == [12, 13]
    assert form.seat_id == 11
    assert form.shift_ids == [3, 5]
    assert form.submit(fake_client) == []
    assert fake_client.calls[-1][2]["shiftIds"] == [3, 5]


def test_seat_lookup_failure_keeps_loaded_student(fake_client, monkeypatch):
    def fail(branch_id=None, shift_id=None):
        raise ApiError("Failed to load seats", 400)

    monkeypatch.setattr(fake_client, "get_seats", fail)
    form = EditStudentForm()
    form.load(fake_client, "42")
    assert form.name == "Ravi Kumar"
    assert form.seat_id == 11
    assert form.shift_ids == [3, 5]
    assert form.load_errors == ["Failed to load seats"]
    assert ("get_available_shifts", 11) in fake_client.calls


def test_available_shift_failure_keeps_loaded_student(fake_client, monkeypatch):
    def fail(seat_id):
        raise ApiError("", 500)

    monkeypatch.setattr(fake_client, "get_available_shifts", fail)
    form = EditStudentForm()
    form.load(fake_client, "42")
    assert form.phone == "98765 43210"
    assert [s.id for s in form.seats] == [11, 12, 13]
    assert form.load_errors == ["Failed to load available shifts"]


def test_missing_student_is_not_found(fake_client):
    form = EditStudentForm()
    with pytest.raises(ApiError) as exc:
        form.load(fake_client, "999")
    assert exc.value.not_found


@pytest.mark.parametrize("raw,expected", [("42", True), ("042", True), (" 42 ", True), ("43", False), ("abc", False)])
def test_is_for_compares_parsed_ids(edit_form, raw, expected):
    assert edit_form.is_for(raw) is expected


def test_is_for_without_loaded_student():
    assert not EditStudentForm().is_for("")


def test_fees_follow_inputs(edit_form):
    edit_form.total_fee, edit_form.cash, edit_form.online = "1000", "400", "100"
    assert edit_form.fees.amount_paid == 500.0
    assert edit_form.fees.due == 500.0
    edit_form.online = ""
    assert edit_form.fees.amount_paid == 400.0


def test_seat_change_clears_shift_selection(edit_form, fake_client):
    assert edit_form.shift_ids == [3, 5]
    edit_form.set_seat(fake_client, 12)
    assert edit_form.shift_ids == []
    assert edit_form.available_shifts == fake_client.available[12]


def test_clearing_seat_offers_all_shifts(edit_form, fake_client, shifts):
    edit_form.set_seat(fake_client, None)
    assert edit_form.available_shifts == shifts
    assert all(not o.disabled for o in edit_form.shift_options)


def test_own_assignments_stay_selectable(edit_form, fake_client):
    edit_form.set_seat(fake_client, 12)
    by_id = {o.value: o for o in edit_form.shift_options}
    assert not by_id[3].disabled  # free on seat 12
    assert not by_id[5].disabled  # member's own shift
    assert by_id[7].disabled


def test_set_shift_ids_ignores_disabled(edit_form, fake_client):
    edit_form.set_seat(fake_client, 12)
    edit_form.set_shift_ids([3, 7])
    assert edit_form.shift_ids == [3]


def test_branch_change_clears_missing_seat(edit_form, fake_client):
    edit_form.set_branch(fake_client, 2)
    assert [s.id for s in edit_form.seats] == [21]
    assert edit_form.seat_id is None
    assert edit_form.shift_ids == []


def test_branch_without_seats(edit_form, fake_client):
    fake_client.seats = []
    edit_form.set_branch(fake_client, 1)
    assert edit_form.seats == []
    assert [o.value for o in edit_form.seat_options] == [None]


def test_branch_change_keeps_seat_still_listed(edit_form, fake_client):
    edit_form.set_branch(fake_client, 1)
    assert edit_form.seat_id == 11
    assert edit_form.shift_ids == [3, 5]


def test_submit_validation_blocks_network(edit_form, fake_client):
    fake_client.calls.clear()
    edit_form.email = "not-an-email"
    assert edit_form.submit(fake_client) == ["Please enter a valid email address or leave it empty."]
    assert fake_client.calls == []


@pytest.mark.parametrize("field", ["name", "phone", "address", "membership_start", "membership_end"])
def test_submit_requires_fields(edit_form, fake_client, field):
    fake_client.calls.clear()
    setattr(edit_form, field, "")
    assert edit_form.submit(fake_client)
    assert fake_client.calls == []


def test_submit_end_not_after_start(edit_form, fake_client):
    fake_client.calls.clear()
    edit_form.membership_start = edit_form.membership_end = "2024-01-10"
    assert edit_form.submit(fake_client) == ["Membership End date must be after Membership Start date."]
    assert fake_client.calls == []


def test_submit_sends_computed_fees(edit_form, fake_client):
    edit_form.total_fee, edit_form.cash, edit_form.online = "1000", "400", "100"
    assert edit_form.submit(fake_client) == []
    name, student_id, payload = fake_client.calls[-1]
    assert (name, student_id) == ("update_student", 42)
    assert payload["amountPaid"] == 500.0
    assert payload["dueAmount"] == 500.0
    assert payload["shiftIds"] == [3, 5]
    assert payload["seatId"] == 11
    assert payload["profileImageUrl"] == "https://cdn.example.com/img/old.png"
    assert "upload_image" not in fake_client.names()


def test_submit_uploads_staged_image(edit_form, fake_client):
    assert edit_form.set_image("me.png", b"\x89PNG" + b"0" * 100, "image/png") is None
    assert edit_form.submit(fake_client) == []
    assert fake_client.names()[-2:] == ["upload_image", "update_student"]
    assert fake_client.calls[-1][2]["profileImageUrl"] == fake_client.image_url
    assert edit_form.image is None


def test_oversized_image_is_not_staged(edit_form):
    error = edit_form.set_image("big.jpg", b"0" * (200 * 1024 + 1), "image/jpeg")
    assert error == "Image size exceeds 200KB limit."
    assert edit_form.image is None


def test_server_rejection_keeps_state(edit_form, fake_client):
    edit_form.name = "Changed"
    fake_client.fail_with = ApiError("Seat already taken")
    with pytest.raises(ApiError):
        edit_form.submit(fake_client)
    assert edit_form.name == "Changed"


# ---------- Renewal ----------

@pytest.fixture
def renewal(fake_client):
    form = RenewalForm()
    form.open(fake_client, 42, today=date(2024, 3, 10))
    return form


def test_renewal_prefill(renewal, fake_client):
    assert renewal.is_open
    assert (renewal.membership_start, renewal.membership_end) == ("2024-03-10", "2024-04-10")
    assert renewal.shift_id == 3
    assert renewal.seat_id == 11
    # seat 13 belongs to someone else
    assert [s.id for s in renewal.seats] == [11, 12, 21]
    assert ("get_seats", None, 3) in fake_client.calls


def test_renewal_shift_change_drops_unavailable_seat(renewal, fake_client):
    fake_client.seats = [s for s in fake_client.seats if s.id != 11]
    renewal.set_shift(fake_client, 5)
    assert renewal.seat_id is None
    assert [o.value for o in renewal.seat_options] == [None, 12, 21]


def test_renewal_payload_omits_computed_fees(renewal, fake_client):
    renewal.remark = "  "
    assert renewal.submit(fake_client) == []
    name, student_id, payload = fake_client.calls[-1]
    assert (name, student_id) == ("renew_student", 42)
    assert payload["shiftIds"] == [3]
    assert payload["seatId"] == 11
    assert payload["totalFee"] == 1000.0
    assert "amountPaid" not in payload and "dueAmount" not in payload
    assert "remark" not in payload
    assert not renewal.is_open


def test_renewal_without_seat_omits_seat_id(renewal, fake_client):
    renewal.set_seat(None)
    renewal.submit(fake_client)
    assert "seatId" not in fake_client.calls[-1][2]


@pytest.mark.parametrize(
    "field,blank",
    [("name", ""), ("phone", ""), ("address", ""), ("total_fee", ""),
     ("membership_start", ""), ("membership_end", ""), ("branch_id", None)],
)
def test_renewal_requires_fields(renewal, fake_client, field, blank):
    fake_client.calls.clear()
    setattr(renewal, field, blank)
    assert renewal.submit(fake_client)
    assert fake_client.calls == []
    assert renewal.is_open


def test_renewal_rejects_non_numeric_fee(renewal, fake_client):
    fake_client.calls.clear()
    renewal.total_fee = "abc"
    assert renewal.submit(fake_client) == ["Total fee must be numeric."]
    assert fake_client.calls == []


def test_renewal_requires_shift(renewal, fake_client):
    fake_client.calls.clear()
    renewal.shift_id = None
    assert renewal.submit(fake_client)
    assert fake_client.calls == []
