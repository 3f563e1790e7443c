"""
app.py
Streamlit membership desk: expired memberships (renew/delete) and student edit form.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging

import streamlit as st

import api
import auth
import utils
from forms import EditStudentForm, ExpiredMembershipsView, RenewalForm

st.set_page_config(page_title="Library Membership Desk", layout="wide")

logger = logging.getLogger(__name__)

PAGES = ["Expired Memberships", "Edit Student"]

TEXT_FIELDS = [
    "name", "registration_number", "father_name", "aadhar_number", "email", "phone", "address",
    "total_fee", "cash", "online", "security_money", "remark",
]


def init_once():
    if "client" not in st.session_state:
        logging.basicConfig(level=api.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        st.session_state.client = api.ApiClient()


def require_login():
    if "session" not in st.session_state:
        st.session_state.session = None
    if "flash" not in st.session_state:
        st.session_state.flash = []


def client() -> api.ApiClient:
    return st.session_state.client


def current_user() -> auth.User:
    return st.session_state.session.user


def logout():
    auth.logout(client())
    for key in ("session", "expired_view", "renewal", "edit_form", "edit_student_id"):
        st.session_state.pop(key, None)
    st.success("Logged out.")


def goto(page: str):
    # the sidebar radio owns "page", so switch on the next run before it renders
    st.session_state.next_page = page
    st.rerun()


def flash_error(message: str):
    st.session_state.flash.append(message)


def show_flash():
    for message in st.session_state.flash:
        st.error(message)
    st.session_state.flash = []


def login_screen():
    st.title("🔐 Library Desk Login")

    username = st.text_input("Username")
    password = st.text_input("Password", type="password")
    if st.button("Login", type="primary"):
        try:
            st.session_state.session = auth.login(client(), username.strip(), password)
        except api.ApiError as e:
            st.error(e.message or "Invalid username or password.")
            return
        st.rerun()


# ---------- Form <-> widget state ----------

def seed_widgets(prefix: str, form):
    for name in TEXT_FIELDS:
        st.session_state[f"{prefix}{name}"] = getattr(form, name)
    for name in ("membership_start", "membership_end"):
        value = getattr(form, name)
        st.session_state[f"{prefix}{name}"] = utils.parse_iso(value) if value else None
    st.session_state[f"{prefix}branch_id"] = form.branch_id
    st.session_state[f"{prefix}seat_id"] = form.seat_id


def collect_widgets(prefix: str, form):
    for name in TEXT_FIELDS:
        setattr(form, name, st.session_state.get(f"{prefix}{name}", ""))
    for name in ("membership_start", "membership_end"):
        value = st.session_state.get(f"{prefix}{name}")
        setattr(form, name, value.isoformat() if value else "")


def text_fields(prefix: str):
    c1, c2 = st.columns(2)
    with c1:
        st.text_input("Name", key=f"{prefix}name")
        st.text_input("Registration Number", key=f"{prefix}registration_number")
        st.text_input("Father's Name", key=f"{prefix}father_name")
        st.text_input("Aadhar Number", key=f"{prefix}aadhar_number")
    with c2:
        st.text_input("Email (Optional)", key=f"{prefix}email")
        st.text_input("Phone", key=f"{prefix}phone")
        st.text_area("Address", key=f"{prefix}address", height=80)


def money_fields(prefix: str):
    c1, c2 = st.columns(2)
    with c1:
        st.text_input("Total Fee", key=f"{prefix}total_fee")
        st.text_input("Cash Payment", key=f"{prefix}cash")
        st.text_input("Online Payment", key=f"{prefix}online")
        st.text_input("Security Money", key=f"{prefix}security_money")
    # read-only, recomputed every rerun
    fees = utils.reconcile_fees(
        st.session_state.get(f"{prefix}total_fee"),
        st.session_state.get(f"{prefix}cash"),
        st.session_state.get(f"{prefix}online"),
    )
    with c2:
        st.text_input("Total Amount Paid", value=utils.format_amount(fees.amount_paid), disabled=True)
        st.text_input("Due Amount", value=utils.format_amount(fees.due), disabled=True)
    st.text_area("Remark", key=f"{prefix}remark", height=80)


def branch_select(prefix: str, branches, on_change=None):
    names = {b.id: b.name for b in branches}
    options = [None] + list(names.keys())
    if st.session_state.get(f"{prefix}branch_id") not in options:
        st.session_state[f"{prefix}branch_id"] = None
    st.selectbox(
        "Branch",
        options=options,
        format_func=lambda x: "Select a branch" if x is None else names.get(x, str(x)),
        key=f"{prefix}branch_id",
        on_change=on_change,
    )


# ---------- Expired memberships ----------

def get_expired_view() -> ExpiredMembershipsView | None:
    if "expired_view" not in st.session_state:
        view = ExpiredMembershipsView()
        try:
            view.load(client())
        except api.ApiError as e:
            logger.exception("Failed to load expired memberships")
            st.error(e.message or "Failed to fetch expired memberships.")
            if st.button("Retry"):
                st.rerun()
            return None
        st.session_state.expired_view = view
    return st.session_state.expired_view


def _renewal_shift_changed():
    form: RenewalForm = st.session_state.renewal
    try:
        form.set_shift(client(), st.session_state["renew_shift_id"])
    except api.ApiError as e:
        flash_error(e.message or "Failed to fetch seats")
    st.session_state["renew_seat_id"] = form.seat_id


@st.dialog("Renew Membership", width="large")
def renew_dialog():
    form: RenewalForm = st.session_state.renewal
    view: ExpiredMembershipsView = st.session_state.expired_view
    st.caption(f"Renew for {form.member.name}")
    show_flash()

    text_fields("renew_")

    c1, c2 = st.columns(2)
    with c1:
        st.date_input("Start Date", key="renew_membership_start")
    with c2:
        st.date_input("End Date", key="renew_membership_end")

    branch_select("renew_", view.branches)

    shift_names = {s.id: s.title for s in view.shifts}
    shift_choices = [None] + list(shift_names.keys())
    if st.session_state.get("renew_shift_id") not in shift_choices:
        st.session_state["renew_shift_id"] = None
    st.selectbox(
        "Shift",
        options=shift_choices,
        format_func=lambda x: "Select Shift" if x is None else shift_names.get(x, str(x)),
        key="renew_shift_id",
        on_change=_renewal_shift_changed,
    )

    seat_labels = {o.value: o.label for o in form.seat_options}
    if st.session_state.get("renew_seat_id") not in seat_labels:
        st.session_state["renew_seat_id"] = None
    st.selectbox(
        "Seat",
        options=list(seat_labels.keys()),
        format_func=lambda x: seat_labels.get(x, str(x)),
        key="renew_seat_id",
        disabled=form.shift_id is None,
    )

    money_fields("renew_")

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Cancel"):
            form.close()
            st.rerun()
    with c2:
        if st.button("Renew Membership", type="primary"):
            collect_widgets("renew_", form)
            form.set_branch(st.session_state.get("renew_branch_id"))
            form.set_seat(st.session_state.get("renew_seat_id"))
            try:
                errors = form.submit(client())
            except api.ApiError as e:
                logger.warning("Renew failed for student %s: %s", form.member.id, e.message)
                st.error(e.message or "Failed to renew membership")
                return
            if errors:
                for err in errors:
                    st.error(err)
                return
            st.session_state.flash_success = f"Membership renewed for {form.member.name}"
            try:
                view.refresh(client())
            except api.ApiError as e:
                flash_error(e.message or "Failed to fetch expired memberships.")
            st.rerun()


def start_renewal(member_id: int):
    form = RenewalForm()
    try:
        form.open(client(), member_id)
    except api.ApiError:
        logger.exception("Failed to fetch student %s for renewal", member_id)
        st.error("Failed to load student details for renewal.")
        return
    st.session_state.renewal = form
    seed_widgets("renew_", form)
    st.session_state["renew_shift_id"] = form.shift_id
    renew_dialog()


def expired_memberships_page():
    st.header("⌛ Expired Memberships")
    show_flash()
    if st.session_state.get("flash_success"):
        st.success(st.session_state.pop("flash_success"))

    view = get_expired_view()
    if view is None:
        return

    user = current_user()
    search = st.text_input("Search by name, phone, or Reg. No.")
    rows = view.filtered(search)
    df = utils.members_to_frame(rows)
    st.dataframe(df, use_container_width=True, hide_index=True)

    if view.members:
        st.download_button(
            "Download expired.csv",
            data=utils.members_to_csv_bytes(rows),
            file_name="expired_memberships.csv",
            mime="text/csv",
        )

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select student")
        labels = {m.id: f"{m.name} ({m.phone}) - ID {m.id}" for m in rows}
        selected_id = st.selectbox(
            "Student", options=[None] + list(labels.keys()),
            format_func=lambda x: "(none)" if x is None else labels[x],
        )

    with colB:
        if selected_id is not None:
            student = next(m for m in rows if m.id == selected_id)
            st.subheader("Actions")
            c1, c2, c3, c4 = st.columns(4)
            with c1:
                if st.button("View"):
                    open_edit_page(selected_id)
            with c2:
                if auth.can_renew(user) and st.button("Renew", type="primary"):
                    start_renewal(selected_id)
            with c3:
                if auth.can_delete_students(user):
                    confirm = st.checkbox("Confirm delete", value=False, key=f"del_confirm_{selected_id}")
                    if st.button("Delete", type="secondary", disabled=not confirm):
                        try:
                            view.delete(client(), selected_id)
                        except api.ApiError as e:
                            st.error(e.message or "Failed to delete student.")
                        else:
                            st.session_state.flash_success = "Student deleted successfully."
                            st.rerun()
            with c4:
                st.link_button("WhatsApp", utils.whatsapp_link(student.phone))


# ---------- Edit student ----------

def open_edit_page(student_id):
    st.session_state.edit_student_id = str(student_id)
    st.session_state.pop("edit_form", None)
    goto("Edit Student")


def _edit_branch_changed():
    form: EditStudentForm = st.session_state.edit_form
    try:
        form.set_branch(client(), st.session_state["edit_branch_id"])
    except api.ApiError as e:
        flash_error(e.message or "Failed to load seats")
    st.session_state["edit_seat_id"] = form.seat_id
    st.session_state["edit_shift_ids"] = list(form.shift_ids)


def _edit_seat_changed():
    form: EditStudentForm = st.session_state.edit_form
    try:
        form.set_seat(client(), st.session_state["edit_seat_id"])
    except api.ApiError as e:
        flash_error(e.message or "Failed to load available shifts")
    st.session_state["edit_shift_ids"] = list(form.shift_ids)


def get_edit_form(raw_id) -> EditStudentForm | None:
    form = st.session_state.get("edit_form")
    if form is not None and form.is_for(raw_id):
        return form

    form = EditStudentForm()
    try:
        form.load(client(), raw_id)
    except api.ApiError as e:
        logger.exception("Failed to load student %s", raw_id)
        if e.not_found:
            st.error(f"Student not found: {raw_id}")
            st.stop()
        st.error(e.message or "Failed to load initial data.")
        if st.button("Retry"):
            st.rerun()
        return None
    if form.invalid_id:
        st.error("Invalid student ID.")
        st.stop()

    st.session_state.edit_form = form
    seed_widgets("edit_", form)
    for message in form.load_errors:
        flash_error(message)
    st.session_state["edit_shift_ids"] = list(form.shift_ids)
    return form


def edit_student_page():
    st.header("✏️ Edit Student")

    raw_id = st.session_state.get("edit_student_id") or st.query_params.get("id", "")
    raw_id = st.text_input("Student ID", value=raw_id)
    if not raw_id:
        st.info("Enter a student ID or pick one from Expired Memberships.")
        return
    st.session_state.edit_student_id = raw_id

    form = get_edit_form(raw_id)
    if form is None:
        return
    show_flash()

    if form.image is not None:
        st.image(form.image.content, width=128)
    elif form.profile_image_url:
        st.image(form.profile_image_url, width=128)

    text_fields("edit_")
    branch_select("edit_", form.branches, on_change=_edit_branch_changed)

    c1, c2 = st.columns(2)
    with c1:
        st.date_input("Membership Start", key="edit_membership_start")
    with c2:
        st.date_input("Membership End", key="edit_membership_end")

    seat_labels = {o.value: o.label for o in form.seat_options}
    if st.session_state.get("edit_seat_id") not in seat_labels:
        st.session_state["edit_seat_id"] = None
    st.selectbox(
        "Select Seat",
        options=list(seat_labels.keys()),
        format_func=lambda x: seat_labels.get(x, str(x)),
        key="edit_seat_id",
        on_change=_edit_seat_changed,
    )

    options = form.shift_options
    shift_labels = {o.value: o.label for o in options}
    selectable = [o.value for o in options if not o.disabled]
    st.session_state["edit_shift_ids"] = [i for i in st.session_state.get("edit_shift_ids", []) if i in selectable]
    picked = st.multiselect(
        "Select Shift(s)",
        options=selectable,
        format_func=lambda x: shift_labels.get(x, str(x)),
        key="edit_shift_ids",
    )
    taken = [o.label for o in options if o.disabled]
    if taken:
        st.caption("Not available for this seat: " + "; ".join(taken))

    money_fields("edit_")

    upload = st.file_uploader("Profile Image (max 200KB)", type=["jpg", "jpeg", "png", "gif"])
    if upload is not None and (form.image is None or form.image.filename != upload.name):
        error = form.set_image(upload.name, upload.getvalue(), upload.type)
        if error:
            st.error(error)
        else:
            st.rerun()

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Cancel"):
            st.session_state.pop("edit_form", None)
            goto("Expired Memberships")
    with c2:
        if st.button("Update Student", type="primary"):
            collect_widgets("edit_", form)
            form.branch_id = st.session_state.get("edit_branch_id")
            form.set_shift_ids(picked)
            try:
                errors = form.submit(client())
            except api.ApiError as e:
                logger.warning("Update failed for student %s: %s", form.student_id, e.message)
                st.error(e.message or "Failed to update student")
                return
            if errors:
                for err in errors:
                    st.error(err)
                return
            st.session_state.pop("edit_form", None)
            st.session_state.pop("expired_view", None)
            st.session_state.flash_success = "Student updated successfully"
            goto("Expired Memberships")


def main_app():
    st.sidebar.title("📚 Library Desk")
    st.sidebar.caption(f"Logged in as: {auth.display_name(current_user())}")

    if "page" not in st.session_state:
        st.session_state.page = "Edit Student" if st.query_params.get("id") else "Expired Memberships"
    if "next_page" in st.session_state:
        st.session_state.page = st.session_state.pop("next_page")
    st.sidebar.radio("Navigate", PAGES, key="page")

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    if st.session_state.page != "Edit Student":
        # edit widgets are dropped when not rendered; reload the form on return
        st.session_state.pop("edit_form", None)

    if st.session_state.page == "Expired Memberships":
        expired_memberships_page()
    elif st.session_state.page == "Edit Student":
        edit_student_page()


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if st.session_state.session is None:
        login_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
