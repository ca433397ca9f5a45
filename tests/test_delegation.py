from datetime import date

import pytest
from sqlalchemy import func, select

from memberhub.core.errors import Forbidden, NotFound, ValidationFailed
from memberhub.features.access import engine
from memberhub.features.access.subjects import Subject, load_subject
from memberhub.features.delegation import service
from memberhub.features.delegation.fields import parse_fields, validate_answers
from memberhub.features.delegation.models import Delegate, EventForm
from memberhub.features.roles.catalog import Role
from memberhub.features.roles.models import UserRole

from tests.support import NOW, PUNJAB, future

FORM = [
    {"id": "name", "label": "Full Name", "type": "text", "required": True},
    {"id": "mail", "label": "Email", "type": "email", "required": True},
    {"id": "mobile", "label": "Mobile", "type": "tel"},
    {"id": "college", "label": "Institution", "type": "text"},
    {"id": "track", "label": "Track", "type": "select", "options": ["Policy", "Tech"]},
    {"id": "age", "label": "Age", "type": "number"},
]


def manager_subject(user_id: str = "manager") -> Subject:
    return Subject(user_id=user_id, role=Role.EVENT_MANAGER)


async def _open_event(db, make_member, user_id: str = "manager") -> Subject:
    admin = await make_member("admin", Role.ADMIN, state=None)
    await make_member(user_id)
    await service.grant(db, admin, user_id, "Youth Summit", date(2026, 3, 20), now=NOW)
    manager = manager_subject(user_id)
    await service.save_form(db, manager, FORM)
    return manager


# ============================================================================
# Grants
# ============================================================================

@pytest.mark.asyncio
async def test_grant_sets_role_designation_and_expiry(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)
    await make_member("member")

    profile = await service.grant(db, admin, "member", "Youth Summit", date(2026, 3, 20), now=NOW)

    assert profile.designation == "Event Manager – Youth Summit"
    subject = await load_subject(db, "member", now=NOW)
    assert subject.role == Role.EVENT_MANAGER
    assert (await load_subject(db, "member", now=future(days=10))).role == Role.MEMBER


@pytest.mark.asyncio
async def test_grant_requires_platform_role(db, make_member) -> None:
    national = await make_member("national", Role.NATIONAL_CONVENER, state=None)
    await make_member("member")

    with pytest.raises(Forbidden):
        await service.grant(db, national, "member", "Youth Summit", date(2026, 3, 20), now=NOW)


@pytest.mark.asyncio
async def test_grant_rejects_blank_labels(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)
    await make_member("member")

    with pytest.raises(ValidationFailed):
        await service.grant(db, admin, "member", "  ", date(2026, 3, 20), now=NOW)


@pytest.mark.asyncio
async def test_past_dated_grant_is_inert(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)
    convener = await make_member("convener", Role.STATE_CONVENER)
    await make_member("member")

    await service.grant(db, admin, "member", "Old Summit", date(2020, 1, 1), now=NOW)

    subject = await load_subject(db, "member", now=NOW)
    assert subject.role == Role.MEMBER
    assert engine.can_mutate_role(convener, subject, Role.DESIGNATORY)


@pytest.mark.asyncio
async def test_grant_then_revoke_leaves_one_member_row(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)
    await make_member("member")
    await service.grant(db, admin, "member", "Youth Summit", date(2026, 3, 20), now=NOW)

    profile = await service.revoke(db, admin, "member", now=NOW)

    rows = (await db.execute(select(UserRole.role).where(UserRole.user_id == "member"))).scalars().all()
    assert rows == [Role.MEMBER]
    assert profile.designation is None
    assert profile.event_manager_expiry is None


@pytest.mark.asyncio
async def test_grant_on_member_without_role_row_then_revoke(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)
    await make_member("bare", role=None)
    await service.grant(db, admin, "bare", "Youth Summit", date(2026, 3, 20), now=NOW)

    await service.revoke(db, admin, "bare", now=NOW)

    count = await db.scalar(select(func.count()).select_from(UserRole).where(UserRole.user_id == "bare"))
    assert count == 1


@pytest.mark.asyncio
async def test_revoke_without_grant(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)
    await make_member("member")

    with pytest.raises(NotFound):
        await service.revoke(db, admin, "member")


@pytest.mark.asyncio
async def test_revoke_deactivates_the_form(db, make_member) -> None:
    await _open_event(db, make_member)
    admin = Subject(user_id="admin", role=Role.ADMIN)

    await service.revoke(db, admin, "manager", now=NOW)

    form = await db.scalar(select(EventForm).where(EventForm.manager_id == "manager"))
    await db.refresh(form)
    assert form.is_active is False


@pytest.mark.asyncio
async def test_expired_grant_is_treated_as_member(db, make_member) -> None:
    await make_member("lapsed", Role.EVENT_MANAGER, expiry=future(days=-1))
    convener = await make_member("convener", Role.STATE_CONVENER)

    subject = await load_subject(db, "lapsed", now=NOW)

    assert subject.role == Role.MEMBER
    assert engine.can_mutate_role(convener, subject, Role.DESIGNATORY)


@pytest.mark.asyncio
async def test_list_event_managers_reports_status(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)
    await make_member("active", Role.EVENT_MANAGER, expiry=future())
    await make_member("lapsed", Role.EVENT_MANAGER, expiry=future(days=-1))

    managers = {profile.user_id: active for profile, active in await service.list_event_managers(db, admin, now=NOW)}

    assert managers == {"active": True, "lapsed": False}


@pytest.mark.asyncio
async def test_list_event_managers_is_admin_only(db, make_member) -> None:
    national = await make_member("national", Role.NATIONAL_CONVENER, state=None)

    with pytest.raises(Forbidden):
        await service.list_event_managers(db, national)


# ============================================================================
# Forms
# ============================================================================

def test_select_field_needs_options() -> None:
    with pytest.raises(ValidationFailed):
        parse_fields([{"id": "t", "label": "Track", "type": "select", "options": []}])


def test_field_labels_must_not_be_blank() -> None:
    with pytest.raises(ValidationFailed):
        parse_fields([{"id": "t", "label": "  ", "type": "text"}])


def test_field_kinds_are_closed() -> None:
    with pytest.raises(ValidationFailed):
        parse_fields([{"id": "d", "label": "Date", "type": "date"}])


def test_duplicate_field_ids() -> None:
    with pytest.raises(ValidationFailed):
        parse_fields([
            {"id": "a", "label": "One", "type": "text"},
            {"id": "a", "label": "Two", "type": "text"},
        ])


def test_answers_are_checked_per_kind() -> None:
    fields = parse_fields(FORM)

    with pytest.raises(ValidationFailed) as exc:
        validate_answers(fields, {"name": "Asha", "mail": "not-an-email", "track": "Sports", "age": "x"})

    errors = exc.value.extra["errors"]
    assert set(errors) == {"Email", "Track", "Age"}


def test_answers_are_normalized_and_keyed_by_label() -> None:
    fields = parse_fields(FORM)

    values = validate_answers(
        fields, {"name": " Asha ", "Email": "asha@example.org", "mobile": "98765-43210", "age": "21", "junk": 1}
    )

    assert values == {"Full Name": "Asha", "Email": "asha@example.org", "Mobile": "9876543210", "Age": 21}


@pytest.mark.parametrize("answer", ["nan", "inf", "-Infinity", "1e400", float("nan")])
def test_number_answers_must_be_finite(answer) -> None:
    fields = parse_fields(FORM)

    with pytest.raises(ValidationFailed) as exc:
        validate_answers(fields, {"name": "Asha", "mail": "asha@example.org", "age": answer})

    assert set(exc.value.extra["errors"]) == {"Age"}


def test_large_integers_are_kept_exactly() -> None:
    fields = parse_fields(FORM)

    values = validate_answers(
        fields, {"name": "Asha", "mail": "asha@example.org", "age": "12345678901234567891"}
    )

    assert values["Age"] == 12345678901234567891
    assert validate_answers(fields, {"name": "A", "mail": "a@example.org", "age": "2.5"})["Age"] == 2.5


@pytest.mark.asyncio
async def test_save_form_upserts_per_manager(db, make_member) -> None:
    manager = await _open_event(db, make_member)

    await service.save_form(db, manager, FORM[:2], is_active=False, title="Registration")

    forms = (await db.execute(select(EventForm).where(EventForm.manager_id == "manager"))).scalars().all()
    assert len(forms) == 1
    assert len(forms[0].fields) == 2
    assert forms[0].is_active is False


@pytest.mark.asyncio
async def test_only_event_managers_save_forms(db, make_member) -> None:
    admin = await make_member("admin", Role.ADMIN, state=None)

    with pytest.raises(Forbidden):
        await service.save_form(db, admin, FORM)


# ============================================================================
# Delegates
# ============================================================================

@pytest.mark.asyncio
async def test_submit_delegate_copies_event_name(db, make_member) -> None:
    await _open_event(db, make_member)

    delegate = await service.submit_delegate(
        db,
        "manager",
        {"name": "Asha Patel", "mail": "asha@example.org", "mobile": "+91 98765 43210", "college": "MSU"},
        now=NOW,
    )

    assert delegate.event_name == "Youth Summit"
    assert delegate.name == "Asha Patel"
    assert delegate.email == "asha@example.org"
    assert delegate.phone == "+919876543210"
    assert delegate.delegation == "MSU"
    assert delegate.role_in_event == "Delegate"
    assert delegate.custom_data["Institution"] == "MSU"


@pytest.mark.asyncio
async def test_missing_required_field_creates_nothing(db, make_member) -> None:
    await _open_event(db, make_member)

    with pytest.raises(ValidationFailed):
        await service.submit_delegate(db, "manager", {"name": "Asha Patel"}, now=NOW)

    assert await db.scalar(select(func.count()).select_from(Delegate)) == 0


@pytest.mark.asyncio
async def test_registration_closes_with_the_grant(db, make_member) -> None:
    await _open_event(db, make_member)
    answers = {"name": "Asha", "mail": "asha@example.org"}

    with pytest.raises(NotFound):
        await service.submit_delegate(db, "manager", answers, now=future(days=30))


@pytest.mark.asyncio
async def test_inactive_form_takes_no_registrations(db, make_member) -> None:
    manager = await _open_event(db, make_member)
    await service.save_form(db, manager, FORM, is_active=False)

    with pytest.raises(NotFound):
        await service.submit_delegate(db, "manager", {"name": "Asha", "mail": "asha@example.org"}, now=NOW)


@pytest.mark.asyncio
async def test_unknown_manager_form(db) -> None:
    with pytest.raises(NotFound):
        await service.get_public_form(db, "nobody")


@pytest.mark.asyncio
async def test_delegates_outlive_revocation(db, make_member) -> None:
    await _open_event(db, make_member)
    delegate = await service.submit_delegate(db, "manager", {"name": "Asha", "mail": "a@example.org"}, now=NOW)

    await service.revoke(db, Subject(user_id="admin", role=Role.ADMIN), "manager", now=NOW)

    assert (await service.get_delegate(db, delegate.id)).name == "Asha"


@pytest.mark.asyncio
async def test_list_delegates_scoping(db, make_member) -> None:
    manager = await _open_event(db, make_member)
    await service.submit_delegate(db, "manager", {"name": "Asha", "mail": "a@example.org"}, now=NOW)

    assert len(await service.list_delegates(db, manager)) == 1
    assert len(await service.list_delegates(db, Subject(user_id="admin", role=Role.ADMIN), "manager")) == 1
    with pytest.raises(Forbidden):
        await service.list_delegates(db, Subject(user_id="x", role=Role.STATE_CONVENER, state=PUNJAB), "manager")
