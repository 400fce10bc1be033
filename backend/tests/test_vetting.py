import pytest
from sqlalchemy.orm import sessionmaker

from booking_core import models, schemas
from booking_core.crud import crud_audit
from booking_core.models import UserType, VettingStatus
from booking_core.services.vetting import (
    VettingApprovalSaga,
    review_application,
    submit_application,
)
from booking_core.utils.errors import (
    AlreadyApproved,
    ConcurrentModification,
    InvalidTransition,
    MissingReason,
    VettingAlreadyPending,
)

from conftest import create_user, setup_engine


def _application_in(**overrides):
    fields = dict(
        full_name="Jamie Rivers",
        stage_name="Jamie Juggles",
        email="jamie@test.com",
        phone="0422222222",
        location="Melbourne",
        performance_type="juggler",
        experience_years=4,
        bio="Fire and knives.",
    )
    fields.update(overrides)
    return schemas.VettingApplicationCreate(**fields)


@pytest.fixture
def applicant(db):
    return create_user(db, UserType.CLIENT, first_name="Jamie")


@pytest.fixture
def admin(db):
    return create_user(db, UserType.ADMIN, first_name="Ada")


def test_submit_creates_pending_application(db, applicant, admin):
    application = submit_application(db, applicant, _application_in())
    assert application.status == VettingStatus.PENDING
    assert application.user_id == applicant.id

    entry = crud_audit.list_for_entity(db, "vetting_application", application.id)[0]
    assert entry.action == "application_submitted"

    alerts = (
        db.query(models.Notification)
        .filter(models.Notification.user_id == admin.id)
        .count()
    )
    assert alerts == 1


def test_second_submission_while_pending_is_refused(db, applicant):
    submit_application(db, applicant, _application_in())
    with pytest.raises(VettingAlreadyPending):
        submit_application(db, applicant, _application_in(stage_name="Another Act"))


def test_approval_creates_profile_and_promotes_user(db, applicant, admin):
    application = submit_application(db, applicant, _application_in())

    profile = review_application(db, application, "approved", admin=admin, notes="Great reel")

    assert profile.stage_name == "Jamie Juggles"
    assert profile.application_id == application.id
    assert profile.location == "Melbourne"
    assert application.status == VettingStatus.APPROVED
    assert application.reviewer_id == admin.id
    db.refresh(applicant)
    assert applicant.user_type == UserType.PERFORMER
    assert applicant.phone_number == "0422222222"
    assert applicant.performer_profile.id == profile.id

    actions = [e.action for e in crud_audit.list_for_entity(db, "vetting_application", application.id)]
    assert actions == ["application_submitted", "application_approved"]


def test_failed_saga_step_rolls_back_everything(db, applicant, admin, monkeypatch):
    application = submit_application(db, applicant, _application_in())

    def broken_profile(self):
        self.db.add(
            models.PerformerProfile(
                user_id=self.application.user_id,
                application_id=self.application.id,
                stage_name="half",
            )
        )
        self.db.flush()
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(VettingApprovalSaga, "create_performer_profile", broken_profile)
    with pytest.raises(RuntimeError):
        review_application(db, application, "approved", admin=admin)

    db.expire_all()
    assert db.get(models.VettingApplication, application.id).status == VettingStatus.PENDING
    assert db.query(models.PerformerProfile).count() == 0
    assert db.get(models.User, applicant.id).user_type == UserType.CLIENT
    actions = [e.action for e in crud_audit.list_for_entity(db, "vetting_application", application.id)]
    assert actions == ["application_submitted"]


def test_saga_records_completed_steps(db, applicant, admin):
    application = submit_application(db, applicant, _application_in())
    saga = VettingApprovalSaga(db, application, admin)
    saga.run()
    assert saga.completed == list(VettingApprovalSaga.STEPS)


def test_rejection_requires_notes(db, applicant, admin):
    application = submit_application(db, applicant, _application_in())
    with pytest.raises(MissingReason) as exc:
        review_application(db, application, "rejected", admin=admin)
    assert exc.value.field == "notes"

    assert review_application(db, application, "rejected", admin=admin, notes="No footage") is None
    assert application.status == VettingStatus.REJECTED
    assert application.review_notes == "No footage"


def test_rejected_applicant_may_apply_again(db, applicant, admin):
    application = submit_application(db, applicant, _application_in())
    review_application(db, application, "rejected", admin=admin, notes="No footage")
    again = submit_application(db, applicant, _application_in())
    assert again.status == VettingStatus.PENDING


def test_decided_application_cannot_be_reviewed_again(db, applicant, admin):
    application = submit_application(db, applicant, _application_in())
    review_application(db, application, "approved", admin=admin)
    with pytest.raises(InvalidTransition):
        review_application(db, application, "rejected", admin=admin, notes="Changed my mind")


def test_approved_performer_cannot_reapply(db, applicant, admin):
    application = submit_application(db, applicant, _application_in())
    review_application(db, application, "approved", admin=admin)
    db.refresh(applicant)
    with pytest.raises(AlreadyApproved):
        submit_application(db, applicant, _application_in())


def test_decision_notifies_applicant(db, applicant, admin, enqueued):
    application = submit_application(db, applicant, _application_in())
    enqueued.clear()
    review_application(db, application, "approved", admin=admin)

    requests = [args[0] for func, args, kwargs in enqueued]
    assert {r.template_key for r in requests} == {"vetting_approved"}
    assert all(kwargs["correlation_id"] == f"vetting-{application.id}" for _, _, kwargs in enqueued)


def test_simultaneous_approve_and_reject_cannot_both_succeed(tmp_path):
    engine = setup_engine(f"sqlite:///{tmp_path / 'vetting.db'}")
    Session = sessionmaker(bind=engine)
    first, second = Session(), Session()
    try:
        applicant = create_user(first, UserType.CLIENT, first_name="Jamie")
        admin = create_user(first, UserType.ADMIN, first_name="Ada")
        application = submit_application(first, applicant, _application_in())
        other_admin = second.get(models.User, admin.id)
        theirs = second.get(models.VettingApplication, application.id)

        review_application(first, application, "rejected", admin=admin, notes="Portfolio missing")

        with pytest.raises(ConcurrentModification) as exc:
            review_application(second, theirs, "approved", admin=other_admin)
        assert exc.value.http_status == 409

        second.expire_all()
        assert second.get(models.VettingApplication, application.id).status == VettingStatus.REJECTED
        assert second.query(models.PerformerProfile).count() == 0
        assert second.get(models.User, applicant.id).user_type == UserType.CLIENT
    finally:
        first.close()
        second.close()
        engine.dispose()
