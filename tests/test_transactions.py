import pytest
from sqlalchemy.exc import IntegrityError

from models import db
from models.session import SportSession
from models.waitlist import WaitlistEntry
from utils.auth_context import RequestContext
from utils.errors import ConflictError
from utils.transactions import run_serializable, violated_constraint

RETRY_MESSAGE = "The waitlist changed while you were joining, please try again"
DUPLICATE_MESSAGE = "You are already on the waitlist"


@pytest.fixture
def ctx():
    return RequestContext(user_id="w2", correlation_id="cid-test")


@pytest.fixture
def full_session(make_user, make_session):
    host = make_user("host")
    make_user("w1")
    make_user("w2")
    return make_session(host, max_participants=1)


def _add_entry(session_id, user_id, position):
    db.session.add(WaitlistEntry(session_id=session_id, user_id=user_id, position=position))
    db.session.flush()


def _rename(session_id, sport_type):
    session = db.session.get(SportSession, session_id)
    session.sport_type = sport_type
    return session.id


def test_commits_after_earlier_reads(app, ctx, full_session):
    with app.app_context():
        # a transaction is already open, as after loading the current user
        assert db.session.get(SportSession, full_session) is not None
        run_serializable(ctx, _rename, full_session, "basketball")

    with app.app_context():
        assert db.session.get(SportSession, full_session).sport_type == "basketball"


def test_app_errors_roll_back(app, ctx, full_session):
    def _rename_then_fail(session_id):
        _rename(session_id, "volleyball")
        raise ConflictError("Session is full")

    with app.app_context():
        with pytest.raises(ConflictError):
            run_serializable(ctx, _rename_then_fail, full_session)

    with app.app_context():
        assert db.session.get(SportSession, full_session).sport_type == "futsal"


def test_position_clash_is_not_reported_as_duplicate(app, ctx, full_session):
    with app.app_context():
        run_serializable(ctx, _add_entry, full_session, "w1", 1)
        with pytest.raises(ConflictError) as excinfo:
            run_serializable(
                ctx, _add_entry, full_session, "w2", 1,
                conflict_message=RETRY_MESSAGE,
                constraint_messages={"uq_waitlist_session_user": DUPLICATE_MESSAGE},
            )
    assert excinfo.value.status_code == 409
    assert excinfo.value.message == RETRY_MESSAGE


def test_duplicate_user_gets_its_own_message(app, ctx, full_session):
    with app.app_context():
        run_serializable(ctx, _add_entry, full_session, "w1", 1)
        with pytest.raises(ConflictError) as excinfo:
            run_serializable(
                ctx, _add_entry, full_session, "w1", 2,
                conflict_message=RETRY_MESSAGE,
                constraint_messages={"uq_waitlist_session_user": DUPLICATE_MESSAGE},
            )
    assert excinfo.value.message == DUPLICATE_MESSAGE


def test_violated_constraint_names(app, full_session):
    with app.app_context():
        _add_entry(full_session, "w1", 1)
        db.session.commit()

        with pytest.raises(IntegrityError) as excinfo:
            _add_entry(full_session, "w2", 1)
        db.session.rollback()

        assert violated_constraint(excinfo.value) == "uq_waitlist_session_position"
