import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models.course import Course
from app.models.lab_requirement import LabRequirement
from app.models.major import Major
from app.models.major_course import MajorCourse
from app.models.notification import Notification  # noqa: F401
from app.models.semester import Semester
from app.models.student_lab_progress import StudentLabProgress  # noqa: F401
from app.models.student_progress import StudentProgress
from app.models.student_semester import StudentSemester
from app.models.tracking_log import TrackingLog  # noqa: F401
from app.models.user import User
from app.services.notifier import Notifier
from app.services.progress_ledger import ProgressLedger


class RecordingNotifier(Notifier):
    def __init__(self):
        self.events = []

    def deliver(self, event):
        self.events.append(event)

    def of_type(self, type_):
        return [e for e in self.events if e.type == type_]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def catalog(db):
    """
    S1 (order 1): c1, c2
    S2 (order 2, requires a major): c3, c4, c5
    S3 (order 3): c6
    Major A: c3 required, c5 elective. Major B: c4 required.
    """
    admin = User(username="admin", password_hash="x", role="admin")
    student = User(username="student", password_hash="x", role="student")
    other = User(username="other", password_hash="x", role="student")
    db.add_all([admin, student, other])

    s1 = Semester(name="Semester 1", order=1, is_active=True, requires_major_selection=False)
    s2 = Semester(name="Semester 2", order=2, is_active=True, requires_major_selection=True)
    s3 = Semester(name="Semester 3", order=3, is_active=True, requires_major_selection=False)
    db.add_all([s1, s2, s3])
    db.flush()

    c1 = Course(semester_id=s1.id, title="Foundations", order=1, required_sessions=10, required_projects=1)
    c2 = Course(semester_id=s1.id, title="Web Basics", order=2, required_sessions=10, required_projects=1)
    c3 = Course(semester_id=s2.id, title="Backend I", order=1, required_sessions=8, required_projects=1)
    c4 = Course(semester_id=s2.id, title="Design I", order=2, required_sessions=8, required_projects=1)
    c5 = Course(semester_id=s2.id, title="Backend Elective", order=3, required_sessions=4, required_projects=0)
    c6 = Course(semester_id=s3.id, title="Capstone", order=1, required_sessions=5, required_projects=2)
    db.add_all([c1, c2, c3, c4, c5, c6])

    major_a = Major(code="BE", name="Backend Engineering", is_active=True)
    major_b = Major(code="DS", name="Design", is_active=True)
    retired = Major(code="OLD", name="Retired Track", is_active=False)
    db.add_all([major_a, major_b, retired])
    db.flush()

    db.add_all([
        MajorCourse(major_id=major_a.id, course_id=c3.id, order=1, is_required=True),
        MajorCourse(major_id=major_a.id, course_id=c5.id, order=2, is_required=False),
        MajorCourse(major_id=major_b.id, course_id=c4.id, order=1, is_required=True),
    ])
    lab = LabRequirement(title="Install toolchain", order=1)
    db.add(lab)
    db.commit()

    return SimpleNamespace(
        admin=admin, student=student, other=other,
        s1=s1, s2=s2, s3=s3,
        c1=c1, c2=c2, c3=c3, c4=c4, c5=c5, c6=c6,
        major_a=major_a, major_b=major_b, retired=retired,
        lab=lab,
    )


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def ledger(db, notifier):
    return ProgressLedger(db, notifier=notifier)


def seed_progress(db, student, course, status, sessions=None, projects=None, links=None):
    """Put a progress row straight into a given state."""
    row = StudentProgress(
        student_id=student.id,
        course_id=course.id,
        completed_sessions=course.required_sessions if sessions is None else sessions,
        projects_submitted=course.required_projects if projects is None else projects,
        project_links=links if links is not None else [],
        status=status,
    )
    db.add(row)
    db.commit()
    return row


def reach(db, student, semester):
    db.add(StudentSemester(student_id=student.id, semester_id=semester.id))
    db.commit()


@pytest.fixture()
def seed(db):
    def _seed(student, course, status, **kwargs):
        return seed_progress(db, student, course, status, **kwargs)
    return _seed


@pytest.fixture()
def reach_semester(db):
    def _reach(student, semester):
        reach(db, student, semester)
    return _reach
