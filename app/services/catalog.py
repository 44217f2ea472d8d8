"""
Read-only access to the curriculum catalog (semesters, courses, majors).

Course ordering inside a semester is checked here, at the boundary: two
courses sharing an ``order`` value raise DuplicateCourseOrder instead of
being silently tie-broken.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.course import Course
from app.models.major import Major
from app.models.major_course import MajorCourse
from app.models.semester import Semester
from app.services.errors import CourseNotFound, DuplicateCourseOrder, SemesterNotFound


@dataclass(frozen=True)
class ApplicableCourse:
    course: Course
    is_required: bool


class CatalogStore:
    def __init__(self, db: Session):
        self.db = db

    def get_course(self, course_id: int) -> Course:
        course = self.db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise CourseNotFound(course_id)
        return course

    def get_semester(self, semester_id: int) -> Semester:
        semester = self.db.query(Semester).filter(Semester.id == semester_id).first()
        if not semester:
            raise SemesterNotFound(semester_id)
        return semester

    def get_semester_courses(self, semester_id: int) -> List[Course]:
        courses = (
            self.db.query(Course)
            .filter(Course.semester_id == semester_id, Course.is_active.is_(True))
            .order_by(Course.order.asc(), Course.id.asc())
            .all()
        )
        _check_unique_order(semester_id, courses)
        return courses

    def get_major(self, major_id: int) -> Optional[Major]:
        return self.db.query(Major).filter(Major.id == major_id).first()

    def get_major_courses(self, major_id: int) -> List[MajorCourse]:
        return (
            self.db.query(MajorCourse)
            .filter(MajorCourse.major_id == major_id)
            .order_by(MajorCourse.order.asc())
            .all()
        )

    def applicable_courses(self, semester_id: int, major_id: Optional[int] = None) -> List[ApplicableCourse]:
        """Courses of a semester that count for a student, by course order.

        Majors are in effect for the semester when the student has a major
        and that major lists at least one of the semester's courses; then
        only the major's courses apply, each with its own required flag.
        Otherwise every course applies and every course is required.
        """
        courses = self.get_semester_courses(semester_id)
        if major_id is not None:
            links = {mc.course_id: mc for mc in self.get_major_courses(major_id)}
            in_major = [c for c in courses if c.id in links]
            if in_major:
                return [ApplicableCourse(c, bool(links[c.id].is_required)) for c in in_major]
        return [ApplicableCourse(c, True) for c in courses]

    def get_next_course_in_semester(
        self, semester_id: int, order: int, major_id: Optional[int] = None
    ) -> Optional[Course]:
        for item in self.applicable_courses(semester_id, major_id):
            if item.course.order > order:
                return item.course
        return None

    def get_previous_course_in_semester(
        self, semester_id: int, order: int, major_id: Optional[int] = None
    ) -> Optional[Course]:
        previous = None
        for item in self.applicable_courses(semester_id, major_id):
            if item.course.order >= order:
                break
            previous = item.course
        return previous

    def get_first_course_in_semester(self, semester_id: int, major_id: Optional[int] = None) -> Optional[Course]:
        items = self.applicable_courses(semester_id, major_id)
        return items[0].course if items else None

    def get_next_semester(self, order: int) -> Optional[Semester]:
        return (
            self.db.query(Semester)
            .filter(Semester.order > order, Semester.is_active.is_(True))
            .order_by(Semester.order.asc())
            .first()
        )

    def get_first_semester(self) -> Optional[Semester]:
        return (
            self.db.query(Semester)
            .filter(Semester.is_active.is_(True))
            .order_by(Semester.order.asc())
            .first()
        )


def _check_unique_order(semester_id: int, courses: List[Course]) -> None:
    by_order = defaultdict(list)
    for c in courses:
        by_order[c.order].append(c.id)
    for order, ids in by_order.items():
        if len(ids) > 1:
            raise DuplicateCourseOrder(semester_id, order, ids)
