from dataclasses import dataclass, field
from datetime import date
from typing import AsyncGenerator, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fee_ledger.core.models import AcademicYear, School, SchoolClass, Student
from fee_ledger.db.session import get_db, init_models
from fee_ledger.main import app


@dataclass
class Seed:
    school: School
    other_school: School
    school_class: SchoolClass
    other_class: SchoolClass
    academic_year: AcademicYear
    students: List[Student] = field(default_factory=list)
    inactive_student: Student = None
    foreign_student: Student = None

    @property
    def school_id(self):
        return self.school.id

    def headers(self) -> dict:
        return {"X-School-Id": str(self.school.id)}


@pytest.fixture()
async def engine(tmp_path):
    """Fresh SQLite file database per test; a file so several sessions can share it."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False, future=True)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app; each request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def seed(db_session: AsyncSession) -> Seed:
    """Two schools; class 5-A of the first has three active students and one inactive."""
    school = School(name="Greenwood High")
    other_school = School(name="Riverside Academy")
    db_session.add_all([school, other_school])
    await db_session.flush()

    school_class = SchoolClass(school_id=school.id, name="5", division="A")
    other_class = SchoolClass(school_id=school.id, name="6", division="A")
    foreign_class = SchoolClass(school_id=other_school.id, name="5", division="A")
    academic_year = AcademicYear(
        school_id=school.id,
        name="2025-26",
        start_date=date(2025, 6, 1),
        end_date=date(2026, 3, 31),
    )
    db_session.add_all([school_class, other_class, foreign_class, academic_year])
    await db_session.flush()

    students = [
        Student(school_id=school.id, class_id=school_class.id, name=name)
        for name in ("Aarav", "Diya", "Kabir")
    ]
    inactive = Student(school_id=school.id, class_id=school_class.id, name="Meera", is_active=False)
    foreign = Student(school_id=other_school.id, class_id=foreign_class.id, name="Rohan")
    db_session.add_all(students + [inactive, foreign])
    await db_session.commit()

    return Seed(
        school=school,
        other_school=other_school,
        school_class=school_class,
        other_class=other_class,
        academic_year=academic_year,
        students=students,
        inactive_student=inactive,
        foreign_student=foreign,
    )
