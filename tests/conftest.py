import os

# Must be set before academic_ops builds its settings and module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./academic_ops_test.db")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date
from types import SimpleNamespace
import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from academic_ops.core import database
from academic_ops.core.database import build_engine, build_session_factory, get_db
from academic_ops.core.security import CallerIdentity
from academic_ops.main import app
from academic_ops.models import AcademicYear, Base, Branch, ClassModel, Student, User
from academic_ops.models.enums import UserRole


@pytest.fixture()
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'academic_ops_test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def seed(session_factory):
    """Two branches; branch X has an active 2024-25 year with three active classes."""
    ids = SimpleNamespace(
        branch_x=uuid.uuid4(),
        branch_y=uuid.uuid4(),
        admin=uuid.uuid4(),
        teacher_a=uuid.uuid4(),
        teacher_b=uuid.uuid4(),
        teacher_free=uuid.uuid4(),
        teacher_inactive=uuid.uuid4(),
        teacher_y=uuid.uuid4(),
        year_2024=uuid.uuid4(),
        year_2025=uuid.uuid4(),
        class_a=uuid.uuid4(),
        class_b=uuid.uuid4(),
        class_c=uuid.uuid4(),
        class_retired=uuid.uuid4(),
        class_y=uuid.uuid4(),
        student_1=uuid.uuid4(),
        student_2=uuid.uuid4(),
        student_3=uuid.uuid4(),
        student_y=uuid.uuid4(),
    )

    async with session_factory() as session:
        session.add_all([
            Branch(id=ids.branch_x, name="North Campus"),
            Branch(id=ids.branch_y, name="South Campus"),
        ])
        await session.flush()

        session.add_all([
            User(id=ids.admin, branch_id=ids.branch_x, name="Asha Admin", email="admin@north.test", role="admin"),
            User(id=ids.teacher_a, branch_id=ids.branch_x, name="Bela Rao", email="bela@north.test"),
            User(id=ids.teacher_b, branch_id=ids.branch_x, name="Chen Li", email="chen@north.test"),
            User(id=ids.teacher_free, branch_id=ids.branch_x, name="Dev Nair", email="dev@north.test"),
            User(id=ids.teacher_inactive, branch_id=ids.branch_x, name="Esi Owusu", email="esi@north.test",
                 status="Inactive"),
            User(id=ids.teacher_y, branch_id=ids.branch_y, name="Farah Khan", email="farah@south.test"),
            AcademicYear(id=ids.year_2024, branch_id=ids.branch_x, name="2024-25",
                         start_date=date(2024, 6, 1), end_date=date(2025, 3, 31), status="active"),
            AcademicYear(id=ids.year_2025, branch_id=ids.branch_x, name="2025-26",
                         start_date=date(2025, 6, 1), end_date=date(2026, 3, 31), status="upcoming"),
        ])
        await session.flush()

        session.add_all([
            ClassModel(id=ids.class_a, branch_id=ids.branch_x, teacher_id=ids.teacher_a, class_name="10-A",
                       standard="10", semester="First Semester", capacity=40, room_number="101",
                       schedule="Mon-Fri 09:00-15:00", academic_year="2024-25"),
            ClassModel(id=ids.class_b, branch_id=ids.branch_x, teacher_id=ids.teacher_b, class_name="10-B",
                       standard="10", semester="First Semester", academic_year="2024-25"),
            ClassModel(id=ids.class_c, branch_id=ids.branch_x, class_name="9-A", standard="9",
                       semester="First Semester", academic_year="2024-25"),
            ClassModel(id=ids.class_retired, branch_id=ids.branch_x, class_name="8-Z", standard="8",
                       academic_year="2024-25", status="Inactive"),
            ClassModel(id=ids.class_y, branch_id=ids.branch_y, teacher_id=ids.teacher_y, class_name="10-A",
                       standard="10", academic_year="2024-25"),
        ])
        await session.flush()

        session.add_all([
            Student(id=ids.student_1, branch_id=ids.branch_x, class_id=ids.class_a, name="Gita Sen",
                    roll_number="01", academic_year="2024-25"),
            Student(id=ids.student_2, branch_id=ids.branch_x, class_id=ids.class_a, name="Hari Das",
                    roll_number="02", academic_year="2024-25"),
            Student(id=ids.student_3, branch_id=ids.branch_x, class_id=ids.class_b, name="Ira Bose",
                    roll_number="01", academic_year="2024-25"),
            Student(id=ids.student_y, branch_id=ids.branch_y, class_id=ids.class_y, name="Jai Roy",
                    roll_number="01", academic_year="2024-25"),
        ])
        await session.commit()

    return ids


@pytest.fixture()
def admin(seed):
    return CallerIdentity(branch_id=seed.branch_x, user_id=seed.admin, role=UserRole.ADMIN)


@pytest.fixture()
def teacher_a(seed):
    return CallerIdentity(branch_id=seed.branch_x, user_id=seed.teacher_a, role=UserRole.TEACHER)


@pytest.fixture()
def teacher_b(seed):
    return CallerIdentity(branch_id=seed.branch_x, user_id=seed.teacher_b, role=UserRole.TEACHER)


@pytest.fixture()
def admin_y(seed):
    return CallerIdentity(branch_id=seed.branch_y, user_id=uuid.uuid4(), role=UserRole.ADMIN)


@pytest.fixture()
async def client(engine, session_factory, monkeypatch):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    monkeypatch.setattr(database, "engine", engine)
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
