"""Shared fixtures: in-memory SQLite bound to the app, user/advance factories, auth headers."""

import itertools
import unittest
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import get_db
from app.core.security import create_access_token, hash_password
from app.main import app
from app.models import Advance, Base, User
from app.schemas.advance import AdvanceCreate, ApproveRequest, DisburseRequest, RetireRequest
from app.schemas.auth import CurrentUser
from app.services.advances import apply_action, create_advance

PASSWORD = "password123"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


_seq = itertools.count(1)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def make_user(
    db: Session,
    role: str = "staff",
    department: str = "Sales",
    first_name: str = "Test",
    last_name: str = "User",
    is_active: bool = True,
    password: str = PASSWORD,
) -> User:
    n = next(_seq)
    user = User(
        email=f"user{n}@example.com",
        employee_id=f"EMP{n:04d}",
        first_name=first_name,
        last_name=last_name,
        department=department,
        position="Officer",
        role=role,
        is_active=is_active,
        password_hash=hash_password(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def acting(user: User) -> CurrentUser:
    return CurrentUser.model_validate(user)


def auth(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(sub=user.id, role=user.role)}"}


def advance_body(**overrides: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "amount": 500,
        "purpose": "travel reimbursement",
        "expected_return_date": (datetime.now(UTC) + timedelta(days=7)).isoformat(),
    }
    body.update(overrides)
    return body


def make_advance(
    db: Session,
    requester: User,
    status: str = "pending",
    amount: float = 500.0,
    manager: User | None = None,
    finance: User | None = None,
    **fields: Any,
) -> Advance:
    """
    Create an advance through the services and drive it to status, so every
    row is consistent with its approval history. Extra column values in
    fields are written afterwards (e.g. a past expected_return_date).
    """
    advance = create_advance(
        db,
        acting(requester),
        AdvanceCreate(**advance_body(amount=amount)),
    )
    steps: list[tuple[User | None, Any]] = []
    if status == "rejected":
        steps = [(manager, ApproveRequest(decision="rejected", comment="Not justified"))]
    elif status != "pending":
        steps.append((manager, ApproveRequest()))
        if status != "manager_approved":
            steps.append((finance, ApproveRequest()))
        if status in ("disbursed", "retired"):
            steps.append((finance, DisburseRequest(method="cash")))
        if status == "retired":
            steps.append((requester, RetireRequest(total_expenses=amount)))
    for actor, action in steps:
        if actor is None:
            raise ValueError(f"an actor is required to reach {status}")
        advance = apply_action(db, advance.id, action, acting(actor))

    if fields:
        db.execute(update(Advance).where(Advance.id == advance.id).values(**fields))
        db.commit()
        db.refresh(advance)
    return advance


class ApiTestCase(unittest.TestCase):
    """Fresh schema per test, with the app's get_db bound to the SQLite engine."""

    def setUp(self) -> None:
        Base.metadata.create_all(engine)
        self.db = TestingSessionLocal()
        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app, raise_server_exceptions=False)
        self.prefix = "/api/v1"

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()
        Base.metadata.drop_all(engine)

    def url(self, path: str) -> str:
        return f"{self.prefix}{path}"

    def assertEnvelopeError(self, response: Any, status_code: int) -> dict[str, Any]:
        self.assertEqual(response.status_code, status_code, response.text)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertIn("message", body)
        return body
