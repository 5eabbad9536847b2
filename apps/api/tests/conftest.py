from __future__ import annotations

from typing import Callable, Generator
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cellreports.main import app
from cellreports.auth.context import CallerContext
from cellreports.auth.utils import create_access_token
from cellreports.common.models import Account, Base, Cell, Member, User

# In-memory SQLite shared across the session's single connection
TEST_DB_URL = "sqlite:///:memory:"
engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh schema for each test and drop it afterwards."""
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with dependency overrides."""

    def get_test_db():
        yield db

    from cellreports.common.db import get_db

    app.dependency_overrides[get_db] = get_test_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def account(db: Session) -> Account:
    account = Account(id=uuid4(), name="Central Church")
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def other_account(db: Session) -> Account:
    account = Account(id=uuid4(), name="Other Church")
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def leader(db: Session, account: Account) -> User:
    """The leader of the default cell."""
    user = User(id=uuid4(), account_id=account.id, name="Ana Leader", role="leader")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_leader(db: Session, account: Account) -> User:
    user = User(id=uuid4(), account_id=account.id, name="Bruno Leader", role="leader")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db: Session, account: Account) -> User:
    user = User(id=uuid4(), account_id=account.id, name="Pastor Admin", role="pastor")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def cell(db: Session, account: Account, leader: User) -> Cell:
    cell = Cell(
        id=uuid4(),
        account_id=account.id,
        name="Alpha Cell",
        meeting_day="Wednesday",
        leader_id=leader.id,
    )
    db.add(cell)
    db.commit()
    db.refresh(cell)
    return cell


@pytest.fixture
def second_cell(db: Session, account: Account, other_leader: User) -> Cell:
    """Another cell of the same account, led by someone else."""
    cell = Cell(
        id=uuid4(),
        account_id=account.id,
        name="Beta Cell",
        leader_id=other_leader.id,
    )
    db.add(cell)
    db.commit()
    db.refresh(cell)
    return cell


@pytest.fixture
def foreign_cell(db: Session, other_account: Account) -> Cell:
    """A cell that belongs to a different account."""
    cell = Cell(id=uuid4(), account_id=other_account.id, name="Foreign Cell")
    db.add(cell)
    db.commit()
    db.refresh(cell)
    return cell


@pytest.fixture
def members(db: Session, cell: Cell) -> list[Member]:
    """Three active members of the default cell."""
    people = [
        Member(id=uuid4(), cell_id=cell.id, name=name)
        for name in ("Carla", "Diego", "Elisa")
    ]
    db.add_all(people)
    db.commit()
    for member in people:
        db.refresh(member)
    return people


@pytest.fixture
def outsider(db: Session, second_cell: Cell) -> Member:
    """A member of the second cell."""
    member = Member(id=uuid4(), cell_id=second_cell.id, name="Fabio")
    db.add(member)
    db.commit()
    db.refresh(member)
    return member


@pytest.fixture
def leader_caller(account: Account, leader: User) -> CallerContext:
    return CallerContext(user_id=leader.id, account_id=account.id, role="leader")


@pytest.fixture
def other_leader_caller(account: Account, other_leader: User) -> CallerContext:
    return CallerContext(user_id=other_leader.id, account_id=account.id, role="leader")


@pytest.fixture
def admin_caller(account: Account, admin_user: User) -> CallerContext:
    return CallerContext(user_id=admin_user.id, account_id=account.id, role="pastor")


@pytest.fixture
def foreign_caller(other_account: Account) -> CallerContext:
    return CallerContext(user_id=uuid4(), account_id=other_account.id, role="admin")


@pytest.fixture
def token_for() -> Callable[[CallerContext], str]:
    """Build a bearer token for a caller."""

    def _token(caller: CallerContext) -> str:
        return create_access_token(
            {
                "sub": caller.user_id,
                "account_id": caller.account_id,
                "role": caller.role,
            }
        )

    return _token


@pytest.fixture
def leader_headers(token_for, leader_caller: CallerContext) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(leader_caller)}"}


@pytest.fixture
def admin_headers(token_for, admin_caller: CallerContext) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(admin_caller)}"}


@pytest.fixture
def foreign_headers(token_for, foreign_caller: CallerContext) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(foreign_caller)}"}
