"""
Central pytest configuration for the clinic backend tests.

Every test gets a fresh in-memory SQLite schema, a unit of work over it, a
fixed clock and a small seeded cast: one coordinator, one staff member, two
interns, an adult client and two stock items.
"""

import datetime as dt
import os
from decimal import Decimal

# Test database configuration (set early so import-time engines use it)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["LOG_TO_FILE"] = "0"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest  # noqa: E402

from clinica.core.config import APP_TZ  # noqa: E402
from clinica.core.security import hash_password  # noqa: E402
from clinica.db.session import create_tables, drop_tables  # noqa: E402
from clinica.db.unit_of_work import SqlAlchemyUnitOfWork  # noqa: E402
from clinica.domain.entities import (  # noqa: E402
    ROLE_COORDINATOR,
    ROLE_INTERN,
    ROLE_STAFF,
    Client,
    StockItem,
    User,
)
from clinica.services.assignment_service import AssignmentService  # noqa: E402
from clinica.services.client_service import ClientService  # noqa: E402
from clinica.services.report_service import ReportService  # noqa: E402
from clinica.services.schedule_service import ScheduleService  # noqa: E402
from clinica.services.stock_service import StockLedgerService  # noqa: E402
from clinica.services.user_service import UserService  # noqa: E402

TEST_PASSWORD = "senha-segura"
FIXED_NOW = dt.datetime(2024, 3, 15, 10, 0, tzinfo=APP_TZ)
TODAY = FIXED_NOW.date()


@pytest.fixture
def database():
    """Fresh schema for each test."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def uow(database):
    unit = SqlAlchemyUnitOfWork()
    yield unit
    unit.close()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


def _create_user(uow, username, name, role):
    with uow.transaction():
        return uow.users.create(
            User(
                username=username,
                name=name,
                role=role,
                password_hash=hash_password(TEST_PASSWORD),
            )
        )


@pytest.fixture
def coordinator(uow):
    return _create_user(uow, "coord", "Coordenadora Ana", ROLE_COORDINATOR)


@pytest.fixture
def staff(uow):
    return _create_user(uow, "staff", "Bruno Funcionário", ROLE_STAFF)


@pytest.fixture
def intern(uow):
    return _create_user(uow, "intern", "Carla Estagiária", ROLE_INTERN)


@pytest.fixture
def other_intern(uow):
    return _create_user(uow, "intern2", "Diego Estagiário", ROLE_INTERN)


@pytest.fixture
def client_record(uow, clock):
    with uow.transaction():
        return uow.clients.create(
            Client(
                type="adult",
                name="Maria Souza",
                cpf="123.456.789-00",
                birth_date=dt.date(1990, 5, 20),
                created_at=clock(),
            )
        )


@pytest.fixture
def gloves(uow):
    with uow.transaction():
        return uow.stock.create_item(
            StockItem(
                name="Luvas",
                category="Descartáveis",
                quantity=10,
                min_stock=3,
                unit_value=Decimal("2.50"),
            )
        )


@pytest.fixture
def gauze(uow):
    with uow.transaction():
        return uow.stock.create_item(
            StockItem(
                name="Gaze",
                category="Curativos",
                quantity=2,
                min_stock=1,
                unit_value=Decimal("1.20"),
            )
        )


@pytest.fixture
def stock_service(uow, clock):
    return StockLedgerService(uow, clock=clock)


@pytest.fixture
def assignment_service(uow, clock):
    return AssignmentService(uow, clock=clock)


@pytest.fixture
def schedule_service(uow, clock):
    return ScheduleService(uow, clock=clock)


@pytest.fixture
def client_service(uow, clock):
    return ClientService(uow, clock=clock)


@pytest.fixture
def user_service(uow):
    return UserService(uow)


@pytest.fixture
def report_service(uow, clock):
    return ReportService(uow, clock=clock)


@pytest.fixture
def app(database):
    """Create a Flask application for testing."""
    from clinica.main import create_app

    app = create_app()
    app.config.update({"TESTING": True, "SECRET_KEY": "test-secret-key"})
    return app


@pytest.fixture
def http(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def login(http):
    """Log a seeded user in through the real endpoint."""

    def _login(user):
        response = http.post(
            "/auth/login", json={"username": user.username, "password": TEST_PASSWORD}
        )
        assert response.status_code == 200, response.get_json()
        return response

    return _login
