"""Shared pytest fixtures."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
import sys
from typing import Generator

import pytest
from flask import Flask

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.app import create_app
from src.config import TestingConfig
from src.data_access import resources_dao, rooms_dao, seed, users_dao
from src.data_access.db import get_db, init_db


class _TestConfig(TestingConfig):
    DATABASE_URL: str = ""


class RecordingNotifier:
    """Notifier double that remembers what would have been sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def notify(self, kind: str, recipient_email: str, entity_label: str, entity_type: str = "Request") -> None:
        self.sent.append((kind, recipient_email, entity_label))

    def kinds_for(self, email: str) -> list[str]:
        return [kind for kind, recipient, _ in self.sent if recipient == email]


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """A fixed instant in March 2030 so tests never depend on the clock."""

    return datetime(2030, 3, day, hour, minute)


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def app(tmp_path: Path, notifier: RecordingNotifier) -> Generator[Flask, None, None]:
    """Configure a Flask application for testing with a temp SQLite database."""

    db_path = tmp_path / "test.db"
    _TestConfig.DATABASE_URL = f"sqlite:///{db_path}"
    application = create_app(_TestConfig, notifier=notifier)
    with application.app_context():
        init_db(application)
        seed.seed()
    yield application


@pytest.fixture()
def client(app: Flask):
    """Flask test client."""

    return app.test_client()


@pytest.fixture()
def runner(app: Flask):
    """Flask CLI runner."""

    return app.test_cli_runner()


@pytest.fixture()
def db(app: Flask):
    """Provide a database connection for direct queries."""

    with app.app_context():
        yield get_db()


def _user(app: Flask, email: str):
    with app.app_context():
        return users_dao.get_user_by_email(email)


@pytest.fixture()
def admin_user(app: Flask):
    return _user(app, "admin@college.edu")


@pytest.fixture()
def lhc_user(app: Flask):
    return _user(app, "lhc@college.edu")


@pytest.fixture()
def professor_user(app: Flask):
    return _user(app, "anil.kumar@college.edu")


@pytest.fixture()
def other_professor(app: Flask):
    return _user(app, "sunita.rao@college.edu")


@pytest.fixture()
def club_manager(app: Flask):
    return _user(app, "robotics.manager@college.edu")


@pytest.fixture()
def coding_manager(app: Flask):
    return _user(app, "coding.manager@college.edu")


@pytest.fixture()
def cs_lab_tech(app: Flask):
    return _user(app, "cs.labtech@college.edu")


@pytest.fixture()
def ee_lab_tech(app: Flask):
    return _user(app, "ee.labtech@college.edu")


@pytest.fixture()
def student_user(app: Flask):
    return _user(app, "rohan@student.college.edu")


@pytest.fixture()
def other_student(app: Flask):
    return _user(app, "ananya@student.college.edu")


@pytest.fixture()
def laptop(app: Flask):
    """Computer Science department laptops, 20 in stock."""

    with app.app_context():
        return next(res for res in resources_dao.list_resources() if res.name == "Laptop")


@pytest.fixture()
def arduino_kit(app: Flask):
    """Robotics Club Arduino kits, 15 in stock."""

    with app.app_context():
        return next(res for res in resources_dao.list_resources() if res.name == "Arduino Kit")


@pytest.fixture()
def room(app: Flask):
    with app.app_context():
        return rooms_dao.get_room_by_name("LHC 101")


@pytest.fixture()
def other_room(app: Flask):
    with app.app_context():
        return rooms_dao.get_room_by_name("LHC 102")
