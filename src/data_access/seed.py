"""Deterministic seed data for the College Resource Portal."""

from __future__ import annotations

from .db import execute, get_db, query_one
from .users_dao import hash_password

DEFAULT_PASSWORD = "Password123!"

DEPARTMENTS = [
    "Computer Science",
    "Electrical Engineering",
    "Mechanical Engineering",
    "Physics",
]

CLUBS = [
    "Robotics Club",
    "Coding Club",
    "Music Club",
]

# (name, email, role, department, club, roll number)
USERS = [
    ("System Admin", "admin@college.edu", "ADMIN", None, None, None),
    ("LHC Manager", "lhc@college.edu", "LHC", None, None, None),
    ("Arjun Mehta", "robotics.manager@college.edu", "CLUB_MANAGER", None, "Robotics Club", None),
    ("Priya Sharma", "coding.manager@college.edu", "CLUB_MANAGER", None, "Coding Club", None),
    ("Kiran Rao", "cs.labtech@college.edu", "LAB_TECH", "Computer Science", None, None),
    ("Meera Iyer", "ee.labtech@college.edu", "LAB_TECH", "Electrical Engineering", None, None),
    ("Dr. Anil Kumar", "anil.kumar@college.edu", "PROFESSOR", "Computer Science", None, None),
    ("Dr. Sunita Rao", "sunita.rao@college.edu", "PROFESSOR", "Physics", None, None),
    ("Rohan Gupta", "rohan@student.college.edu", "STUDENT", "Computer Science", None, "CS21B001"),
    ("Ananya Singh", "ananya@student.college.edu", "STUDENT", "Electrical Engineering", None, "EE21B014"),
]

ROOMS = [
    ("LHC 101", 120, "Lecture Hall Complex, Ground Floor"),
    ("LHC 102", 120, "Lecture Hall Complex, Ground Floor"),
    ("LHC 201", 60, "Lecture Hall Complex, First Floor"),
    ("Seminar Hall", 200, "Main Building"),
]

# (name, description, quantity, owner type, owner name)
RESOURCES = [
    ("Laptop", "Dell Latitude laptops for lab sessions", 20, "DEPARTMENT", "Computer Science"),
    ("Oscilloscope", "Digital storage oscilloscopes", 8, "DEPARTMENT", "Electrical Engineering"),
    ("3D Printer", "FDM printer with PLA filament", 2, "DEPARTMENT", "Mechanical Engineering"),
    ("Arduino Kit", "Arduino Uno starter kits", 15, "CLUB", "Robotics Club"),
    ("Servo Motor", "SG90 micro servos", 30, "CLUB", "Robotics Club"),
    ("Raspberry Pi", "Raspberry Pi 4 boards", 10, "CLUB", "Coding Club"),
    ("Guitar Amplifier", "Practice amplifiers", 3, "CLUB", "Music Club"),
]


def seed() -> None:
    """Populate the database with representative demo records."""

    db = get_db()

    for name in DEPARTMENTS:
        execute(db, "INSERT OR IGNORE INTO departments (name) VALUES (?)", (name,))
    for name in CLUBS:
        execute(db, "INSERT OR IGNORE INTO clubs (name) VALUES (?)", (name,))

    def _department_id(name: str | None) -> int | None:
        if name is None:
            return None
        row = query_one(db, "SELECT department_id FROM departments WHERE name = ?", (name,))
        if not row:
            raise ValueError(f"Expected seed department {name} to exist.")
        return row["department_id"]

    def _club_id(name: str | None) -> int | None:
        if name is None:
            return None
        row = query_one(db, "SELECT club_id FROM clubs WHERE name = ?", (name,))
        if not row:
            raise ValueError(f"Expected seed club {name} to exist.")
        return row["club_id"]

    password_hash = hash_password(DEFAULT_PASSWORD)
    for name, email, role, department, club, roll_number in USERS:
        execute(
            db,
            """
            INSERT OR IGNORE INTO users (
                name, email, password_hash, role, department_id, club_id, roll_number, is_active
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, 1)
            """,
            (name, email, password_hash, role, _department_id(department), _club_id(club), roll_number),
        )

    for name, capacity, location in ROOMS:
        execute(
            db,
            "INSERT OR IGNORE INTO rooms (name, capacity, location) VALUES (?, ?, ?)",
            (name, capacity, location),
        )

    for name, description, quantity, owner_type, owner in RESOURCES:
        department_id = _department_id(owner) if owner_type == "DEPARTMENT" else None
        club_id = _club_id(owner) if owner_type == "CLUB" else None
        existing = query_one(
            db,
            "SELECT resource_id FROM resources WHERE name = ? AND owner_type = ?",
            (name, owner_type),
        )
        if existing:
            continue
        execute(
            db,
            """
            INSERT INTO resources (name, description, quantity, owner_type, department_id, club_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (name, description, quantity, owner_type, department_id, club_id),
        )
