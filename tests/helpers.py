import os
import unittest
from datetime import datetime

os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import text  # noqa: E402

from database import create_db_engine  # noqa: E402
from main import create_app  # noqa: E402
from routers.auth import create_access_token, get_password_hash  # noqa: E402

API = "/api"
PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)

# Tables as the very first kiosk release created them
LEGACY_DDL = [
    """CREATE TABLE Users (
        UserID INTEGER PRIMARY KEY AUTOINCREMENT,
        Username VARCHAR(100) NOT NULL UNIQUE,
        PasswordHash VARCHAR(255) NOT NULL,
        UserLevel INTEGER NOT NULL DEFAULT 2,
        IsActive BOOLEAN NOT NULL DEFAULT 1,
        CreatedAt DATETIME,
        LastLogin DATETIME
    )""",
    """CREATE TABLE Departments (
        DepartmentID INTEGER PRIMARY KEY AUTOINCREMENT,
        Name VARCHAR(128) NOT NULL
    )""",
    """CREATE TABLE SurveyQuestions (
        QuestionID INTEGER PRIMARY KEY AUTOINCREMENT,
        DepartmentID INTEGER NOT NULL,
        QuestionText TEXT NOT NULL
    )""",
    """CREATE TABLE SurveyAnswers (
        AnswerID INTEGER PRIMARY KEY AUTOINCREMENT,
        QuestionID INTEGER NOT NULL,
        AnswerEmoji VARCHAR(16)
    )""",
]


def create_legacy_tables(engine):
    with engine.begin() as conn:
        for ddl in LEGACY_DDL:
            conn.execute(text(ddl))


class SurveyApiTestCase(unittest.TestCase):
    """Runs the whole app against a private in-memory SQLite database."""

    legacy_schema = False

    def setUp(self):
        self.engine = create_db_engine("sqlite://")
        if self.legacy_schema:
            create_legacy_tables(self.engine)
            app = create_app(engine=self.engine, create_tables=False, run_migrations=False)
        else:
            app = create_app(engine=self.engine, create_tables=True, run_migrations=True)

        self.app = app
        self.client = TestClient(app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

        self.superadmin_id = self.seed_user("root", level=1)
        self.admin_id = self.seed_user("editor", level=2)

    @property
    def features(self):
        return self.app.state.features

    def seed_user(self, username, level=2, active=True, password_changed_at=None, created_at=None):
        values = {
            "username": username,
            "hash": PASSWORD_HASH,
            "level": level,
            "active": active,
            "created": created_at or datetime.now(),
        }
        columns = "Username, PasswordHash, UserLevel, IsActive, CreatedAt"
        params = ":username, :hash, :level, :active, :created"
        if self.features.user_password_changed_at:
            columns += ", PasswordChangedAt"
            params += ", :changed"
            values["changed"] = password_changed_at
        with self.engine.begin() as conn:
            conn.execute(text(f"INSERT INTO Users ({columns}) VALUES ({params})"), values)
            return conn.execute(
                text("SELECT UserID FROM Users WHERE Username = :username"), {"username": username}
            ).scalar()

    def headers_for(self, user_id, level):
        token = create_access_token({"userId": user_id, "userLevel": level})
        return {"Authorization": f"Bearer {token}"}

    @property
    def superadmin(self):
        return self.headers_for(self.superadmin_id, 1)

    @property
    def admin(self):
        return self.headers_for(self.admin_id, 2)

    def query(self, sql, **params):
        with self.engine.connect() as conn:
            return conn.execute(text(sql), params).mappings().all()

    # --- API shortcuts ---

    def create_department(self, name):
        response = self.client.post(f"{API}/departments", json={"name": name}, headers=self.superadmin)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["urlSlug"]

    def create_question(self, slug, question_text):
        response = self.client.post(
            f"{API}/departments/{slug}/questions", json={"questionText": question_text}, headers=self.admin
        )
        self.assertEqual(response.status_code, 200, response.text)

    def active_question_id(self, slug):
        response = self.client.get(f"{API}/departments/{slug}/active-question")
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["QuestionID"]

    def answer(self, question_id, **payload):
        return self.client.post(f"{API}/questions/{question_id}/answers", json=payload)
