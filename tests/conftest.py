import pytest
from flask_jwt_extended import create_access_token

from sat_reportbuilder import create_app, db
from sat_reportbuilder.config import TestingConfig
from sat_reportbuilder.const import UserRole, UserStatus

PASSWORD = "Password123!"

USERS = {
    "admin": ("admin@test.com", "Admin User", UserRole.ADMIN),
    "engineer": ("engineer@test.com", "John Engineer", UserRole.ENGINEER),
    "other_engineer": ("other@test.com", "Other Engineer", UserRole.ENGINEER),
    "tm": ("tm@test.com", "Technical Manager", UserRole.TECHNICAL_MANAGER),
    "pm": ("pm@test.com", "Project Manager", UserRole.PROJECT_MANAGER),
}

DOCUMENT_INFO = {
    "title": "Control System Validation",
    "projectRef": "PRJ-2025-001",
    "documentRef": "SAT-001",
    "revision": "1.0",
    "date": "2025-01-27",
    "preparedBy": "John Engineer",
}


@pytest.fixture
def app(tmp_path):
    app = create_app(TestingConfig, UPLOAD_FOLDER=str(tmp_path / "uploads"))
    with app.app_context():
        app.extensions["reportbuilder"].create_db()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def appbuilder(app):
    return app.extensions["reportbuilder"]


@pytest.fixture
def users(app, appbuilder):
    """Ids of one active user per role, keyed like ``USERS``"""
    ids = {}
    with app.app_context():
        for name, (email, full_name, role) in USERS.items():
            user = appbuilder.sm.add_user(
                email=email, full_name=full_name, role=role, password=PASSWORD
            )
            ids[name] = user.id
    return ids


@pytest.fixture
def pending_user(app, appbuilder):
    with app.app_context():
        user = appbuilder.sm.add_user(
            email="pending@test.com",
            full_name="Pending User",
            role=UserRole.ENGINEER,
            password=PASSWORD,
            status=UserStatus.PENDING,
        )
        return user.id


@pytest.fixture
def token(app):
    """Authorization header with an access token for a user id"""

    def _token(user_id):
        with app.app_context():
            access_token = create_access_token(identity=str(user_id))
        return {"Authorization": f"Bearer {access_token}"}

    return _token


@pytest.fixture
def auth(token, users):
    """Authorization headers keyed like ``users``"""
    return {name: token(user_id) for name, user_id in users.items()}


@pytest.fixture
def create_report(client, auth, users):
    """Create a DRAFT report as the engineer, returns its JSON"""

    def _create(**overrides):
        payload = {
            "title": DOCUMENT_INFO["title"],
            "projectRef": DOCUMENT_INFO["projectRef"],
            "documentRef": DOCUMENT_INFO["documentRef"],
            "revision": DOCUMENT_INFO["revision"],
            "tmId": users["tm"],
            "pmId": users["pm"],
        }
        payload.update(overrides)
        rv = client.post("/api/reports/", json=payload, headers=auth["engineer"])
        assert rv.status_code == 201, rv.json
        return rv.json["data"]

    return _create


@pytest.fixture
def submitted_report(client, auth, create_report):
    report = create_report()
    rv = client.post(f"/api/reports/{report['id']}/submit", headers=auth["engineer"])
    assert rv.status_code == 200, rv.json
    return rv.json["data"]
