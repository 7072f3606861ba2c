from sat_reportbuilder.const import UserStatus
from sat_reportbuilder.models.user import User
from sat_reportbuilder.models.sqla import db


class TestUserList:
    def test_list_users(self, client, auth, create_report):
        create_report()
        rv = client.get("/api/users/", headers=auth["admin"])
        assert rv.status_code == 200
        by_email = {user["email"]: user for user in rv.json["data"]}
        assert len(by_email) == 5
        assert by_email["engineer@test.com"]["_count"] == {
            "createdReports": 1,
            "tmAssignedReports": 0,
            "pmAssignedReports": 0,
        }
        assert by_email["tm@test.com"]["_count"]["tmAssignedReports"] == 1

    def test_filter_by_status(self, client, auth, pending_user):
        rv = client.get("/api/users/?status=PENDING", headers=auth["admin"])
        assert [user["email"] for user in rv.json["data"]] == ["pending@test.com"]

    def test_by_role(self, client, auth):
        rv = client.get("/api/users/by-role/TECHNICAL_MANAGER", headers=auth["engineer"])
        assert rv.status_code == 200
        assert [user["email"] for user in rv.json["data"]] == ["tm@test.com"]

    def test_by_role_rejects_other_roles(self, client, auth):
        rv = client.get("/api/users/by-role/ADMIN", headers=auth["engineer"])
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "Invalid role specified"

    def test_pending_count(self, client, auth, pending_user):
        rv = client.get("/api/users/pending/count", headers=auth["admin"])
        assert rv.json["data"] == {"count": 1}


class TestUserAdmin:
    def test_create_user(self, client, auth):
        rv = client.post(
            "/api/users/",
            json={
                "email": "new@test.com",
                "fullName": "New Engineer",
                "role": "ENGINEER",
                "password": "Password123!",
            },
            headers=auth["admin"],
        )
        assert rv.status_code == 201
        assert rv.json["data"]["status"] == "ACTIVE"
        rv = client.post(
            "/api/auth/login", json={"email": "new@test.com", "password": "Password123!"}
        )
        assert rv.status_code == 200

    def test_create_user_short_password(self, client, auth):
        rv = client.post(
            "/api/users/",
            json={
                "email": "new@test.com",
                "fullName": "New Engineer",
                "role": "ENGINEER",
                "password": "short",
            },
            headers=auth["admin"],
        )
        assert rv.status_code == 400
        assert "password" in rv.json["error"]["errors"]

    def test_approve_pending_user(self, client, auth, pending_user):
        rv = client.post(
            f"/api/users/{pending_user}/approve",
            json={"role": "TECHNICAL_MANAGER", "password": "Welcome123!"},
            headers=auth["admin"],
        )
        assert rv.status_code == 200
        assert rv.json["data"]["status"] == "ACTIVE"
        assert rv.json["data"]["role"] == "TECHNICAL_MANAGER"
        rv = client.post(
            "/api/auth/login",
            json={"email": "pending@test.com", "password": "Welcome123!"},
        )
        assert rv.status_code == 200

    def test_approve_active_user(self, client, auth, users):
        rv = client.post(
            f"/api/users/{users['engineer']}/approve",
            json={"role": "ENGINEER", "password": "Welcome123!"},
            headers=auth["admin"],
        )
        assert rv.status_code == 409

    def test_update_user(self, client, auth, users):
        rv = client.put(
            f"/api/users/{users['engineer']}",
            json={"fullName": "Jane Engineer", "role": "PROJECT_MANAGER"},
            headers=auth["admin"],
        )
        assert rv.status_code == 200
        assert rv.json["data"]["fullName"] == "Jane Engineer"
        assert rv.json["data"]["role"] == "PROJECT_MANAGER"

    def test_admin_cannot_demote_self(self, client, auth, users):
        rv = client.put(
            f"/api/users/{users['admin']}", json={"role": "ENGINEER"}, headers=auth["admin"]
        )
        assert rv.status_code == 403
        rv = client.put(
            f"/api/users/{users['admin']}",
            json={"fullName": "Still Admin"},
            headers=auth["admin"],
        )
        assert rv.status_code == 200

    def test_unknown_user(self, client, auth):
        rv = client.put("/api/users/999", json={"fullName": "Ghost"}, headers=auth["admin"])
        assert rv.status_code == 404
        assert rv.json["error"]["message"] == "User not found"


class TestUserDelete:
    def test_delete_unreferenced_user(self, app, client, auth, users):
        rv = client.delete(f"/api/users/{users['other_engineer']}", headers=auth["admin"])
        assert rv.status_code == 200
        assert rv.json["message"] == "User deleted successfully"
        with app.app_context():
            assert db.session.get(User, users["other_engineer"]) is None

    def test_referenced_user_is_deactivated(self, app, client, auth, users, create_report):
        create_report()
        rv = client.delete(f"/api/users/{users['tm']}", headers=auth["admin"])
        assert rv.status_code == 200
        assert rv.json["data"] == {"deactivated": True}
        with app.app_context():
            assert db.session.get(User, users["tm"]).status == UserStatus.INACTIVE

    def test_cannot_delete_self(self, client, auth, users):
        rv = client.delete(f"/api/users/{users['admin']}", headers=auth["admin"])
        assert rv.status_code == 400
        assert rv.json["error"]["message"] == "You cannot delete your own account"
