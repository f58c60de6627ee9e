import unittest

from models.audit_log import AuditLog
from models.role import Role
from models.user import User
from tests.utils.db import ApiTestCase


NEW_USER_PAYLOAD = {
    "username": "dana",
    "name": "Dana Reyes",
    "email": "dana@acme-builders.com",
    "password": "Scaffold42",
}


class UsersApiTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin_id = self.create_user("admin", "admin")
        self.manager_id = self.create_user("manager", "project_manager")
        self.technician_id = self.create_user("tech", "technician")
        with self.app.app_context():
            self.technician_role_id = Role.query.filter_by(name="technician").one().id
            self.team_lead_role_id = Role.query.filter_by(name="team_lead").one().id
        self.login(self.admin_id)

    def test_listing_users_requires_users_read(self):
        self.login(self.manager_id)
        listing = self.client.get("/api/users/")
        detail = self.client.get(f"/api/users/{self.technician_id}")
        missing = self.client.get("/api/users/9999")

        self.assertEqual(listing.status_code, 200)
        usernames = {user["username"] for user in listing.get_json()["users"]}
        self.assertEqual(usernames, {"admin", "manager", "tech"})
        self.assertEqual(detail.get_json()["user"]["role"], "technician")
        self.assertEqual(missing.status_code, 404)

        self.login(self.technician_id)
        self.assertEqual(self.client.get("/api/users/").status_code, 403)

    def test_admin_creates_user(self):
        response = self.client.post(
            "/api/users/", json=dict(NEW_USER_PAYLOAD, role_id=self.technician_role_id)
        )

        self.assertEqual(response.status_code, 201, response.get_json())
        user = response.get_json()["user"]
        self.assertEqual(user["role"], "technician")
        self.assertEqual(user["department"], "AV Team")
        self.assertTrue(user["is_active"])

        with self.app.app_context():
            entry = AuditLog.query.filter_by(entity_type="user", action="CREATE").one()
            self.assertEqual(entry.user_id, self.admin_id)
            self.assertEqual(entry.changes["email"], "dana@acme-builders.com")
            self.assertNotIn("password", entry.changes)

        login = self.client.post("/api/auth/login", json={"username": "dana", "password": "Scaffold42"})
        self.assertEqual(login.status_code, 200)

    def test_create_user_validates_input(self):
        response = self.client.post(
            "/api/users/",
            json={
                "username": "tech",
                "name": "Duplicate",
                "email": "not-an-email",
                "password": "short",
                "role_id": 9999,
            },
        )

        self.assertEqual(response.status_code, 400)
        errors = response.get_json()["errors"]
        self.assertEqual(sorted(errors), ["email", "password", "role_id", "username"])

    def test_create_user_requires_users_create(self):
        self.login(self.manager_id)

        response = self.client.post(
            "/api/users/", json=dict(NEW_USER_PAYLOAD, role_id=self.technician_role_id)
        )

        self.assertEqual(response.status_code, 403)

    def test_update_user_role_and_department(self):
        response = self.client.put(
            f"/api/users/{self.technician_id}",
            json={"role_id": self.team_lead_role_id, "department": "Field Ops", "name": None},
        )

        self.assertEqual(response.status_code, 200, response.get_json())
        user = response.get_json()["user"]
        self.assertEqual(user["role"], "team_lead")
        self.assertEqual(user["department"], "Field Ops")
        self.assertEqual(user["name"], "Tech")

        with self.app.app_context():
            entry = AuditLog.query.filter_by(entity_type="user", action="UPDATE").one()
            self.assertEqual(entry.changes["before"]["role_id"], self.technician_role_id)
            self.assertEqual(entry.changes["after"]["role_id"], self.team_lead_role_id)

    def test_deactivated_user_cannot_log_in(self):
        response = self.client.put(f"/api/users/{self.technician_id}", json={"is_active": False})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.get_json()["user"]["is_active"])
        login = self.client.post("/api/auth/login", json={"username": "tech", "password": "password123"})
        self.assertEqual(login.status_code, 401)

    def test_delete_deactivates_user(self):
        response = self.client.delete(f"/api/users/{self.technician_id}")

        self.assertEqual(response.status_code, 200)
        with self.app.app_context():
            user = self.db.session.get(User, self.technician_id)
            self.assertIsNotNone(user)
            self.assertFalse(user.is_active)
            self.assertEqual(AuditLog.query.filter_by(entity_type="user", action="DELETE").count(), 1)

    def test_admin_cannot_remove_own_account(self):
        deactivate = self.client.put(f"/api/users/{self.admin_id}", json={"is_active": False})
        delete = self.client.delete(f"/api/users/{self.admin_id}")

        self.assertEqual(deactivate.status_code, 400)
        self.assertEqual(delete.status_code, 400)
        with self.app.app_context():
            self.assertTrue(self.db.session.get(User, self.admin_id).is_active)

    def test_preferences_are_merged_for_own_account(self):
        self.login(self.technician_id)
        first = self.client.put(
            f"/api/users/{self.technician_id}/preferences", json={"preferences": {"theme": "dark"}}
        )
        second = self.client.put(
            f"/api/users/{self.technician_id}/preferences", json={"preferences": {"units": "metric"}}
        )
        other = self.client.put(
            f"/api/users/{self.manager_id}/preferences", json={"preferences": {"theme": "light"}}
        )
        invalid = self.client.put(
            f"/api/users/{self.technician_id}/preferences", json={"preferences": "dark"}
        )

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.get_json()["preferences"], {"theme": "dark", "units": "metric"})
        self.assertEqual(other.status_code, 403)
        self.assertEqual(invalid.status_code, 400)

    def test_admin_can_set_other_users_preferences(self):
        response = self.client.put(
            f"/api/users/{self.technician_id}/preferences", json={"preferences": {"theme": "light"}}
        )

        self.assertEqual(response.status_code, 200)
        with self.app.app_context():
            self.assertEqual(self.db.session.get(User, self.technician_id).preferences, {"theme": "light"})


if __name__ == "__main__":
    unittest.main()
