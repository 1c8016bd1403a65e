import os
import sys
import datetime
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import WorkoutPlanAPI


class AuthAPITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_auth.db"
        self.yaml_path = "test_auth.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = WorkoutPlanAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def _register_and_login(self) -> str:
        self.client.post("/users/register", json={"username": "carol", "password": "pw"})
        return self.client.post("/token", json={"username": "carol", "password": "pw"}).json()["token"]

    def test_register_and_login(self) -> None:
        resp = self.client.post("/users/register", json={"username": "carol", "password": "pw"})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["username"], "carol")

        dup = self.client.post("/users/register", json={"username": "carol", "password": "x"})
        self.assertEqual(dup.status_code, 400)
        self.assertEqual(dup.json(), {"error": "Username already taken"})

        resp = self.client.post("/token", json={"username": "carol", "password": "pw"})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["token"])
        expires = datetime.datetime.fromisoformat(data["expires_at"])
        self.assertGreater(expires, datetime.datetime.now(datetime.timezone.utc))

        stored = self.api.users.fetch_by_username("carol")
        self.assertNotEqual(stored["password_hash"], "pw")

    def test_wrong_password(self) -> None:
        self.client.post("/users/register", json={"username": "carol", "password": "pw"})
        resp = self.client.post("/token", json={"username": "carol", "password": "nope"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"error": "Invalid credentials"})
        resp = self.client.post("/token", json={"username": "nobody", "password": "pw"})
        self.assertEqual(resp.status_code, 401)

    def test_protected_routes_require_token(self) -> None:
        for method, path in (
            ("get", "/plans"),
            ("post", "/plans"),
            ("get", "/user-plans/active"),
            ("post", "/plans/1/share"),
            ("get", "/auth/session"),
        ):
            resp = getattr(self.client, method)(path)
            self.assertEqual(resp.status_code, 401, path)
            self.assertEqual(resp.json(), {"error": "Missing or invalid token"})
        resp = self.client.get("/plans", headers={"Authorization": "Bearer bogus"})
        self.assertEqual(resp.status_code, 401)

    def test_public_routes(self) -> None:
        self.assertEqual(self.client.get("/exercise-library").status_code, 200)
        self.assertEqual(self.client.get("/equipment-options").status_code, 200)
        self.assertEqual(self.client.get("/health").status_code, 200)

    def test_session_and_logout(self) -> None:
        token = self._register_and_login()
        headers = {"Authorization": f"Bearer {token}"}
        resp = self.client.get("/auth/session", headers=headers)
        self.assertEqual(resp.json()["username"], "carol")

        resp = self.client.delete("/auth/session", headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get("/auth/session", headers=headers).status_code, 401)

    def test_expired_session(self) -> None:
        token = self._register_and_login()
        past = (
            datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=1)
        ).isoformat(timespec="microseconds")
        self.api.sessions.execute(
            "UPDATE auth_sessions SET expires_at = ? WHERE token = ?;", (past, token)
        )
        resp = self.client.get("/plans", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(resp.status_code, 401)

    def test_auth_disabled(self) -> None:
        token = self._register_and_login()
        self.api.settings.set_bool("auth_enabled", False)
        resp = self.client.get("/plans", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json(), {"error": "Auth backend not configured"})
        resp = self.client.post("/token", json={"username": "carol", "password": "pw"})
        self.assertEqual(resp.status_code, 503)

    def test_password_too_long(self) -> None:
        resp = self.client.post(
            "/users/register", json={"username": "dave", "password": "x" * 80}
        )
        self.assertEqual(resp.status_code, 400)


if __name__ == "__main__":
    unittest.main()
