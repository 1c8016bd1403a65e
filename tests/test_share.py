import os
import re
import sys
import datetime
import unittest
from unittest.mock import patch
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import WorkoutPlanAPI

INVALID = {"error": "Share link expired or invalid"}


class ShareAPITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_share.db"
        self.yaml_path = "test_share.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = WorkoutPlanAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)
        self.alice = self._login("alice")
        self.bob = self._login("bob")
        self.plan = self.client.post("/plans", headers=self.alice).json()

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def _login(self, username: str) -> dict:
        self.client.post("/users/register", json={"username": username, "password": "pw"})
        token = self.client.post("/token", json={"username": username, "password": "pw"}).json()["token"]
        return {"Authorization": f"Bearer {token}"}

    def _share(self) -> dict:
        resp = self.client.post(f"/plans/{self.plan['id']}/share", headers=self.alice)
        self.assertEqual(resp.status_code, 200)
        return resp.json()

    def _expire(self, token: str) -> None:
        past = (
            datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(seconds=1)
        ).isoformat(timespec="microseconds")
        self.api.share_tokens.execute(
            "UPDATE share_tokens SET expires_at = ? WHERE token = ?;", (past, token)
        )

    def test_issue(self) -> None:
        share = self._share()
        self.assertRegex(share["token"], r"^[0-9a-f]{32}$")
        self.assertEqual(share["url"], f"http://localhost:8000/s/{share['token']}")
        expires = datetime.datetime.fromisoformat(share["expires_at"])
        delta = expires - datetime.datetime.now(datetime.timezone.utc)
        self.assertGreater(delta, datetime.timedelta(days=6, hours=23))
        self.assertLessEqual(delta, datetime.timedelta(days=7))

    def test_issue_uses_settings(self) -> None:
        self.api.settings.set_text("app_url", "https://grind.example/")
        self.api.settings.set_int("share_token_days", 2)
        share = self._share()
        self.assertTrue(share["url"].startswith("https://grind.example/s/"))
        expires = datetime.datetime.fromisoformat(share["expires_at"])
        delta = expires - datetime.datetime.now(datetime.timezone.utc)
        self.assertLessEqual(delta, datetime.timedelta(days=2))

    def test_issue_requires_owner(self) -> None:
        resp = self.client.post(f"/plans/{self.plan['id']}/share", headers=self.bob)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"error": "Plan not found"})
        resp = self.client.post("/plans/999999/share", headers=self.alice)
        self.assertEqual(resp.status_code, 404)

    def test_preview_is_public_and_read_only(self) -> None:
        share = self._share()
        resp = self.client.get(f"/share/{share['token']}")
        self.assertEqual(resp.status_code, 200)
        plan = resp.json()["plan"]
        self.assertEqual(plan["name"], "Weekly Grind")
        self.assertEqual(len(plan["days"]), 7)
        self.assertNotIn("owner_id", plan)
        self.assertEqual(plan["days"][0]["exercises"][0]["display_name"], "TRX Face Pulls")
        row = self.api.share_tokens.fetch_by_token(share["token"])
        self.assertIsNone(row["used_at"])
        self.assertEqual(self.client.get(f"/share/{share['token']}").status_code, 200)

    def test_expired_and_unknown_preview_look_alike(self) -> None:
        share = self._share()
        self._expire(share["token"])
        expired = self.client.get(f"/share/{share['token']}")
        unknown = self.client.get("/share/" + "0" * 32)
        self.assertEqual(expired.status_code, 404)
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(expired.json(), INVALID)
        self.assertEqual(unknown.json(), INVALID)

    def test_accept_forks_plan(self) -> None:
        share = self._share()
        resp = self.client.post("/share/accept", json={"token": share["token"]}, headers=self.bob)
        self.assertEqual(resp.status_code, 201)
        new_id = resp.json()["plan_id"]
        self.assertNotEqual(new_id, self.plan["id"])

        copy = self.client.get(f"/plans/{new_id}", headers=self.bob).json()
        self.assertEqual(copy["name"], "Weekly Grind (copy)")
        self.assertEqual(copy["equipment_tags"], self.plan["equipment_tags"])
        day_fields = ("day_number", "type", "name", "duration", "rest_content", "hiit_structure", "hiit_note")
        ex_fields = ("section_title", "custom_name", "library_exercise_id", "sets_reps", "notes", "url", "equipment", "sort_order", "is_hiit_move", "display_name")
        for original, copied in zip(self.plan["days"], copy["days"]):
            self.assertNotEqual(original["id"], copied["id"])
            self.assertEqual(copied["plan_id"], new_id)
            for field in day_fields:
                self.assertEqual(original[field], copied[field])
            self.assertEqual(len(original["exercises"]), len(copied["exercises"]))
            for o_ex, c_ex in zip(original["exercises"], copied["exercises"]):
                self.assertNotEqual(o_ex["id"], c_ex["id"])
                self.assertEqual(c_ex["plan_day_id"], copied["id"])
                for field in ex_fields:
                    self.assertEqual(o_ex[field], c_ex[field])

        view = self.client.get("/user-plans/active", headers=self.bob).json()
        self.assertEqual(view["user_plan"]["plan_id"], new_id)
        self.assertEqual(view["user_plan"]["current_day_index"], 1)

        self.assertEqual(
            [p["id"] for p in self.client.get("/plans", headers=self.alice).json()],
            [self.plan["id"]],
        )

    def test_accept_resets_existing_user_plan(self) -> None:
        bob_plan = self.client.post("/plans", headers=self.bob).json()
        started = self.client.post("/user-plans/start", json={"plan_id": bob_plan["id"]}, headers=self.bob).json()
        self.client.post(f"/user-plans/{started['id']}/complete", json={"day_number": 1}, headers=self.bob)

        share = self._share()
        new_id = self.client.post("/share/accept", json={"token": share["token"]}, headers=self.bob).json()["plan_id"]
        view = self.client.get("/user-plans/active", headers=self.bob).json()
        self.assertEqual(view["user_plan"]["id"], started["id"])
        self.assertEqual(view["user_plan"]["plan_id"], new_id)
        self.assertEqual(view["user_plan"]["current_day_index"], 1)

    def test_token_single_use(self) -> None:
        share = self._share()
        first = self.client.post("/share/accept", json={"token": share["token"]}, headers=self.bob)
        self.assertEqual(first.status_code, 201)
        second = self.client.post("/share/accept", json={"token": share["token"]}, headers=self.alice)
        self.assertEqual(second.status_code, 404)
        self.assertEqual(second.json(), INVALID)
        self.assertEqual(self.client.get(f"/share/{share['token']}").json(), INVALID)

    def test_accept_rejects_expired_token(self) -> None:
        share = self._share()
        self._expire(share["token"])
        resp = self.client.post("/share/accept", json={"token": share["token"]}, headers=self.bob)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), INVALID)
        self.assertEqual(self.client.get("/plans", headers=self.bob).json(), [])

    def test_accept_requires_auth_and_token(self) -> None:
        share = self._share()
        resp = self.client.post("/share/accept", json={"token": share["token"]})
        self.assertEqual(resp.status_code, 401)
        resp = self.client.post("/share/accept", json={}, headers=self.bob)
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post("/share/accept", json={"token": ""}, headers=self.bob)
        self.assertEqual(resp.status_code, 400)

    def test_lost_race_rolls_back_copy(self) -> None:
        share = self._share()
        with patch.object(self.api.share_tokens, "consume", return_value=False):
            resp = self.client.post("/share/accept", json={"token": share["token"]}, headers=self.bob)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), INVALID)
        self.assertEqual(self.client.get("/plans", headers=self.bob).json(), [])
        self.assertEqual(
            self.api.plans.fetch_all("SELECT COUNT(*) FROM plan_days;")[0][0],
            len(self.plan["days"]),
        )
        view = self.client.get("/user-plans/active", headers=self.bob).json()
        self.assertTrue(view["needs_setup"])

    def test_forked_plan_is_independent(self) -> None:
        share = self._share()
        new_id = self.client.post("/share/accept", json={"token": share["token"]}, headers=self.bob).json()["plan_id"]
        copy = self.client.get(f"/plans/{new_id}", headers=self.bob).json()
        ex_id = copy["days"][0]["exercises"][0]["id"]
        self.client.patch(f"/day-exercises/{ex_id}", json={"custom_name": "Bob's Row"}, headers=self.bob)
        original = self.client.get(f"/plans/{self.plan['id']}", headers=self.alice).json()
        self.assertEqual(original["days"][0]["exercises"][0]["display_name"], "TRX Face Pulls")
        self.assertTrue(re.search(r"\(copy\)$", copy["name"]))


if __name__ == "__main__":
    unittest.main()
