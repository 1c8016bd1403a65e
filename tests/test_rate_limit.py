import os
import sys
import unittest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import WorkoutPlanAPI


class RateLimitTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_rate.db"
        self.yaml_path = "test_rate.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = WorkoutPlanAPI(
            db_path=self.db_path, yaml_path=self.yaml_path, rate_limit=2, rate_window=60
        )
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_limit_exceeded(self) -> None:
        self.assertEqual(self.client.get("/health").status_code, 200)
        self.assertEqual(self.client.get("/health").status_code, 200)
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 429)
        self.assertEqual(resp.json(), {"error": "rate limit exceeded"})


if __name__ == "__main__":
    unittest.main()
