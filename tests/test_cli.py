import os
import sys
import unittest
from unittest.mock import patch

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from rest_api import WorkoutPlanAPI


class CLITest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_cli.db"
        self.yaml_path = "test_cli.yaml"
        self.backup_path = "test_cli_backup.db"
        for path in (self.db_path, self.yaml_path, self.backup_path):
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path, self.backup_path):
            if os.path.exists(path):
                os.remove(path)

    def test_demo_data(self) -> None:
        cli.demo_data(self.db_path, self.yaml_path)
        api = WorkoutPlanAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        user = api.users.fetch_by_username("demo")
        self.assertIsNotNone(user)
        view = api.tracker.active_plan_view(user["id"])
        self.assertEqual(view["user_plan"]["current_day_index"], 1)
        self.assertEqual(len(view["plan"]["days"][0]["checked_exercise_ids"]), 3)

        cli.demo_data(self.db_path, self.yaml_path)
        self.assertEqual(len(api.planner.list_plans(user["id"])), 1)

    def test_create_user(self) -> None:
        user_id = cli.create_user(self.db_path, self.yaml_path, "frank", "pw")
        api = WorkoutPlanAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.assertEqual(api.users.fetch_detail(user_id)["username"], "frank")
        self.assertTrue(api.auth.login("frank", "pw")["token"])

    def test_backup_and_restore(self) -> None:
        cli.create_user(self.db_path, self.yaml_path, "gina", "pw")
        cli.backup_db(self.db_path, self.backup_path)
        os.remove(self.db_path)
        cli.restore_db(self.backup_path, self.db_path)
        api = WorkoutPlanAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.assertIsNotNone(api.users.fetch_by_username("gina"))

    def test_main_reports_app_errors(self) -> None:
        cli.create_user(self.db_path, self.yaml_path, "hank", "pw")
        argv = [
            "cli.py",
            "create-user",
            "--db",
            self.db_path,
            "--yaml",
            self.yaml_path,
            "--username",
            "hank",
            "--password",
            "pw",
        ]
        with patch.object(sys, "argv", argv):
            with self.assertRaises(SystemExit) as ctx:
                cli.main()
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
