import argparse
import logging
import shutil

from config import configure_logging
from errors import WeeklyGrindError
from rest_api import WorkoutPlanAPI

logger = logging.getLogger(__name__)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def create_user(db_path: str, yaml_path: str, username: str, password: str) -> int:
    api = WorkoutPlanAPI(db_path=db_path, yaml_path=yaml_path)
    user = api.auth.register(username, password)
    print(f"Created user {user['username']} (id {user['id']})")
    return user["id"]


def demo_data(db_path: str, yaml_path: str, username: str = "demo", password: str = "demo") -> None:
    """Create a demo user with the default plan started and day 1 partly checked."""
    api = WorkoutPlanAPI(db_path=db_path, yaml_path=yaml_path)
    if api.users.fetch_by_username(username) is not None:
        print("Demo user already exists")
        return
    user = api.auth.register(username, password)
    plan_id = api.planner.create_plan_from_template(user["id"])
    user_plan, _created = api.tracker.start_plan(user["id"], plan_id)
    day_one = api.planner.fetch_plan_tree(plan_id)["days"][0]
    for exercise in day_one["exercises"][:3]:
        api.tracker.mark_exercise_complete(user_plan["id"], user["id"], 1, exercise["id"])
    print(f"Demo data inserted; log in as {username}/{password}")


def serve(
    db_path: str,
    yaml_path: str,
    host: str,
    port: int,
    rate_limit: int | None = None,
) -> None:
    import uvicorn

    api = WorkoutPlanAPI(db_path=db_path, yaml_path=yaml_path, rate_limit=rate_limit)
    configure_logging(api.settings.get_text("log_level", "INFO"))
    logger.info("Serving on %s:%s using %s", host, port, db_path)
    uvicorn.run(api.app, host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="Weekly Grind utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--db", default="weeklygrind.db")
    srv.add_argument("--yaml", default="settings.yaml")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--rate-limit", type=int, default=None)

    usr = sub.add_parser("create-user")
    usr.add_argument("--db", default="weeklygrind.db")
    usr.add_argument("--yaml", default="settings.yaml")
    usr.add_argument("--username", required=True)
    usr.add_argument("--password", required=True)

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="weeklygrind.db")
    demo.add_argument("--yaml", default="settings.yaml")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="weeklygrind.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="weeklygrind.db")

    args = parser.parse_args()

    try:
        if args.cmd == "serve":
            serve(args.db, args.yaml, args.host, args.port, args.rate_limit)
        elif args.cmd == "create-user":
            create_user(args.db, args.yaml, args.username, args.password)
        elif args.cmd == "demo":
            demo_data(args.db, args.yaml)
        elif args.cmd == "backup":
            backup_db(args.db, args.out)
        elif args.cmd == "restore":
            restore_db(args.src, args.db)
    except WeeklyGrindError as e:
        parser.exit(1, f"error: {e.message}\n")


if __name__ == "__main__":
    main()
