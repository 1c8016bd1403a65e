from __future__ import annotations

import datetime
import logging
import secrets

from db import ShareTokenRepository, UserPlanRepository, SettingsRepository, utc_now
from errors import NotFoundError, ValidationError
from planner_service import PlanService

logger = logging.getLogger(__name__)

INVALID_SHARE_MESSAGE = "Share link expired or invalid"


class ShareService:
    """Single-use, time-limited share links and the fork performed on accept."""

    def __init__(
        self,
        token_repo: ShareTokenRepository,
        user_plan_repo: UserPlanRepository,
        plan_service: PlanService,
        settings: SettingsRepository,
    ) -> None:
        self.tokens = token_repo
        self.user_plans = user_plan_repo
        self.plans = plan_service
        self.settings = settings

    @staticmethod
    def _is_live(row: dict | None, now: datetime.datetime) -> bool:
        if row is None or row["used_at"] is not None:
            return False
        return datetime.datetime.fromisoformat(row["expires_at"]) > now

    def issue(self, plan_id: int, user_id: int) -> dict:
        self.plans.fetch_owned_plan(plan_id, user_id)
        days = self.settings.get_int("share_token_days", 7)
        token = secrets.token_hex(16)
        expires_at = (
            datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=days)
        ).isoformat(timespec="microseconds")
        self.tokens.create(plan_id, token, expires_at)
        base_url = self.settings.get_text("app_url", "http://localhost:8000").rstrip("/")
        logger.info("Issued share token for plan %s", plan_id)
        return {"url": f"{base_url}/s/{token}", "token": token, "expires_at": expires_at}

    def preview(self, token: str) -> dict:
        """Return a read-only snapshot of the shared plan; token state is untouched."""
        row = self.tokens.fetch_by_token(token)
        if not self._is_live(row, datetime.datetime.now(datetime.timezone.utc)):
            logger.warning("Rejected share preview")
            raise NotFoundError(INVALID_SHARE_MESSAGE)
        tree = self.plans.fetch_plan_tree(row["plan_id"])
        return {
            "plan": {
                "id": tree["id"],
                "name": tree["name"],
                "equipment_tags": tree["equipment_tags"],
                "days": tree["days"],
            }
        }

    def accept(self, token: str, user_id: int) -> dict:
        """Fork the shared plan for ``user_id`` and make the copy active.

        Copy, token consumption and activation commit together; a token
        consumed concurrently rolls the copy back.
        """
        if not token:
            raise ValidationError("token required")
        with self.tokens.transaction() as conn:
            row = self.tokens.fetch_by_token(token, conn)
            if not self._is_live(row, datetime.datetime.now(datetime.timezone.utc)):
                logger.warning("Rejected share accept for user %s", user_id)
                raise NotFoundError(INVALID_SHARE_MESSAGE)
            new_plan_id = self.plans.copy_plan(row["plan_id"], user_id, conn)
            if not self.tokens.consume(token, utc_now(), conn):
                raise NotFoundError(INVALID_SHARE_MESSAGE)
            self.user_plans.activate(user_id, new_plan_id, conn)
        logger.info("User %s forked plan %s into %s", user_id, row["plan_id"], new_plan_id)
        return {"plan_id": new_plan_id}
