from __future__ import annotations

import logging

from db import (
    UserPlanRepository,
    CompletionRepository,
    CompletionExerciseRepository,
    PlanDayRepository,
    DayExerciseRepository,
    utc_now,
)
from errors import NotFoundError, ValidationError
from planner_service import PlanService

logger = logging.getLogger(__name__)


class CompletionTracker:
    """Tracks day completions and the current day pointer of a user's active plan.

    For each ``(user_plan_id, day_number)`` there is at most one in-progress
    completion (``completed_at`` is NULL) holding the exercises checked so
    far. Completing the day stamps it, or records an empty finalized
    completion when nothing was checked, and moves the pointer one day on.
    """

    def __init__(
        self,
        user_plan_repo: UserPlanRepository,
        completion_repo: CompletionRepository,
        checklist_repo: CompletionExerciseRepository,
        day_repo: PlanDayRepository,
        exercise_repo: DayExerciseRepository,
        plan_service: PlanService,
    ) -> None:
        self.user_plans = user_plan_repo
        self.completions = completion_repo
        self.checklist = checklist_repo
        self.days = day_repo
        self.exercises = exercise_repo
        self.plans = plan_service

    @staticmethod
    def _check_day_number(day_number: int) -> int:
        if not isinstance(day_number, int) or isinstance(day_number, bool) or not 1 <= day_number <= 7:
            raise ValidationError("day_number 1-7 required")
        return day_number

    def _owned_user_plan(self, user_plan_id: int, user_id: int) -> dict:
        user_plan = self.user_plans.fetch_detail(user_plan_id)
        if user_plan["user_id"] != user_id:
            raise NotFoundError("User plan not found")
        return user_plan

    def _check_exercise_in_day(self, user_plan: dict, day_number: int, day_exercise_id: int) -> None:
        day = self.days.fetch_by_number(user_plan["plan_id"], day_number)
        exercise = self.exercises.fetch_detail(day_exercise_id)
        if day is None or exercise["plan_day_id"] != day["id"]:
            raise ValidationError("Exercise does not belong to this day")

    def start_plan(self, user_id: int, plan_id: int) -> tuple[dict, bool]:
        """Make ``plan_id`` the user's active plan starting at day 1."""
        self.plans.fetch_owned_plan(plan_id, user_id)
        user_plan, created = self.user_plans.activate(user_id, plan_id)
        logger.info("User %s started plan %s", user_id, plan_id)
        return user_plan, created

    def mark_exercise_complete(
        self, user_plan_id: int, user_id: int, day_number: int, day_exercise_id: int
    ) -> dict:
        self._check_day_number(day_number)
        user_plan = self._owned_user_plan(user_plan_id, user_id)
        self._check_exercise_in_day(user_plan, day_number, day_exercise_id)
        with self.completions.transaction() as conn:
            completion_id = self.completions.ensure_in_progress(user_plan_id, day_number, conn)
            self.checklist.add(completion_id, day_exercise_id, conn)
        return {
            "ok": True,
            "completion_id": completion_id,
            "checked_exercise_ids": self.checklist.fetch_for_completion(completion_id),
        }

    def mark_exercise_incomplete(
        self, user_plan_id: int, user_id: int, day_number: int, day_exercise_id: int
    ) -> dict:
        """Uncheck an exercise in the in-progress completion; finalized ones stay as they are."""
        self._check_day_number(day_number)
        self._owned_user_plan(user_plan_id, user_id)
        completion = self.completions.fetch_in_progress(user_plan_id, day_number)
        if completion is None:
            return {"ok": True, "completion_id": None, "checked_exercise_ids": []}
        self.checklist.remove(completion["id"], day_exercise_id)
        return {
            "ok": True,
            "completion_id": completion["id"],
            "checked_exercise_ids": self.checklist.fetch_for_completion(completion["id"]),
        }

    def complete_day(self, user_plan_id: int, user_id: int, day_number: int) -> dict:
        """Finalize the day and advance ``current_day_index`` (7 wraps to 1).

        The pointer advances from its own value, not from ``day_number``.
        """
        self._check_day_number(day_number)
        self._owned_user_plan(user_plan_id, user_id)
        now = utc_now()
        with self.completions.transaction() as conn:
            completion = self.completions.fetch_in_progress(user_plan_id, day_number, conn)
            if completion is not None:
                self.completions.finalize(completion["id"], now, conn)
            else:
                self.completions.create_finalized(user_plan_id, day_number, now, conn)
            self.user_plans.advance_day(user_plan_id, conn)
            updated = self.user_plans.fetch_detail(user_plan_id, conn)
        logger.info(
            "User plan %s completed day %s, now on day %s",
            user_plan_id,
            day_number,
            updated["current_day_index"],
        )
        return updated

    def active_plan_view(self, user_id: int) -> dict:
        user_plan = self.user_plans.fetch_for_user(user_id)
        if user_plan is None:
            return {"user_plan": None, "plan": None, "needs_setup": True}
        plan = self.plans.fetch_plan_tree(user_plan["plan_id"])

        completions = self.completions.fetch_for_user_plan(user_plan["id"])
        checked = self.checklist.fetch_for_completions(c["id"] for c in completions)
        for completion in completions:
            completion["completed_exercise_ids"] = checked.get(completion["id"], [])

        # in-progress rows sort first, then newest finalized
        current: dict[int, dict] = {}
        for completion in completions:
            current.setdefault(completion["day_number"], completion)
        for day in plan["days"]:
            latest = current.get(day["day_number"])
            day["checked_exercise_ids"] = latest["completed_exercise_ids"] if latest else []
            day["in_progress"] = bool(latest) and latest["completed_at"] is None
            finalized = [
                c["completed_at"]
                for c in completions
                if c["day_number"] == day["day_number"] and c["completed_at"]
            ]
            day["last_completed_at"] = finalized[0] if finalized else None

        return {
            "user_plan": user_plan,
            "plan": plan,
            "completions": completions,
            "needs_setup": False,
        }
