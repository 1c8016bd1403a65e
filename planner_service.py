from __future__ import annotations

import logging
import sqlite3

from db import (
    PlanRepository,
    PlanDayRepository,
    DayExerciseRepository,
    ExerciseLibraryRepository,
)
from errors import AuthorizationError, NotFoundError, ValidationError
from name_resolver import ExerciseNameResolver, ExerciseRef
from plan_template import DAY_TYPES, DEFAULT_PLAN, iter_day_exercises

logger = logging.getLogger(__name__)


class PlanService:
    """Creates, reads, edits and copies plans together with their days and exercises."""

    _EXERCISE_FIELDS = ("section_title", "sets_reps", "notes", "url", "equipment", "sort_order", "is_hiit_move")

    def __init__(
        self,
        plan_repo: PlanRepository,
        day_repo: PlanDayRepository,
        exercise_repo: DayExerciseRepository,
        library_repo: ExerciseLibraryRepository,
        template: dict | None = None,
    ) -> None:
        self.plans = plan_repo
        self.days = day_repo
        self.exercises = exercise_repo
        self.library = library_repo
        self.template = template or DEFAULT_PLAN
        self.resolver = ExerciseNameResolver(library_repo.fetch_by_ids)

    def create_plan_from_template(
        self,
        owner_id: int,
        name: str | None = None,
        equipment_tags: list[str] | None = None,
    ) -> int:
        plan_name = (name or "").strip() or self.template["name"]
        if equipment_tags is None:
            tags = list(self.template["equipment_tags"])
        else:
            tags = [t.strip() for t in equipment_tags if t and t.strip()]
        with self.plans.transaction() as conn:
            plan_id = self.plans.create(owner_id, plan_name, tags, conn)
            for day in self.template["days"]:
                day_id = self.days.create(
                    plan_id,
                    day["day_number"],
                    day["name"],
                    day["type"],
                    day.get("duration"),
                    day.get("rest_content"),
                    day.get("hiit_structure"),
                    day.get("hiit_note"),
                    conn=conn,
                )
                for sort_order, title, ex in iter_day_exercises(day):
                    self.exercises.add(
                        day_id,
                        ExerciseRef.from_fields(ex["name"], None),
                        section_title=title,
                        sets_reps=ex.get("sets_reps"),
                        notes=ex.get("notes", ""),
                        sort_order=sort_order,
                        is_hiit_move=ex.get("is_hiit", False),
                        conn=conn,
                    )
        logger.info("Created plan %s for user %s", plan_id, owner_id)
        return plan_id

    def copy_plan(
        self,
        plan_id: int,
        owner_id: int,
        conn: sqlite3.Connection,
        name: str | None = None,
    ) -> int:
        """Deep copy ``plan_id`` for ``owner_id`` inside the caller's transaction.

        The copy is named ``"<name> (copy)"`` unless ``name`` is given.
        """
        source = self.plans.fetch_detail(plan_id, conn)
        new_name = name or f"{source['name']} (copy)"
        new_id = self.plans.create(owner_id, new_name, source["equipment_tags"], conn)
        source_days = self.days.fetch_for_plan(plan_id, conn)
        day_map: dict[int, int] = {}
        for day in source_days:
            day_map[day["id"]] = self.days.create(
                new_id,
                day["day_number"],
                day["name"],
                day["type"],
                day["duration"],
                day["rest_content"],
                day["hiit_structure"],
                day["hiit_note"],
                conn=conn,
            )
        for ex in self.exercises.fetch_for_days(day_map.keys(), conn):
            self.exercises.add(
                day_map[ex["plan_day_id"]],
                ExerciseRef.from_fields(ex["custom_name"], ex["library_exercise_id"]),
                section_title=ex["section_title"],
                sets_reps=ex["sets_reps"],
                notes=ex["notes"],
                url=ex["url"],
                equipment=ex["equipment"],
                sort_order=ex["sort_order"],
                is_hiit_move=ex["is_hiit_move"],
                conn=conn,
            )
        return new_id

    def fetch_plan_tree(self, plan_id: int) -> dict:
        """Return the plan with its days and resolved exercises."""
        plan = self.plans.fetch_detail(plan_id)
        days = self.days.fetch_for_plan(plan_id)
        exercises = self.resolver.resolve(
            self.exercises.fetch_for_days([d["id"] for d in days])
        )
        by_day: dict[int, list[dict]] = {}
        for ex in exercises:
            by_day.setdefault(ex["plan_day_id"], []).append(ex)
        for day in days:
            day["exercises"] = by_day.get(day["id"], [])
        plan["days"] = days
        return plan

    def list_plans(self, owner_id: int) -> list[dict]:
        return self.plans.fetch_for_owner(owner_id)

    def fetch_owned_plan(self, plan_id: int, user_id: int) -> dict:
        """Return the plan row, hiding plans of other users as missing."""
        plan = self.plans.fetch_detail(plan_id)
        if plan["owner_id"] != user_id:
            raise NotFoundError("Plan not found")
        return plan

    def _require_plan_owner(self, plan_id: int, user_id: int) -> dict:
        plan = self.plans.fetch_detail(plan_id)
        if plan["owner_id"] != user_id:
            raise AuthorizationError("Not authorized")
        return plan

    def _owned_day(self, day_id: int, user_id: int) -> dict:
        day = self.days.fetch_detail(day_id)
        self._require_plan_owner(day["plan_id"], user_id)
        return day

    def _owned_exercise(self, exercise_id: int, user_id: int) -> dict:
        exercise = self.exercises.fetch_detail(exercise_id)
        self._owned_day(exercise["plan_day_id"], user_id)
        return exercise

    def get_plan(self, plan_id: int, user_id: int) -> dict:
        self.fetch_owned_plan(plan_id, user_id)
        return self.fetch_plan_tree(plan_id)

    def update_plan(
        self,
        plan_id: int,
        user_id: int,
        name: str | None = None,
        equipment_tags: list[str] | None = None,
    ) -> dict:
        self.fetch_owned_plan(plan_id, user_id)
        if name is not None:
            if not name.strip():
                raise ValidationError("Plan name cannot be empty")
            self.plans.rename(plan_id, name.strip())
        if equipment_tags is not None:
            tags = [t.strip() for t in equipment_tags if t and t.strip()]
            self.plans.set_equipment_tags(plan_id, tags)
        return self.fetch_plan_tree(plan_id)

    def delete_plan(self, plan_id: int, user_id: int) -> None:
        self.fetch_owned_plan(plan_id, user_id)
        self.plans.delete(plan_id)
        logger.info("Deleted plan %s", plan_id)

    def update_day(self, day_id: int, user_id: int, fields: dict) -> dict:
        self._owned_day(day_id, user_id)
        if "type" in fields and fields["type"] not in DAY_TYPES:
            raise ValidationError(f"type must be one of {', '.join(DAY_TYPES)}")
        if "name" in fields and not (fields["name"] or "").strip():
            raise ValidationError("Day name cannot be empty")
        self.days.update(day_id, fields)
        return self.days.fetch_detail(day_id)

    def _check_library_id(self, library_exercise_id: int | None) -> None:
        if library_exercise_id is not None and self.library.fetch_detail(library_exercise_id) is None:
            raise ValidationError("Library exercise not found")

    def add_exercise(self, day_id: int, user_id: int, fields: dict) -> dict:
        self._owned_day(day_id, user_id)
        ref = ExerciseRef.from_fields(fields.get("custom_name"), fields.get("library_exercise_id"))
        self._check_library_id(ref.columns()[1])
        sort_order = fields.get("sort_order")
        if sort_order is None:
            sort_order = self.exercises.next_sort_order(day_id)
        exercise_id = self.exercises.add(
            day_id,
            ref,
            section_title=fields.get("section_title"),
            sets_reps=fields.get("sets_reps"),
            notes=fields.get("notes"),
            url=fields.get("url"),
            equipment=fields.get("equipment"),
            sort_order=sort_order,
            is_hiit_move=bool(fields.get("is_hiit_move", False)),
        )
        return self.resolver.resolve([self.exercises.fetch_detail(exercise_id)])[0]

    def update_exercise(self, exercise_id: int, user_id: int, fields: dict) -> dict:
        """Edit an exercise; supplying a name or library id swaps the movement."""
        self._owned_exercise(exercise_id, user_id)
        ref = None
        if "custom_name" in fields or "library_exercise_id" in fields:
            ref = ExerciseRef.from_fields(fields.get("custom_name"), fields.get("library_exercise_id"))
            self._check_library_id(ref.columns()[1])
        self.exercises.update(
            exercise_id,
            {k: v for k, v in fields.items() if k in self._EXERCISE_FIELDS},
            ref,
        )
        return self.resolver.resolve([self.exercises.fetch_detail(exercise_id)])[0]

    def remove_exercise(self, exercise_id: int, user_id: int) -> None:
        self._owned_exercise(exercise_id, user_id)
        self.exercises.remove(exercise_id)

    def exercise_display_name(self, exercise_id: int, user_id: int) -> str:
        exercise = self._owned_exercise(exercise_id, user_id)
        return self.resolver.display_name(exercise)

    def search_library(
        self, category: str | None = None, equipment: str | list[str] | None = None
    ) -> list[dict]:
        if isinstance(equipment, str):
            equipment = [e.strip() for e in equipment.split(",")]
        return self.library.search(category or None, equipment)

    def equipment_options(self) -> dict:
        return {
            "equipment": self.library.fetch_equipment(),
            "default_tags": list(self.template["equipment_tags"]),
        }
