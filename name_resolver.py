"""Display names for day exercises.

A day exercise names its movement either inline (``custom_name``) or by
pointing into the shared exercise library (``library_exercise_id``), never
both.  :class:`ExerciseRef` models that choice and
:class:`ExerciseNameResolver` turns stored rows back into display names.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from errors import ValidationError

UNKNOWN_EXERCISE = "Unknown"


@dataclass(frozen=True)
class ExerciseRef(ABC):
    """Reference to the movement a day exercise performs."""

    @classmethod
    def from_fields(
        cls, custom_name: Optional[str], library_exercise_id: Optional[int]
    ) -> "ExerciseRef":
        name = (custom_name or "").strip()
        if name and library_exercise_id is not None:
            raise ValidationError("Provide either custom_name or library_exercise_id, not both")
        if name:
            return CustomExercise(name)
        if library_exercise_id is not None:
            return LibraryExercise(int(library_exercise_id))
        raise ValidationError("custom_name or library_exercise_id is required")

    @abstractmethod
    def columns(self) -> Tuple[Optional[str], Optional[int]]:
        """Return the ``(custom_name, library_exercise_id)`` column pair."""


@dataclass(frozen=True)
class CustomExercise(ExerciseRef):
    name: str

    def columns(self) -> Tuple[Optional[str], Optional[int]]:
        return self.name, None


@dataclass(frozen=True)
class LibraryExercise(ExerciseRef):
    library_exercise_id: int

    def columns(self) -> Tuple[Optional[str], Optional[int]]:
        return None, self.library_exercise_id


LibraryLookup = Callable[[Iterable[int]], Dict[int, dict]]


class ExerciseNameResolver:
    """Annotate exercise rows with ``display_name``.

    ``lookup`` receives the distinct library ids of a batch and returns the
    matching library rows keyed by id.  It is called at most once per
    :meth:`resolve` call.
    """

    def __init__(self, lookup: LibraryLookup) -> None:
        self._lookup = lookup

    @staticmethod
    def _name_for(row: dict, library: Dict[int, dict]) -> str:
        custom = row.get("custom_name")
        if custom:
            return custom
        library_id = row.get("library_exercise_id")
        if library_id is None:
            return ""
        entry = library.get(library_id)
        return entry["name"] if entry else UNKNOWN_EXERCISE

    def resolve(self, rows: Iterable[dict]) -> List[dict]:
        rows = list(rows)
        ids = {
            r["library_exercise_id"]
            for r in rows
            if not r.get("custom_name") and r.get("library_exercise_id") is not None
        }
        library = self._lookup(sorted(ids)) if ids else {}
        resolved = []
        for row in rows:
            item = dict(row)
            item["display_name"] = self._name_for(row, library)
            entry = library.get(row.get("library_exercise_id")) if not row.get("custom_name") else None
            item["display_equipment"] = row.get("equipment") or (entry or {}).get("equipment")
            item["display_muscle_group"] = (entry or {}).get("muscle_group")
            resolved.append(item)
        return resolved

    def display_name(self, row: dict) -> str:
        return self.resolve([row])[0]["display_name"]
