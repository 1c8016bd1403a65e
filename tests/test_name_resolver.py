import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from errors import ValidationError
from name_resolver import (
    CustomExercise,
    ExerciseNameResolver,
    ExerciseRef,
    LibraryExercise,
    UNKNOWN_EXERCISE,
)


class FakeLibrary:
    def __init__(self, entries: dict) -> None:
        self.entries = entries
        self.calls: list[list[int]] = []

    def __call__(self, ids):
        ids = list(ids)
        self.calls.append(ids)
        return {i: self.entries[i] for i in ids if i in self.entries}


class ExerciseRefTest(unittest.TestCase):
    def test_custom_name(self) -> None:
        ref = ExerciseRef.from_fields("  Floor Press ", None)
        self.assertEqual(ref, CustomExercise("Floor Press"))
        self.assertEqual(ref.columns(), ("Floor Press", None))

    def test_library_id(self) -> None:
        ref = ExerciseRef.from_fields("", 7)
        self.assertEqual(ref, LibraryExercise(7))
        self.assertEqual(ref.columns(), (None, 7))

    def test_both_or_neither_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            ExerciseRef.from_fields("Row", 3)
        with self.assertRaises(ValidationError):
            ExerciseRef.from_fields(None, None)
        with self.assertRaises(ValidationError):
            ExerciseRef.from_fields("   ", None)

    def test_base_reference_is_abstract(self) -> None:
        with self.assertRaises(TypeError):
            ExerciseRef()


class ExerciseNameResolverTest(unittest.TestCase):
    def setUp(self) -> None:
        self.library = FakeLibrary(
            {
                1: {"name": "Barbell Row", "equipment": "Barbell + Plates", "muscle_group": "Back"},
                2: {"name": "TRX Pike", "equipment": "TRX", "muscle_group": "Core"},
            }
        )
        self.resolver = ExerciseNameResolver(self.library)

    def test_custom_name_wins(self) -> None:
        rows = [{"id": 1, "custom_name": "Pendlay Row", "library_exercise_id": 1}]
        self.assertEqual(self.resolver.resolve(rows)[0]["display_name"], "Pendlay Row")
        self.assertEqual(self.library.calls, [])

    def test_single_batched_lookup(self) -> None:
        rows = [
            {"id": 1, "custom_name": None, "library_exercise_id": 2},
            {"id": 2, "custom_name": "Inchworms", "library_exercise_id": None},
            {"id": 3, "custom_name": None, "library_exercise_id": 1},
            {"id": 4, "custom_name": "", "library_exercise_id": 2},
        ]
        resolved = self.resolver.resolve(rows)
        self.assertEqual(
            [r["display_name"] for r in resolved],
            ["TRX Pike", "Inchworms", "Barbell Row", "TRX Pike"],
        )
        self.assertEqual(self.library.calls, [[1, 2]])
        self.assertEqual(resolved[0]["display_muscle_group"], "Core")
        self.assertEqual(resolved[0]["display_equipment"], "TRX")

    def test_missing_reference_and_empty_row(self) -> None:
        rows = [
            {"id": 1, "custom_name": None, "library_exercise_id": 99},
            {"id": 2, "custom_name": None, "library_exercise_id": None},
        ]
        resolved = self.resolver.resolve(rows)
        self.assertEqual(resolved[0]["display_name"], UNKNOWN_EXERCISE)
        self.assertEqual(resolved[1]["display_name"], "")
        self.assertEqual(
            self.resolver.display_name({"custom_name": None, "library_exercise_id": 99}),
            UNKNOWN_EXERCISE,
        )

    def test_input_rows_untouched(self) -> None:
        row = {"id": 1, "custom_name": None, "library_exercise_id": 1}
        self.resolver.resolve([row])
        self.assertNotIn("display_name", row)

    def test_empty_input(self) -> None:
        self.assertEqual(self.resolver.resolve([]), [])
        self.assertEqual(self.library.calls, [])


if __name__ == "__main__":
    unittest.main()
