import pytest

from config import DEFAULT_POINTS
from conftest import make_result, make_roster
from lightsout.exceptions import ValidationError
from lightsout.utils.validation import (
    validate_driver_teams,
    validate_penalty,
    validate_point_table,
    validate_result,
    validate_roster,
)

DRIVER_CLASSES = {
    "norris": "A",
    "leclerc": "A",
    "verstappen": "A",
    "albon": "B",
    "ocon": "B",
    "sainz": "B",
}
CONSTRUCTOR_CLASSES = {"mclaren": "A", "ferrari": "A", "williams": "B", "haas": "B"}


class TestRoster:
    def test_complete_roster_is_normalized(self):
        roster = validate_roster(make_roster())
        assert roster["a_teams"] == ["mclaren", "ferrari"]
        assert roster["penalty"] == 0
        assert roster["penalty_reason"] == ""

    def test_incomplete_roster_is_rejected(self):
        with pytest.raises(ValidationError, match="Please complete all selections"):
            validate_roster(make_roster(b_drivers=["albon", None]))

    def test_draft_roster_may_leave_slots_empty(self):
        roster = validate_roster({"a_teams": ["mclaren", None]}, require_complete=False)
        assert roster["a_drivers"] == [None, None, None]
        assert roster["b_team"] is None

    def test_wrong_slot_size_is_rejected(self):
        with pytest.raises(ValidationError, match="a_drivers"):
            validate_roster(make_roster(a_drivers=["norris", "leclerc"]))

    def test_penalty_outside_unit_interval_is_rejected(self):
        with pytest.raises(ValidationError, match="penalty"):
            validate_roster(make_roster(penalty=1.5))

    def test_class_b_driver_in_class_a_slot_is_rejected(self):
        with pytest.raises(ValidationError, match="not a class A driver"):
            validate_roster(
                make_roster(
                    a_drivers=["norris", "leclerc", "albon"], b_drivers=["sainz", "ocon"]
                ),
                driver_classes=DRIVER_CLASSES,
                constructor_classes=CONSTRUCTOR_CLASSES,
            )

    def test_unknown_constructor_is_rejected(self):
        with pytest.raises(ValidationError, match="Unknown constructor"):
            validate_roster(
                make_roster(b_team="brawn"), constructor_classes=CONSTRUCTOR_CLASSES
            )

    def test_repeated_driver_is_rejected(self):
        with pytest.raises(ValidationError, match="'norris' is picked more than once"):
            validate_roster(make_roster(a_drivers=["norris", "norris", "norris"]))

    def test_driver_repeated_across_classes_is_rejected(self):
        with pytest.raises(ValidationError, match="'albon' is picked more than once"):
            validate_roster(make_roster(a_drivers=["norris", "leclerc", "albon"]))

    def test_repeated_constructor_is_rejected(self):
        with pytest.raises(ValidationError, match="'mclaren' is picked more than once"):
            validate_roster(make_roster(a_teams=["mclaren", "mclaren"]))

        with pytest.raises(ValidationError, match="'williams' is picked more than once"):
            validate_roster(make_roster(a_teams=["mclaren", "williams"]))

    def test_fastest_lap_may_repeat_a_driver_pick(self):
        roster = validate_roster(make_roster(fastest_lap="norris"))
        assert roster["fastest_lap"] == "norris"

    def test_empty_draft_slots_are_not_duplicates(self):
        roster = validate_roster(
            {"a_drivers": ["norris", None, None]}, require_complete=False
        )
        assert roster["b_drivers"] == [None, None]

    def test_matching_classes_pass(self):
        roster = validate_roster(
            make_roster(),
            driver_classes=DRIVER_CLASSES,
            constructor_classes=CONSTRUCTOR_CLASSES,
        )
        assert roster["b_team"] == "williams"


class TestResult:
    def test_valid_result(self):
        result = validate_result(make_result())
        assert result["race"][0] == "norris"
        assert result["sprint"] == []

    def test_duplicate_driver_in_a_session_is_rejected(self):
        with pytest.raises(ValidationError, match="more than once"):
            validate_result(make_result(race=["norris", "leclerc", "norris"]))

    def test_null_slots_are_allowed(self):
        result = validate_result(make_result(race=["norris", None, None]))
        assert result["race"] == ["norris", None, None]

    def test_session_must_be_a_list(self):
        with pytest.raises(ValidationError):
            validate_result(make_result(sprint="norris"))


class TestPointTable:
    def test_default_table_is_valid(self):
        assert validate_point_table(DEFAULT_POINTS) == DEFAULT_POINTS

    def test_negative_points_are_rejected(self):
        table = dict(DEFAULT_POINTS, race=[25, -1])
        with pytest.raises(ValidationError, match="race"):
            validate_point_table(table)

    def test_fastest_lap_is_required(self):
        table = {k: v for k, v in DEFAULT_POINTS.items() if k != "fastest_lap"}
        with pytest.raises(ValidationError, match="fastest_lap"):
            validate_point_table(table)


def test_penalty_validation():
    assert validate_penalty(0.25, None) == (0.25, "")
    with pytest.raises(ValidationError):
        validate_penalty(True)


def test_driver_teams_must_map_strings():
    assert validate_driver_teams({"norris": "mclaren"}) == {"norris": "mclaren"}
    with pytest.raises(ValidationError):
        validate_driver_teams({"norris": None})
