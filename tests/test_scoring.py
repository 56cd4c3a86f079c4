import pytest

from config import DEFAULT_POINTS
from lightsout.utils.scoring import (
    ScoringRuleSet,
    add_breakdowns,
    calculate_event_score,
    empty_breakdown,
    penalty_deduction,
    resolve_constructor,
)

TEAMS = {
    "norris": "mclaren",
    "piastri": "mclaren",
    "leclerc": "ferrari",
    "hamilton": "ferrari",
    "verstappen": "redbull",
    "albon": "williams",
    "sainz": "williams",
    "ocon": "haas",
    "bearman": "haas",
}


@pytest.fixture()
def rules():
    return ScoringRuleSet.from_dict(DEFAULT_POINTS)


def _result(**fields):
    result = {
        "race": [],
        "sprint": [],
        "gp_qualifying": [],
        "sprint_qualifying": [],
        "fastest_lap": None,
        "last_place_driver": None,
        "driver_teams": dict(TEAMS),
    }
    result.update(fields)
    return result


class TestTeamAndDriverCredit:
    def test_driver_and_team_both_score_the_same_finish(self, rules):
        roster = {"a_teams": ["mclaren"], "a_drivers": ["norris"]}
        score = calculate_event_score(roster, _result(race=["norris"]), rules)
        assert score["race"] == 50
        assert score["total"] == 50

    def test_team_scores_every_finisher_it_fields(self, rules):
        roster = {"a_teams": ["mclaren"]}
        score = calculate_event_score(
            roster, _result(race=["norris", "verstappen", "piastri"]), rules
        )
        assert score["race"] == 25 + 15

    def test_b_team_counts_like_an_a_team(self, rules):
        roster = {"b_team": "williams"}
        score = calculate_event_score(roster, _result(race=["albon", "sainz"]), rules)
        assert score["race"] == 25 + 18

    def test_sprint_and_qualifying_sessions(self, rules):
        roster = {"a_drivers": ["norris"]}
        score = calculate_event_score(
            roster,
            _result(
                sprint=["piastri", "norris"],
                gp_qualifying=["norris"],
                sprint_qualifying=["verstappen", "leclerc", "norris"],
            ),
            rules,
        )
        assert score["sprint"] == 7
        assert score["qualifying"] == 3 + 1
        assert score["total"] == 11

    def test_team_credit_applies_to_qualifying(self, rules):
        roster = {"a_teams": ["ferrari"]}
        score = calculate_event_score(
            roster, _result(gp_qualifying=["leclerc", "hamilton"]), rules
        )
        assert score["qualifying"] == 3 + 2

    def test_positions_beyond_the_table_score_nothing(self, rules):
        race = [f"d{i}" for i in range(10)] + ["ocon"]
        score = calculate_event_score({"b_drivers": ["ocon"]}, _result(race=race), rules)
        assert score["race"] == 0

    def test_unpicked_finishers_score_nothing(self, rules):
        score = calculate_event_score(
            {"a_drivers": ["hamilton"]}, _result(race=["norris", "piastri"]), rules
        )
        assert score == empty_breakdown()


class TestConstructorResolution:
    def test_snapshot_wins_over_reference_data(self):
        result = _result(driver_teams={"sainz": "williams"})
        assert resolve_constructor("sainz", result, {"sainz": "ferrari"}) == "williams"

    def test_reference_data_used_when_snapshot_lacks_driver(self):
        result = _result(driver_teams={})
        assert resolve_constructor("sainz", result, {"sainz": "williams"}) == "williams"

    def test_unknown_driver_has_no_constructor(self):
        assert resolve_constructor("ghost", _result(driver_teams=None), {}) is None

    def test_constructor_less_driver_still_scores_as_driver_pick(self, rules):
        roster = {"a_teams": ["mclaren"], "a_drivers": ["ghost"]}
        score = calculate_event_score(roster, _result(race=["ghost"]), rules)
        assert score["race"] == 25


class TestFastestLap:
    def test_correct_guess_earns_the_bonus(self, rules):
        score = calculate_event_score(
            {"fastest_lap": "norris"}, _result(fastest_lap="norris"), rules
        )
        assert score["fastest_lap"] == 3
        assert score["total"] == 3

    def test_wrong_guess_earns_nothing(self, rules):
        score = calculate_event_score(
            {"fastest_lap": "norris"}, _result(fastest_lap="leclerc"), rules
        )
        assert score["fastest_lap"] == 0

    def test_no_guess_against_no_fastest_lap_earns_nothing(self, rules):
        score = calculate_event_score({"fastest_lap": None}, _result(), rules)
        assert score["fastest_lap"] == 0


class TestLastPlace:
    def test_counted_for_individually_picked_driver(self, rules):
        score = calculate_event_score(
            {"b_drivers": ["bearman"]}, _result(last_place_driver="bearman"), rules
        )
        assert score["last_place_count"] == 1
        assert score["total"] == 0

    def test_not_counted_through_a_team_pick(self, rules):
        score = calculate_event_score(
            {"b_team": "haas"}, _result(last_place_driver="bearman"), rules
        )
        assert score["last_place_count"] == 0


class TestPenalty:
    def test_no_penalty(self, rules):
        roster = {"a_teams": ["mclaren"], "penalty": 0}
        score = calculate_event_score(roster, _result(race=["norris"]), rules)
        assert score["penalty"] == 0
        assert score["total"] == 25

    def test_fractional_penalty_rounds_up(self, rules):
        roster = {"a_teams": ["mclaren"], "penalty": 0.1}
        score = calculate_event_score(
            roster, _result(race=["norris", "verstappen", "piastri"]), rules
        )
        # 40 * 0.1 = 4
        assert score["penalty"] == 4
        assert score["total"] == 36

    def test_full_penalty_zeroes_the_event(self, rules):
        roster = {"a_teams": ["mclaren"], "penalty": 1}
        score = calculate_event_score(roster, _result(race=["norris"]), rules)
        assert score["penalty"] == 25
        assert score["total"] == 0

    @pytest.mark.parametrize(
        "pre_total, penalty, expected",
        [(43, 0.1, 5), (100, 0.07, 7), (25, 0.5, 13), (0, 0.5, 0), (10, 0, 0)],
    )
    def test_penalty_deduction(self, pre_total, penalty, expected):
        assert penalty_deduction(pre_total, penalty) == expected


class TestDegenerateInputs:
    def test_missing_roster_scores_zero(self, rules):
        assert calculate_event_score(None, _result(race=["norris"]), rules) == empty_breakdown()

    def test_missing_result_scores_zero(self, rules):
        assert calculate_event_score({"a_drivers": ["norris"]}, None, rules) == empty_breakdown()

    def test_null_slots_are_ignored(self, rules):
        roster = {"a_teams": [None, "mclaren"], "a_drivers": [None, None, "norris"]}
        score = calculate_event_score(
            roster, _result(race=[None, "norris"], sprint=None), rules
        )
        assert score["race"] == 36


class TestScoringRuleSet:
    def test_is_immutable(self, rules):
        with pytest.raises(AttributeError):
            rules.fastest_lap = 10

    def test_round_trips_through_dict(self, rules):
        assert ScoringRuleSet.from_dict(rules.to_dict()) == rules

    def test_points_for(self, rules):
        assert rules.points_for("race", 0) == 25
        assert rules.points_for("sprint", 7) == 1
        assert rules.points_for("gp_qualifying", 3) == 0


def test_add_breakdowns_accumulates_every_key():
    totals = empty_breakdown()
    add_breakdowns(totals, {"race": 25, "fastest_lap": 3, "total": 28, "last_place_count": 1})
    add_breakdowns(totals, {"race": 18, "penalty": 2, "total": 16})
    assert totals["race"] == 43
    assert totals["total"] == 44
    assert totals["penalty"] == 2
    assert totals["last_place_count"] == 1
