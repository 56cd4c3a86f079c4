"""
Scoring Engine for the Lights Out League

This module handles scoring of a single roster against a single event result.
It never touches the database: the rule set is always passed in explicitly.
For the league-wide rebuild and ranking, see
lightsout/services/league_service.py
"""

import math
from decimal import Decimal

# Session key -> breakdown category
SESSIONS = (
    ("race", "race"),
    ("sprint", "sprint"),
    ("gp_qualifying", "qualifying"),
    ("sprint_qualifying", "qualifying"),
)

BREAKDOWN_KEYS = (
    "race",
    "sprint",
    "qualifying",
    "fastest_lap",
    "last_place_count",
    "penalty",
    "total",
)


class ScoringRuleSet:
    """Immutable point table for one scoring profile"""

    __slots__ = ("race", "sprint", "gp_qualifying", "sprint_qualifying", "fastest_lap")

    def __init__(
        self, race=(), sprint=(), gp_qualifying=(), sprint_qualifying=(), fastest_lap=0
    ):
        object.__setattr__(self, "race", tuple(race))
        object.__setattr__(self, "sprint", tuple(sprint))
        object.__setattr__(self, "gp_qualifying", tuple(gp_qualifying))
        object.__setattr__(self, "sprint_qualifying", tuple(sprint_qualifying))
        object.__setattr__(self, "fastest_lap", fastest_lap)

    def __setattr__(self, name, value):
        raise AttributeError("ScoringRuleSet is immutable")

    def __eq__(self, other):
        if not isinstance(other, ScoringRuleSet):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(
            (
                self.race,
                self.sprint,
                self.gp_qualifying,
                self.sprint_qualifying,
                self.fastest_lap,
            )
        )

    def __repr__(self):
        return f"<ScoringRuleSet race={list(self.race)} fastest_lap={self.fastest_lap}>"

    def points_for(self, session, index):
        """Points for finishing at ``index`` (0-based); 0 beyond the table"""
        table = getattr(self, session)
        if 0 <= index < len(table):
            return table[index] or 0
        return 0

    @classmethod
    def from_dict(cls, data):
        return cls(
            race=data.get("race") or (),
            sprint=data.get("sprint") or (),
            gp_qualifying=data.get("gp_qualifying") or (),
            sprint_qualifying=data.get("sprint_qualifying") or (),
            fastest_lap=data.get("fastest_lap") or 0,
        )

    def to_dict(self):
        return {
            "race": list(self.race),
            "sprint": list(self.sprint),
            "gp_qualifying": list(self.gp_qualifying),
            "sprint_qualifying": list(self.sprint_qualifying),
            "fastest_lap": self.fastest_lap,
        }


def empty_breakdown():
    return {key: 0 for key in BREAKDOWN_KEYS}


def penalty_deduction(pre_total, penalty):
    """
    Points removed by a penalty fraction, always rounded up.

    Decimal keeps e.g. 100 * 0.07 at exactly 7 instead of 7.000000000000001.
    """
    if not penalty or penalty <= 0 or pre_total <= 0:
        return 0
    return math.ceil(Decimal(str(pre_total)) * Decimal(str(penalty)))


def picked_constructors(roster):
    teams = list(roster.get("a_teams") or []) + [roster.get("b_team")]
    return {team_id for team_id in teams if team_id}


def picked_drivers(roster):
    drivers = list(roster.get("a_drivers") or []) + list(roster.get("b_drivers") or [])
    return [driver_id for driver_id in drivers if driver_id]


def resolve_constructor(driver_id, result, fallback_teams=None):
    """Constructor for a driver: result snapshot first, then reference data"""
    snapshot = result.get("driver_teams") or {}
    if snapshot.get(driver_id):
        return snapshot[driver_id]
    if fallback_teams:
        return fallback_teams.get(driver_id)
    return None


def calculate_event_score(roster, result, rule_set, fallback_teams=None):
    """
    Score one roster against one event result.

    Args:
        roster: dict with a_teams, b_team, a_drivers, b_drivers, fastest_lap
            and an optional penalty fraction
        result: dict with race, sprint, gp_qualifying, sprint_qualifying,
            fastest_lap, last_place_driver and an optional driver_teams map
        rule_set: ScoringRuleSet to score with
        fallback_teams: driver id -> constructor id for drivers the result's
            snapshot does not cover

    Returns:
        dict with race, sprint, qualifying, fastest_lap, last_place_count,
        penalty and total. Missing roster or result scores all zeros.
    """
    breakdown = empty_breakdown()
    if not roster or not result or rule_set is None:
        return breakdown

    team_ids = picked_constructors(roster)
    driver_ids = picked_drivers(roster)

    # Team picks: every finishing position of a picked constructor counts
    if team_ids:
        for session, category in SESSIONS:
            for index, driver_id in enumerate(result.get(session) or []):
                if not driver_id:
                    continue
                if resolve_constructor(driver_id, result, fallback_teams) in team_ids:
                    breakdown[category] += rule_set.points_for(session, index)

    # Driver picks are scored independently of team picks
    for driver_id in driver_ids:
        for session, category in SESSIONS:
            finishers = result.get(session) or []
            if driver_id in finishers:
                breakdown[category] += rule_set.points_for(
                    session, finishers.index(driver_id)
                )

    guess = roster.get("fastest_lap")
    if guess and guess == result.get("fastest_lap"):
        breakdown["fastest_lap"] += rule_set.fastest_lap or 0

    last_place = result.get("last_place_driver")
    if last_place and last_place in driver_ids:
        breakdown["last_place_count"] = 1

    pre_total = (
        breakdown["race"]
        + breakdown["sprint"]
        + breakdown["qualifying"]
        + breakdown["fastest_lap"]
    )
    breakdown["penalty"] = penalty_deduction(pre_total, roster.get("penalty"))
    breakdown["total"] = pre_total - breakdown["penalty"]
    return breakdown


def add_breakdowns(totals, score):
    """Accumulate an event breakdown into running totals (in place)"""
    for key in BREAKDOWN_KEYS:
        totals[key] += score.get(key, 0)
    return totals
