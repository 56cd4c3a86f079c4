"""
Shape validation for rosters, event results and point tables.

Everything here runs before persistence: a payload that fails never reaches
the database or the scoring engine.
"""

from lightsout.exceptions import ValidationError

ROSTER_LIST_SLOTS = {"a_teams": 2, "a_drivers": 3, "b_drivers": 2}
RESULT_SESSIONS = ("race", "sprint", "gp_qualifying", "sprint_qualifying")
POINT_TABLES = ("race", "sprint", "gp_qualifying", "sprint_qualifying")


def _is_id(value):
    return value is None or (isinstance(value, str) and value.strip() != "")


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_roster(data, require_complete=True, driver_classes=None, constructor_classes=None):
    """
    Validate a roster payload and return a normalized copy.

    Args:
        data: roster dict from the client
        require_complete: submission requires every slot filled
        driver_classes: optional {driver_id: "A"|"B"} reference data
        constructor_classes: optional {constructor_id: "A"|"B"} reference data

    Raises:
        ValidationError: on any malformed or incomplete slot
    """
    if not isinstance(data, dict):
        raise ValidationError("Roster must be an object")

    roster = {}
    for slot, size in ROSTER_LIST_SLOTS.items():
        values = data.get(slot)
        if values is None:
            values = [None] * size
        if not isinstance(values, list) or len(values) != size:
            raise ValidationError(f"'{slot}' must be a list of {size} ids")
        if not all(_is_id(v) for v in values):
            raise ValidationError(f"'{slot}' contains an invalid id")
        roster[slot] = list(values)

    for slot in ("b_team", "fastest_lap"):
        value = data.get(slot)
        if not _is_id(value):
            raise ValidationError(f"'{slot}' must be an id or null")
        roster[slot] = value

    _check_unique(roster["a_drivers"] + roster["b_drivers"], "driver")
    _check_unique(roster["a_teams"] + [roster["b_team"]], "constructor")

    if require_complete:
        missing = [slot for slot in ROSTER_LIST_SLOTS if not all(roster[slot])]
        missing += [slot for slot in ("b_team", "fastest_lap") if not roster[slot]]
        if missing:
            raise ValidationError(
                f"Please complete all selections before submitting ({', '.join(missing)})"
            )

    penalty = data.get("penalty", 0) or 0
    if not _is_number(penalty) or not 0 <= penalty <= 1:
        raise ValidationError("'penalty' must be a fraction between 0 and 1")
    roster["penalty"] = penalty
    roster["penalty_reason"] = data.get("penalty_reason") or ""

    if driver_classes is not None:
        _check_classes(roster, ("a_drivers",), "A", driver_classes, "driver")
        _check_classes(roster, ("b_drivers",), "B", driver_classes, "driver")
        if roster["fastest_lap"] and roster["fastest_lap"] not in driver_classes:
            raise ValidationError(f"Unknown driver '{roster['fastest_lap']}'")
    if constructor_classes is not None:
        _check_classes(roster, ("a_teams",), "A", constructor_classes, "constructor")
        _check_classes(roster, ("b_team",), "B", constructor_classes, "constructor")

    return roster


def _check_unique(values, kind):
    seen = set()
    for entity_id in values:
        if not entity_id:
            continue
        if entity_id in seen:
            raise ValidationError(f"'{entity_id}' is picked more than once ({kind})")
        seen.add(entity_id)


def _check_classes(roster, slots, expected, classes, kind):
    for slot in slots:
        values = roster[slot] if isinstance(roster[slot], list) else [roster[slot]]
        for entity_id in values:
            if not entity_id:
                continue
            if entity_id not in classes:
                raise ValidationError(f"Unknown {kind} '{entity_id}'")
            if classes[entity_id] != expected:
                raise ValidationError(
                    f"'{entity_id}' is not a class {expected} {kind} ({slot})"
                )


def validate_penalty(penalty, reason=""):
    if not _is_number(penalty) or not 0 <= penalty <= 1:
        raise ValidationError("'penalty' must be a fraction between 0 and 1")
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("'penalty_reason' must be a string")
    return penalty, reason or ""


def validate_result(data):
    """Validate an event result payload and return a normalized copy"""
    if not isinstance(data, dict):
        raise ValidationError("Result must be an object")

    result = {}
    for session in RESULT_SESSIONS:
        values = data.get(session) or []
        if not isinstance(values, list):
            raise ValidationError(f"'{session}' must be a list of driver ids")
        if not all(_is_id(v) for v in values):
            raise ValidationError(f"'{session}' contains an invalid driver id")
        present = [v for v in values if v]
        if len(present) != len(set(present)):
            raise ValidationError(f"'{session}' lists a driver more than once")
        result[session] = list(values)

    for field in ("fastest_lap", "last_place_driver"):
        value = data.get(field)
        if not _is_id(value):
            raise ValidationError(f"'{field}' must be a driver id or null")
        result[field] = value

    return result


def validate_point_table(data):
    """Validate a scoring profile's point table and return a normalized copy"""
    if not isinstance(data, dict):
        raise ValidationError("Point table must be an object")

    table = {}
    for session in POINT_TABLES:
        values = data.get(session)
        if not isinstance(values, list) or not all(
            _is_number(v) and v >= 0 for v in values
        ):
            raise ValidationError(f"'{session}' must be a list of non-negative points")
        table[session] = list(values)

    fastest_lap = data.get("fastest_lap")
    if not _is_number(fastest_lap) or fastest_lap < 0:
        raise ValidationError("'fastest_lap' must be a non-negative number")
    table["fastest_lap"] = fastest_lap
    return table


def validate_driver_teams(data):
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise ValidationError("'driver_teams' must map driver ids to constructor ids")
    return dict(data)
