"""
Reference data loading

Upserts constructors and drivers from a JSON document:

    {
      "constructors": [{"id": "mclaren", "name": "McLaren", "class": "A", "color": "#FF8000"}],
      "drivers": [{"id": "norris", "name": "Lando Norris", "constructor_id": "mclaren", "class": "A"}]
    }

Saved results keep their own driver -> constructor snapshot, so moving a
driver to another team here only affects results entered afterwards.
"""

import json
import logging

from sqlalchemy.exc import SQLAlchemyError

from lightsout import db
from lightsout.exceptions import ValidationError
from lightsout.models import Constructor, Driver
from lightsout.utils.performance import timer

logger = logging.getLogger(__name__)

ENTITY_CLASSES = ("A", "B")


def _entity_class(record, kind):
    entity_class = (record.get("class") or record.get("entity_class") or "").upper()
    if entity_class not in ENTITY_CLASSES:
        raise ValidationError(f"{kind} '{record.get('id')}' needs class A or B")
    return entity_class


@timer
def load_reference_data(data, deactivate_missing=False):
    """
    Insert or update constructors and drivers.

    Args:
        data: dict with "constructors" and "drivers" lists
        deactivate_missing: mark rows absent from ``data`` inactive

    Returns:
        (constructor count, driver count)
    """
    constructors = data.get("constructors") or []
    drivers = data.get("drivers") or []

    try:
        seen_constructors = set()
        for record in constructors:
            if not record.get("id") or not record.get("name"):
                raise ValidationError("Every constructor needs an id and a name")

            constructor = db.session.get(Constructor, record["id"])
            if constructor is None:
                constructor = Constructor(id=record["id"])
                db.session.add(constructor)

            constructor.name = record["name"]
            constructor.entity_class = _entity_class(record, "Constructor")
            constructor.color = record.get("color")
            constructor.is_active = True
            seen_constructors.add(constructor.id)

        known_constructors = seen_constructors | {
            c.id for c in Constructor.query.with_entities(Constructor.id)
        }

        seen_drivers = set()
        for record in drivers:
            if not record.get("id") or not record.get("name"):
                raise ValidationError("Every driver needs an id and a name")
            constructor_id = record.get("constructor_id")
            if constructor_id and constructor_id not in known_constructors:
                raise ValidationError(
                    f"Driver '{record['id']}' references unknown constructor '{constructor_id}'"
                )

            driver = db.session.get(Driver, record["id"])
            if driver is None:
                driver = Driver(id=record["id"])
                db.session.add(driver)
            elif driver.constructor_id != constructor_id:
                logger.info(
                    f"Driver {driver.id} moves {driver.constructor_id} -> {constructor_id}"
                )

            driver.name = record["name"]
            driver.constructor_id = constructor_id
            driver.entity_class = _entity_class(record, "Driver")
            driver.is_active = True
            seen_drivers.add(driver.id)

        if deactivate_missing:
            for constructor in Constructor.query.all():
                if constructor.id not in seen_constructors:
                    constructor.is_active = False
            for driver in Driver.query.all():
                if driver.id not in seen_drivers:
                    driver.is_active = False

        db.session.commit()

    except (ValidationError, SQLAlchemyError):
        db.session.rollback()
        raise

    logger.info(
        f"Reference data loaded: {len(seen_constructors)} constructors, "
        f"{len(seen_drivers)} drivers"
    )
    return len(seen_constructors), len(seen_drivers)


def load_reference_file(path, deactivate_missing=False):
    with open(path, encoding="utf-8") as fh:
        return load_reference_data(json.load(fh), deactivate_missing=deactivate_missing)
