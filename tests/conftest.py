from types import SimpleNamespace

import pytest

from lightsout import create_app, db
from lightsout.models import Constructor, Driver, User

CONSTRUCTORS = [
    ("mclaren", "McLaren", "A"),
    ("ferrari", "Ferrari", "A"),
    ("redbull", "Red Bull Racing", "A"),
    ("williams", "Williams", "B"),
    ("haas", "Haas", "B"),
]

DRIVERS = [
    ("norris", "Lando Norris", "mclaren", "A"),
    ("piastri", "Oscar Piastri", "mclaren", "A"),
    ("leclerc", "Charles Leclerc", "ferrari", "A"),
    ("hamilton", "Lewis Hamilton", "ferrari", "A"),
    ("verstappen", "Max Verstappen", "redbull", "A"),
    ("albon", "Alex Albon", "williams", "B"),
    ("sainz", "Carlos Sainz", "williams", "B"),
    ("ocon", "Esteban Ocon", "haas", "B"),
    ("bearman", "Oliver Bearman", "haas", "B"),
]


def make_roster(**overrides):
    roster = {
        "a_teams": ["mclaren", "ferrari"],
        "b_team": "williams",
        "a_drivers": ["norris", "leclerc", "verstappen"],
        "b_drivers": ["albon", "ocon"],
        "fastest_lap": "norris",
    }
    roster.update(overrides)
    return roster


def make_result(**overrides):
    result = {
        "race": ["norris", "verstappen", "leclerc", "piastri", "hamilton"],
        "sprint": [],
        "gp_qualifying": ["verstappen", "norris", "leclerc"],
        "sprint_qualifying": [],
        "fastest_lap": "norris",
        "last_place_driver": "bearman",
    }
    result.update(overrides)
    return result


def seed_reference_data():
    for constructor_id, name, entity_class in CONSTRUCTORS:
        db.session.add(Constructor(id=constructor_id, name=name, entity_class=entity_class))
    for driver_id, name, constructor_id, entity_class in DRIVERS:
        db.session.add(
            Driver(
                id=driver_id,
                name=name,
                constructor_id=constructor_id,
                entity_class=entity_class,
            )
        )


@pytest.fixture()
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def league(ctx):
    """Reference data plus an admin and three players (carol has no picks)"""
    seed_reference_data()
    admin = User.create_user("admin", "admin@example.com", password="admin-pass-1", is_admin=True)
    alice = User.create_user("alice", "alice@example.com", password="alice-pass-1")
    bob = User.create_user("bob", "bob@example.com", password="bob-pass-12")
    carol = User.create_user("carol", "carol@example.com", password="carol-pass-1")
    db.session.commit()
    return SimpleNamespace(admin=admin, alice=alice, bob=bob, carol=carol)


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, user_id):
    with client.session_transaction() as sess:
        sess["_user_id"] = str(user_id)
        sess["_fresh"] = True
