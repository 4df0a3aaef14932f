import pytest
from sqlalchemy.exc import IntegrityError

from fixture_models import Parts, Personnes, Robots, RobotsParts
from recordkit.config import Settings
from recordkit.models import Message, MessageType
from recordkit.services import ConditionError, RecordManager


def test_save_inserts_and_updates(manager, db_session):
    part = Parts(name="Antenna")
    assert manager.save(part) is True
    assert part.id is not None

    part.name = "Long antenna"
    assert manager.save(part) is True

    db_session.expire_all()
    stored = manager.find_first(Parts, {"id": part.id})
    assert stored.name == "Long antenna"


def test_create_rejects_existing_record(manager):
    robot = manager.find_first(Robots)

    assert manager.create(robot) is False
    assert robot.get_messages() == [
        Message(
            type=MessageType.INVALID_CREATE_ATTEMPT,
            text="Record cannot be created because it already exists",
        )
    ]


def test_update_rejects_new_record(manager):
    robot = Robots(name="Bender")

    assert manager.update(robot) is False
    assert robot.get_messages()[0].type == MessageType.INVALID_UPDATE_ATTEMPT
    assert manager.count(Robots) == 3


def test_create_and_update_succeed_in_the_right_state(manager):
    robot = Robots(name="Bender", type="industrial", year=2996)
    assert manager.create(robot) is True

    robot.year = 3000
    assert manager.update(robot) is True
    assert manager.maximum(Robots, column="year") == 3000


def test_missing_required_values_produce_presence_messages(manager):
    person = Personnes(id=5000, ciudad_id=1)

    assert manager.save(person) is False
    assert [message.field for message in person.get_messages()] == ["nombres", "estado"]
    assert all(message.type == MessageType.PRESENCE_OF for message in person.get_messages())
    assert person.get_messages().filter("estado")[0].text == "estado is required"
    assert manager.count(Personnes) == 2180


def test_columns_with_defaults_are_not_required(manager):
    robot = Robots(name="Marvin")

    assert manager.save(robot) is True
    assert robot.type == "mechanical"


def test_presence_validation_can_be_disabled(db_session):
    manager = RecordManager(db_session, settings=Settings(not_null_validations=False))
    person = Personnes(id=5000, ciudad_id=1)

    with pytest.raises(IntegrityError):
        manager.save(person)
    assert manager.count(Personnes) == 2180


def test_storage_errors_propagate_after_rollback(manager):
    duplicate = Parts(id=1, name="Duplicate head")

    with pytest.raises(IntegrityError):
        manager.save(duplicate)

    assert manager.find_first(Parts, {"id": 1}).name == "Head"


def test_find_with_conditions_order_and_limit(manager):
    robots = manager.find(Robots, "type = :type", bind={"type": "mechanical"}, order="year DESC")

    assert [robot.name for robot in robots] == ["Robotina", "Astro Boy"]
    assert len(manager.find(Personnes, {"estado": "A"}, limit=5)) == 5
    assert manager.find_first(Personnes, {"estado": "X"}) is None


def test_find_rejects_unknown_order_column(manager):
    with pytest.raises(ConditionError):
        manager.find(Robots, order="serial")


def test_before_save_listener_cancels_save(manager, events):
    events.attach("model:beforeSave", lambda event, source, data: False)
    part = Parts(name="Wheel")

    assert manager.save(part) is False
    assert part.get_messages() == [
        Message(type=MessageType.CANCELLED, text="Operation cancelled by beforeSave listener")
    ]
    assert manager.count(Parts, conditions={"name": "Wheel"}) == 0


def test_lifecycle_events_are_fired_in_order(manager, events):
    trace = []
    events.attach("model", lambda event, source, data: trace.append(event.name))

    assert manager.save(Parts(name="Wheel")) is True
    part = manager.find_first(Parts, {"name": "Wheel"})
    assert manager.delete(part) is True

    assert trace == [
        "beforeValidation",
        "beforeSave",
        "beforeCreate",
        "afterCreate",
        "afterSave",
        "beforeDelete",
        "afterDelete",
    ]


def test_failed_save_fires_validation_failure_events(manager, events):
    trace = []

    class Listener:
        def onValidationFails(self, event, source, data):
            trace.append(("onValidationFails", source.get_messages()[0].field))

        def notSaved(self, event, source, data):
            trace.append(("notSaved", None))

    events.attach("model", Listener())

    assert manager.save(RobotsParts(robots_id=1, parts_id=100)) is False
    assert trace == [("onValidationFails", "parts_id"), ("notSaved", None)]


def test_update_missing_required_value_is_not_written_later(manager, db_session):
    robot = manager.find_first(Robots, {"id": 2})
    robot.name = None

    assert manager.save(robot) is False
    assert [message.field for message in robot.get_messages()] == ["name"]

    assert manager.save(Parts(name="Wheel")) is True
    db_session.commit()

    assert manager.count(Robots, conditions={"name": "Astro Boy"}) == 1
    assert manager.count(Robots, conditions={"name": None}) == 0


def test_cancelled_update_is_not_written_later(manager, events, db_session):
    events.attach("model:beforeUpdate", lambda event, source, data: False)
    robot = manager.find_first(Robots, {"id": 1})
    robot.year = 1999

    assert manager.save(robot) is False
    assert robot.get_messages()[0].type == MessageType.CANCELLED
    assert robot.year == 1999

    assert manager.save(Parts(name="Wheel")) is True
    db_session.commit()

    assert manager.count(Robots, conditions={"year": 1999}) == 0
    assert manager.find_first(Robots, {"id": 1}).year == 1972
