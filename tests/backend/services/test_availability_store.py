from datetime import time

import pytest
from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.core.errors import ScheduleUpdateError, ScheduleValidationError, TeacherNotFoundError
from backend.services.availability_store import (
    FORMAT,
    ORDERING,
    RANGE,
    REQUIRED,
    SlotDefinition,
    get_schedule,
    parse_time,
    replace_schedule,
    validate_schedule,
    validate_slot,
)


def _slot(weekday=1, start_time='09:00', end_time='10:00', is_active=True) -> dict:
    return {'weekday': weekday, 'start_time': start_time, 'end_time': end_time, 'is_active': is_active}


def _triples(slots) -> list[tuple[int, time, time, bool]]:
    return [(slot.weekday, slot.start_time, slot.end_time, slot.is_active) for slot in slots]


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('09:00', time(9, 0)),
        ('9:00', time(9, 0)),
        (' 23:59 ', time(23, 59)),
        (time(8, 15, 30), time(8, 15)),
        ('24:00', None),
        ('9:5', None),
        ('09:60', None),
        ('0900', None),
        (900, None),
    ],
)
def test_parse_time_accepts_h_mm_and_hh_mm(value, expected) -> None:
    assert parse_time(value) == expected


def test_validate_slot_returns_definition_for_valid_slot() -> None:
    definition, errors = validate_slot(_slot(weekday=0, start_time='9:00', end_time='17:30', is_active=False))

    assert errors == []
    assert definition == SlotDefinition(0, time(9, 0), time(17, 30), False)


def test_validate_slot_defaults_is_active_to_true() -> None:
    definition, errors = validate_slot({'weekday': 3, 'start_time': '10:00', 'end_time': '11:00'})

    assert errors == []
    assert definition.is_active is True


def test_validate_slot_reports_every_missing_field() -> None:
    definition, errors = validate_slot({'start_time': ''}, index=2)

    assert definition is None
    assert {(error.field, error.code) for error in errors} == {
        ('weekday', REQUIRED),
        ('start_time', REQUIRED),
        ('end_time', REQUIRED),
    }
    assert {error.key for error in errors} == {
        'available_slots[2].weekday',
        'available_slots[2].start_time',
        'available_slots[2].end_time',
    }


@pytest.mark.parametrize(
    ('slot', 'field', 'code'),
    [
        (_slot(weekday=7), 'weekday', RANGE),
        (_slot(weekday=-1), 'weekday', RANGE),
        (_slot(weekday=True), 'weekday', FORMAT),
        (_slot(weekday='1'), 'weekday', FORMAT),
        (_slot(start_time='25:00'), 'start_time', FORMAT),
        (_slot(end_time='ten'), 'end_time', FORMAT),
        (_slot(start_time='10:00', end_time='09:00'), 'end_time', ORDERING),
        (_slot(start_time='10:00', end_time='10:00'), 'end_time', ORDERING),
        (_slot(start_time='23:00', end_time='00:00'), 'end_time', ORDERING),
        (_slot(is_active='yes'), 'is_active', FORMAT),
    ],
)
def test_validate_slot_rejects_invalid_values(slot: dict, field: str, code: str) -> None:
    definition, errors = validate_slot(slot)

    assert definition is None
    assert [(error.field, error.code) for error in errors] == [(field, code)]


def test_validate_schedule_rejects_overlapping_active_slots() -> None:
    with pytest.raises(ScheduleValidationError) as exception_info:
        validate_schedule([
            _slot(start_time='09:00', end_time='11:00'),
            _slot(start_time='10:30', end_time='12:00'),
        ])

    assert list(exception_info.value.errors) == ['available_slots[1].start_time']
    assert 'Overlaps available_slots[0]' in exception_info.value.errors['available_slots[1].start_time'][0]


def test_validate_schedule_allows_touching_and_cross_day_slots() -> None:
    definitions = validate_schedule([
        _slot(weekday=1, start_time='09:00', end_time='10:00'),
        _slot(weekday=1, start_time='10:00', end_time='11:00'),
        _slot(weekday=2, start_time='09:30', end_time='10:30'),
    ])

    assert len(definitions) == 3


def test_validate_schedule_ignores_overlaps_with_inactive_slots() -> None:
    definitions = validate_schedule([
        _slot(start_time='09:00', end_time='11:00'),
        _slot(start_time='10:00', end_time='12:00', is_active=False),
    ])

    assert len(definitions) == 2


def test_validate_schedule_allows_overlaps_when_policy_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SCHEDULE_REJECT_OVERLAPS', False)

    definitions = validate_schedule([
        _slot(start_time='09:00', end_time='11:00'),
        _slot(start_time='10:00', end_time='12:00'),
    ])

    assert len(definitions) == 2


def test_validate_schedule_always_rejects_duplicates() -> None:
    with pytest.raises(ScheduleValidationError) as exception_info:
        validate_schedule(
            [_slot(), _slot(start_time='9:00')],
            reject_overlaps=False,
        )

    assert 'Duplicate of available_slots[0]' in exception_info.value.errors['available_slots[1].start_time'][0]


def test_validate_schedule_limits_slot_count(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'MAX_SLOTS_PER_TEACHER', 2)

    with pytest.raises(ScheduleValidationError) as exception_info:
        validate_schedule([_slot(weekday=day) for day in range(3)])

    assert list(exception_info.value.errors) == ['available_slots']


def test_get_schedule_returns_empty_list_for_new_teacher(schedule_db, make_teacher) -> None:
    teacher = make_teacher()

    assert get_schedule(schedule_db, teacher.id) == []


def test_get_schedule_rejects_unknown_teacher(schedule_db) -> None:
    with pytest.raises(TeacherNotFoundError):
        get_schedule(schedule_db, 999)


def test_get_schedule_orders_by_weekday_then_start_time(schedule_db, make_teacher) -> None:
    teacher = make_teacher()
    replace_schedule(schedule_db, teacher.id, [
        _slot(weekday=2, start_time='14:00', end_time='15:00'),
        _slot(weekday=1, start_time='10:00', end_time='11:00'),
        _slot(weekday=2, start_time='09:00', end_time='10:00'),
        _slot(weekday=0, start_time='20:00', end_time='21:00'),
        _slot(weekday=1, start_time='08:00', end_time='09:00'),
    ])

    slots = get_schedule(schedule_db, teacher.id)

    assert [(slot.weekday, slot.start_time) for slot in slots] == [
        (0, time(20, 0)),
        (1, time(8, 0)),
        (1, time(10, 0)),
        (2, time(9, 0)),
        (2, time(14, 0)),
    ]


def test_replace_schedule_reports_counts(schedule_db, make_teacher) -> None:
    teacher = make_teacher()
    first = replace_schedule(schedule_db, teacher.id, [_slot(weekday=1), _slot(weekday=3)])

    assert (first.created_count, first.updated_count, first.deleted_count) == (2, 0, 0)

    second = replace_schedule(schedule_db, teacher.id, [_slot(weekday=5)])

    assert (second.created_count, second.updated_count, second.deleted_count) == (1, 0, 2)
    assert _triples(get_schedule(schedule_db, teacher.id)) == [(5, time(9, 0), time(10, 0), True)]


def test_replace_schedule_is_idempotent_but_issues_fresh_ids(schedule_db, make_teacher) -> None:
    teacher = make_teacher()
    new_slots = [_slot(weekday=1), _slot(weekday=4, start_time='13:00', end_time='15:30', is_active=False)]

    first = replace_schedule(schedule_db, teacher.id, new_slots)
    first_ids = {slot.id for slot in first.slots}
    first_triples = _triples(first.slots)
    second = replace_schedule(schedule_db, teacher.id, new_slots)

    assert _triples(second.slots) == first_triples
    assert _triples(get_schedule(schedule_db, teacher.id)) == first_triples
    assert first_ids.isdisjoint({slot.id for slot in second.slots})
    assert second.updated_count == 0


def test_replace_schedule_with_empty_list_clears_schedule(schedule_db, make_teacher) -> None:
    teacher = make_teacher()
    replace_schedule(schedule_db, teacher.id, [_slot(), _slot(weekday=2)])

    result = replace_schedule(schedule_db, teacher.id, [])

    assert result.slots == []
    assert result.deleted_count == 2
    assert get_schedule(schedule_db, teacher.id) == []


def test_replace_schedule_rejects_inverted_range_without_touching_stored_slots(
    schedule_db,
    make_teacher,
) -> None:
    teacher = make_teacher()
    replace_schedule(schedule_db, teacher.id, [_slot(weekday=1)])

    with pytest.raises(ScheduleValidationError) as exception_info:
        replace_schedule(schedule_db, teacher.id, [
            _slot(weekday=2),
            _slot(weekday=3, start_time='10:00', end_time='09:00'),
        ])

    assert exception_info.value.errors == {
        'available_slots[1].end_time': ['End time must be later than start time.'],
    }
    assert _triples(get_schedule(schedule_db, teacher.id)) == [(1, time(9, 0), time(10, 0), True)]


def test_replace_schedule_rejects_unknown_teacher(schedule_db) -> None:
    with pytest.raises(TeacherNotFoundError):
        replace_schedule(schedule_db, 999, [_slot()])


def test_replace_schedule_keeps_teachers_isolated(schedule_db, make_teacher) -> None:
    teacher_a = make_teacher()
    teacher_b = make_teacher()
    replace_schedule(schedule_db, teacher_a.id, [_slot(weekday=1)])
    replace_schedule(schedule_db, teacher_b.id, [_slot(weekday=6, start_time='18:00', end_time='19:00')])

    replace_schedule(schedule_db, teacher_a.id, [])

    assert get_schedule(schedule_db, teacher_a.id) == []
    assert _triples(get_schedule(schedule_db, teacher_b.id)) == [(6, time(18, 0), time(19, 0), True)]


def test_replace_schedule_rolls_back_when_commit_fails(
    schedule_db,
    make_teacher,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    teacher = make_teacher()
    replace_schedule(schedule_db, teacher.id, [_slot(weekday=1)])

    def failing_commit() -> None:
        raise SQLAlchemyError('disk full')

    monkeypatch.setattr(schedule_db, 'commit', failing_commit)

    with pytest.raises(ScheduleUpdateError):
        replace_schedule(schedule_db, teacher.id, [_slot(weekday=2), _slot(weekday=3)])

    monkeypatch.undo()
    assert _triples(get_schedule(schedule_db, teacher.id)) == [(1, time(9, 0), time(10, 0), True)]
