# tests/test_sync.py
import pytest

from factories import SFEX_ID, make_entity, make_event

from domains.tracking import repository
from domains.tracking.models import TrackedEvent
from domains.tracking.sync import apply_plan, merge, plan_sync, sync_entity

T1 = "2024-10-20T10:00:00+08:00"
T2 = "2024-10-21T10:00:00+08:00"
T3 = "2024-10-22T10:00:00+08:00"


def _events():
    return [make_event(SFEX_ID, T1, 3100), make_event(SFEX_ID, T2, 3002), make_event(SFEX_ID, T3, 3500)]


def test_merge_same_events_is_noop():
    a, b, _ = _events()
    new, should_write = merge({a.event_id, b.event_id}, make_entity(SFEX_ID, [a, b]))
    assert new == []
    assert should_write is False


def test_merge_returns_new_events_in_source_order():
    a, b, c = _events()
    new, should_write = merge({a.event_id}, make_entity(SFEX_ID, [a, b, c]))
    assert [e.event_id for e in new] == [b.event_id, c.event_id]
    assert should_write is True


def test_merge_requires_strictly_more_events_than_stored():
    a, b, c = _events()
    # 새 id 가 섞여 있어도 개수가 늘지 않으면 쓰지 않는다
    new, should_write = merge({a.event_id, b.event_id}, make_entity(SFEX_ID, [a, c]))
    assert [e.event_id for e in new] == [c.event_id]
    assert should_write is False


def test_merge_against_empty_store():
    a, _, _ = _events()
    new, should_write = merge(set(), make_entity(SFEX_ID, [a]))
    assert new == [a]
    assert should_write is True


@pytest.mark.django_db
def test_plan_and_apply_insert_then_append():
    a, b, c = _events()
    first = make_entity(SFEX_ID, [a], params={"phonenum": "1234"})
    plan = plan_sync(first)
    assert plan.is_new
    assert apply_plan(plan, "manual-pull") == 1

    fresh = make_entity(SFEX_ID, [a, b, c])
    plan = plan_sync(fresh)
    assert not plan.is_new
    assert [e.event_id for e in plan.new_events] == [b.event_id, c.event_id]
    assert apply_plan(plan, "auto-pull") == 2

    assert repository.query_event_ids(SFEX_ID) == {a.event_id, b.event_id, c.event_id}
    assert plan_sync(fresh) is None


@pytest.mark.django_db
def test_sync_entity_is_idempotent():
    entity = make_entity(SFEX_ID, _events())
    assert sync_entity(entity, "manual-pull") == 3
    assert sync_entity(entity, "manual-pull") == 0
    assert TrackedEvent.objects.count() == 3
