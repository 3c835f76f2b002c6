# tests/test_repository.py
import pytest
from django.db.models.query import QuerySet

from factories import FDX_ID, SFEX_ID, make_entity, make_event

from domains.tracking import repository
from domains.tracking.models import IngestionMode, TrackedEntity, TrackedEvent

T1 = "2024-10-20T10:00:00+08:00"
T2 = "2024-10-21T10:00:00+08:00"
T3 = "2024-10-22T10:00:00+08:00"


@pytest.mark.django_db
def test_insert_and_query_entity_round_trip():
    entity = make_entity(
        SFEX_ID,
        [make_event(SFEX_ID, T2, 3002, notes="arrived"), make_event(SFEX_ID, T1, 3100)],
        params={"phonenum": "1234"},
    )
    assert repository.insert_entity(entity) == 2
    # 같은 tracking_id 는 다시 넣지 않는다
    assert repository.insert_entity(entity) == 0

    row = TrackedEntity.objects.get(tracking_id=SFEX_ID)
    assert row.carrier == "sfex"
    assert row.tracking_num == "SF1234567890123"
    assert row.creation_time == T1
    assert row.completed is False

    stored = repository.query_entity(SFEX_ID)
    assert stored.uuid == entity.uuid
    assert stored.params == {"phonenum": "1234"}
    assert [e.status for e in stored.events] == [3100, 3002]
    assert stored.events[1].notes == "arrived"
    assert stored.to_json() == entity.to_json()


@pytest.mark.django_db
def test_query_missing_entity_and_status():
    assert repository.query_entity(SFEX_ID) is None
    assert repository.query_status(SFEX_ID) is None
    assert repository.query_event_ids(SFEX_ID) == set()


@pytest.mark.django_db
def test_entity_without_events_is_not_stored():
    assert repository.insert_entity(make_entity(SFEX_ID, [])) == 0
    assert not TrackedEntity.objects.exists()


@pytest.mark.django_db
def test_update_entity_appends_and_marks_completed():
    a = make_event(FDX_ID, T1, 3100)
    repository.insert_entity(make_entity(FDX_ID, [a]))

    b = make_event(FDX_ID, T2, 3450)
    c = make_event(FDX_ID, T3, 3500)
    fresh = make_entity(FDX_ID, [a, b, c])
    assert repository.update_entity(fresh, {a.event_id}, "auto-pull") == 2

    assert TrackedEvent.objects.filter(entity__tracking_id=FDX_ID).count() == 3
    assert TrackedEntity.objects.get(tracking_id=FDX_ID).completed is True

    status = repository.query_status(FDX_ID)
    assert status["status"] == 3500
    assert status["when"] == T3


@pytest.mark.django_db
def test_in_processing_excludes_completed_and_push():
    repository.insert_entity(make_entity(SFEX_ID, [make_event(SFEX_ID, T1, 3100)], params={"phonenum": "1234"}))
    repository.insert_entity(make_entity(FDX_ID, [make_event(FDX_ID, T1, 3500)]))

    other = make_entity("fdx-999999999999", [make_event("fdx-999999999999", T1, 3100)])
    other.ingestion_mode = IngestionMode.PUSH
    repository.insert_entity(other)

    assert repository.get_in_processing_tracking_nums() == {SFEX_ID: {"phonenum": "1234"}}


@pytest.mark.django_db
def test_insert_losing_concurrent_create_appends_instead(monkeypatch):
    repository.insert_entity(make_entity(SFEX_ID, [make_event(SFEX_ID, T1, 3100)], params={"phonenum": "1234"}))

    # 다른 요청이 exists() 확인과 create() 사이에 먼저 저장한 상황
    monkeypatch.setattr(QuerySet, "exists", lambda self: False)
    later = make_entity(
        SFEX_ID,
        [make_event(SFEX_ID, T1, 3100), make_event(SFEX_ID, T2, 3002)],
        params={"phonenum": "1234"},
    )
    assert repository.insert_entity(later) == 1

    assert TrackedEntity.objects.count() == 1
    assert TrackedEvent.objects.filter(entity__tracking_id=SFEX_ID).count() == 2
