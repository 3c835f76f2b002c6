# tests/test_tasks.py
import pytest

from factories import FDX_ID, PHONE, SFEX_ID, fdx_basic_scans, fdx_payload, make_entity, make_event

from domains.tracking import repository
from domains.tracking.adapters import FdxAdapter
from domains.tracking.errors import AppError, CarrierError
from domains.tracking.gateway import Gateway, reset_gateway
from domains.tracking.models import TrackedEntity, TrackedEvent
from domains.tracking.tasks import sync_routes

T1 = "2024-10-20T10:00:00+08:00"
T2 = "2024-10-21T10:00:00+08:00"
T3 = "2024-10-22T10:00:00+08:00"


def _upstream(tracking_id):
    """택배사 쪽 현재 상태 (저장본보다 이벤트가 많다)"""
    return [make_event(tracking_id, T1, 3100), make_event(tracking_id, T2, 3250), make_event(tracking_id, T3, 3500)]


@pytest.fixture
def stored_shipments(db):
    repository.insert_entity(make_entity(SFEX_ID, [make_event(SFEX_ID, T1, 3100)], params={"phonenum": PHONE}))
    repository.insert_entity(make_entity(FDX_ID, [make_event(FDX_ID, T1, 3100)]))
    return [SFEX_ID, FDX_ID]


def _patch_gateway(monkeypatch, failing=(), not_found=()):
    """건별(sfex) / 일괄(fdx) 조회를 모두 가짜 응답으로 바꾼다. 호출 기록을 반환."""
    calls = []

    def fetch(tracking_id, params, update_method):
        calls.append((str(tracking_id), dict(params), update_method))
        if str(tracking_id) in failing:
            raise CarrierError("504-01", "timeout")
        if str(tracking_id) in not_found:
            raise AppError("404-01", "EMPTY")
        return make_entity(str(tracking_id), _upstream(str(tracking_id)), params=params)

    def fake_single(self, tracking_id, extra_params, update_method):
        return fetch(tracking_id, extra_params, update_method)

    def fake_batch(self, tracking_ids, update_method):
        entities = []
        for tracking_id in tracking_ids:
            try:
                entities.append(fetch(tracking_id, {}, update_method))
            except AppError as e:
                if e.code != "404-01":
                    raise
        return entities

    monkeypatch.setattr(Gateway, "request_where_is", fake_single)
    monkeypatch.setattr(Gateway, "request_where_is_batch", fake_batch)
    return calls


@pytest.mark.django_db
def test_tick_writes_new_events_with_stored_params(monkeypatch, stored_shipments):
    calls = _patch_gateway(monkeypatch)

    assert sync_routes() == 4
    assert (SFEX_ID, {"phonenum": PHONE}, "auto-pull") in calls
    assert (FDX_ID, {}, "auto-pull") in calls
    assert TrackedEvent.objects.count() == 6
    assert TrackedEntity.objects.filter(completed=True).count() == 2

    # 완료 건은 다음 주기에 대상이 아니다
    calls.clear()
    assert sync_routes() == 0
    assert calls == []


@pytest.mark.django_db
def test_one_failure_aborts_whole_tick_then_converges(monkeypatch, stored_shipments):
    _patch_gateway(monkeypatch, failing={FDX_ID})
    assert sync_routes() == 0
    assert TrackedEvent.objects.count() == 2

    _patch_gateway(monkeypatch)
    assert sync_routes() == 4
    assert TrackedEvent.objects.count() == 6
    # 변화 없으면 재실행해도 그대로
    assert sync_routes() == 0


@pytest.mark.django_db
def test_write_failure_rolls_back_every_shipment(monkeypatch, stored_shipments):
    _patch_gateway(monkeypatch)

    real_update = repository.update_entity
    seen = []

    def flaky_update(entity, existing_event_ids, update_method="manual-pull"):
        seen.append(entity.id)
        if len(seen) == 2:
            raise RuntimeError("disk full")
        return real_update(entity, existing_event_ids, update_method)

    monkeypatch.setattr(repository, "update_entity", flaky_update)
    assert sync_routes() == 0
    assert len(seen) == 2
    assert TrackedEvent.objects.count() == 2
    assert not TrackedEntity.objects.filter(completed=True).exists()


@pytest.mark.django_db
def test_not_found_shipment_is_skipped(monkeypatch, stored_shipments):
    _patch_gateway(monkeypatch, not_found={SFEX_ID})
    assert sync_routes() == 2
    assert TrackedEvent.objects.filter(entity__tracking_id=SFEX_ID).count() == 1
    assert TrackedEvent.objects.filter(entity__tracking_id=FDX_ID).count() == 3


@pytest.mark.django_db
def test_inactive_carrier_is_not_called(monkeypatch, carrier_settings, stored_shipments):
    carrier_settings["sfex"]["credentials"]["check_word"] = ""
    reset_gateway()
    calls = _patch_gateway(monkeypatch)

    assert sync_routes() == 2
    assert [c[0] for c in calls] == [FDX_ID]


@pytest.mark.django_db
def test_unparsable_stored_id_is_skipped(monkeypatch, stored_shipments):
    TrackedEntity.objects.filter(tracking_id=SFEX_ID).update(tracking_id="sfex-BROKEN")
    calls = _patch_gateway(monkeypatch)

    assert sync_routes() == 2
    assert [c[0] for c in calls] == [FDX_ID]


@pytest.mark.django_db
def test_empty_store_is_noop(monkeypatch):
    calls = _patch_gateway(monkeypatch)
    assert sync_routes() == 0
    assert calls == []


# ---- fdx 일괄 조회 ----------------------------------------------------------------
@pytest.mark.django_db
def test_fdx_shipments_are_fetched_in_batches_of_ten(monkeypatch):
    nums = [str(100000000000 + i) for i in range(12)]
    for num in nums:
        tid = f"fdx-{num}"
        repository.insert_entity(make_entity(tid, [make_event(tid, T1, 3100)]))

    batches = []

    def fake_get_routes(self, tracking_nums):
        batches.append(list(tracking_nums))
        return {num: fdx_payload(fdx_basic_scans(), tracking_num=num) for num in tracking_nums}

    monkeypatch.setattr(FdxAdapter, "get_routes", fake_get_routes)

    # 저장된 3100 과 fdx_basic_scans 의 3050/3100/3300 은 event_id 가 달라 모두 새 이벤트
    assert sync_routes() == 36
    assert batches == [nums[:10], nums[10:]]
    assert TrackedEvent.objects.count() == 48
