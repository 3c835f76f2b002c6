# domains/tracking/repository.py
"""
Entity / Event 저장소 (Django ORM).
이벤트는 append-only: 이미 저장된 event_id 는 다시 쓰지 않는다.
트랜잭션 경계는 호출부(services / tasks)가 정한다.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Union

from django.db import IntegrityError, transaction

from .entity import Entity, Event, parse_when
from .models import IngestionMode, TrackedEntity, TrackedEvent
from .tracking_id import TrackingID

logger = logging.getLogger(__name__)

TrackingKey = Union[TrackingID, str]


def _event_row(row: TrackedEntity, event: Event) -> TrackedEvent:
    return TrackedEvent(
        entity=row,
        event_id=event.event_id,
        operator_code=event.operator_code,
        tracking_num=event.tracking_num,
        status=int(event.status),
        what=event.what or "",
        when=event.when or "",
        occurred_at=parse_when(event.when),
        where=event.where or "",
        whom=event.whom or "",
        notes=event.notes,
        data_provider=event.data_provider or "",
        exception_code=event.exception_code,
        exception_desc=event.exception_desc,
        extra=event.extra or {},
        source_data=event.source_data or {},
    )


def _event_from_row(row: TrackedEvent) -> Event:
    return Event(
        event_id=row.event_id,
        status=row.status,
        operator_code=row.operator_code,
        tracking_num=row.tracking_num,
        what=row.what,
        when=row.when or None,
        where=row.where,
        whom=row.whom,
        notes=row.notes,
        data_provider=row.data_provider,
        exception_code=row.exception_code,
        exception_desc=row.exception_desc,
        extra=row.extra or {},
        source_data=row.source_data or {},
    )


def _insert_events(row: TrackedEntity, events: Iterable[Event], update_method: str) -> int:
    rows: List[TrackedEvent] = []
    for event in events:
        logger.info(f"{update_method}: Insert new event with ID {event.event_id}")
        rows.append(_event_row(row, event))
    TrackedEvent.objects.bulk_create(rows)
    return len(rows)


# ---- 조회 -----------------------------------------------------------------------
def query_entity(tracking_id: TrackingKey) -> Optional[Entity]:
    """저장된 Entity (이벤트 포함). 이벤트가 하나도 없으면 없는 것으로 본다."""
    row = TrackedEntity.objects.filter(tracking_id=str(tracking_id)).first()
    if row is None:
        return None
    events = [_event_from_row(e) for e in row.events.order_by("occurred_at", "created_at")]
    if not events:
        return None
    return Entity(
        id=row.tracking_id,
        uuid=row.uuid,
        type=row.type,
        ingestion_mode=row.ingestion_mode,
        params=dict(row.params or {}),
        extra=dict(row.extra or {}),
        events=events,
    )


def query_event_ids(tracking_id: TrackingKey) -> Set[str]:
    return set(
        TrackedEvent.objects.filter(entity__tracking_id=str(tracking_id)).values_list("event_id", flat=True)
    )


def query_status(tracking_id: TrackingKey) -> Optional[Dict]:
    """최신 상태 요약. 저장된 게 없으면 None."""
    entity = query_entity(tracking_id)
    if entity is None:
        return None
    return entity.get_last_status()


def get_in_processing_tracking_nums() -> Dict[str, Dict[str, str]]:
    """완료되지 않은 pull 대상 → {tracking_id: 저장된 조회 파라미터}"""
    qs = TrackedEntity.objects.filter(completed=False, ingestion_mode=IngestionMode.PULL).order_by("created_at")
    return {tid: dict(params or {}) for tid, params in qs.values_list("tracking_id", "params")}


# ---- 쓰기 -----------------------------------------------------------------------
def insert_entity(entity: Entity, update_method: str = "manual-pull") -> int:
    """
    새 Entity 와 모든 이벤트를 저장. 반환: 저장한 이벤트 수.
    이벤트가 없거나 이미 저장된 tracking_id 면 0.
    """
    if not entity.events:
        logger.error(f"Entity [{entity.id}] has no events")
        return 0
    if TrackedEntity.objects.filter(tracking_id=entity.id).exists():
        return 0

    tid = TrackingID.parse(entity.id)
    try:
        with transaction.atomic():
            row = TrackedEntity.objects.create(
                uuid=entity.uuid,
                tracking_id=entity.id,
                carrier=tid.carrier,
                tracking_num=tid.tracking_num,
                type=entity.type,
                ingestion_mode=entity.ingestion_mode,
                completed=entity.is_completed(),
                creation_time=entity.creation_time(),
                params=dict(entity.params or {}),
                extra=dict(entity.extra or {}),
            )
    except IntegrityError:
        # 동시에 들어온 첫 저장 요청에 밀린 경우: 이미 생긴 행에 이어 붙인다
        if TrackedEntity.objects.filter(tracking_id=entity.id).first() is None:
            raise
        logger.info(f"Entity [{entity.id}] was inserted concurrently, appending events instead")
        return update_entity(entity, query_event_ids(entity.id), update_method)
    return _insert_events(row, entity.events, update_method)


def update_entity(entity: Entity, existing_event_ids: Iterable[str], update_method: str = "manual-pull") -> int:
    """
    저장된 Entity 에 새 이벤트만 추가하고, 종료 상태면 completed 를 켠다.
    반환: 추가한 이벤트 수.
    """
    row = TrackedEntity.objects.filter(tracking_id=entity.id).first()
    if row is None:
        return insert_entity(entity, update_method)

    existing = set(existing_event_ids)
    new_events = [e for e in entity.events if e.event_id not in existing]

    fields = ["updated_at"]
    if entity.is_completed() and not row.completed:
        row.completed = True
        fields.append("completed")
    if entity.extra and entity.extra != row.extra:
        row.extra = dict(entity.extra)
        fields.append("extra")
    row.save(update_fields=fields)

    return _insert_events(row, new_events, update_method)
