# domains/tracking/sync.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple

from django.db import transaction

from . import repository
from .entity import Entity, Event

logger = logging.getLogger(__name__)


def merge(existing_event_ids: Iterable[str], fresh: Entity) -> Tuple[List[Event], bool]:
    """
    저장된 event_id 집합과 새로 받은 Entity 비교.
    반환: (새 이벤트 목록 - 원본 순서 유지, 써야 하는지)
    새 이벤트 수가 저장된 수보다 많지 않으면 쓰지 않는다(동시 동기화/낡은 응답 방지).
    """
    existing = set(existing_event_ids)
    new_events = [e for e in fresh.events if e.event_id not in existing]
    should_write = bool(new_events) and fresh.event_num() > len(existing)
    return new_events, should_write


@dataclass
class SyncPlan:
    entity: Entity
    existing_event_ids: Set[str] = field(default_factory=set)
    new_events: List[Event] = field(default_factory=list)

    @property
    def is_new(self) -> bool:
        return not self.existing_event_ids


def plan_sync(fresh: Entity) -> Optional[SyncPlan]:
    """쓸 게 없으면 None."""
    existing = repository.query_event_ids(fresh.id)
    new_events, should_write = merge(existing, fresh)
    if not should_write:
        return None
    return SyncPlan(entity=fresh, existing_event_ids=existing, new_events=new_events)


def apply_plan(plan: SyncPlan, update_method: str) -> int:
    """트랜잭션은 호출부 책임. 반환: 저장한 이벤트 수."""
    if plan.is_new:
        return repository.insert_entity(plan.entity, update_method)
    return repository.update_entity(plan.entity, plan.existing_event_ids, update_method)


def sync_entity(fresh: Entity, update_method: str) -> int:
    """단건 병합 + 저장 (요청 경로용)."""
    with transaction.atomic():
        plan = plan_sync(fresh)
        if plan is None:
            return 0
        written = apply_plan(plan, update_method)
    logger.info(f"{fresh.id}: {written} new event(s) written ({update_method})")
    return written
