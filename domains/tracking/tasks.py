# domains/tracking/tasks.py
from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from celery import shared_task
from django.db import transaction

from . import repository
from .entity import Entity
from .errors import AppError
from .gateway import get_gateway
from .services import UPDATE_AUTO
from .sync import SyncPlan, apply_plan, plan_sync
from .tracking_id import TrackingID

logger = logging.getLogger(__name__)


def _batches(items: Sequence[TrackingID], size: int) -> List[List[TrackingID]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _group_by_carrier(in_processing: Dict[str, Dict[str, str]]) -> Dict[str, List[Tuple[TrackingID, Dict[str, str]]]]:
    """조회 가능한 운송장만 택배사별로 묶는다 (저장 순서 유지)."""
    gateway = get_gateway()
    grouped: Dict[str, List[Tuple[TrackingID, Dict[str, str]]]] = {}
    for slug, params in in_processing.items():
        try:
            tracking_id = TrackingID.parse(slug)
        except AppError as e:
            logger.warning(f"Auto-pull: skip unparsable tracking id {slug!r} ({e.code})")
            continue
        if not gateway.is_operator_active(tracking_id.carrier):
            continue
        grouped.setdefault(tracking_id.carrier, []).append((tracking_id, params))
    return grouped


def _fetch(carrier: str, items: List[Tuple[TrackingID, Dict[str, str]]]) -> List[Entity]:
    """
    택배사별 조회.
    - batch_size > 1 (예: fdx): 파라미터 없이 batch_size 건씩 묶어 조회
    - 그 외 (예: sfex): 저장된 조회 파라미터로 건별 조회
    데이터 없음(404-01)은 그 건만 건너뛰고, 나머지 에러는 전파한다.
    """
    gateway = get_gateway()
    batch_size = gateway.batch_size(carrier)
    if batch_size > 1:
        fresh: List[Entity] = []
        for batch in _batches([tid for tid, _ in items], batch_size):
            fresh.extend(gateway.request_where_is_batch(batch, UPDATE_AUTO))
        return fresh

    fresh = []
    for tracking_id, params in items:
        try:
            fresh.append(gateway.request_where_is(tracking_id, params, UPDATE_AUTO))
        except AppError as e:
            if e.code == "404-01":
                logger.info(f"Auto-pull: no data for {tracking_id}, skipped")
                continue
            raise
    return fresh


def run_sync_tick() -> int:
    """
    진행중인 운송장을 한 번 순회.
    1) 조회/병합 계획을 모두 세운 뒤
    2) 쓰기는 트랜잭션 하나로 (전부 아니면 전무)
    반환: 저장한 이벤트 수
    """
    in_processing = repository.get_in_processing_tracking_nums()
    if not in_processing:
        return 0

    plans: List[SyncPlan] = []
    for carrier, items in _group_by_carrier(in_processing).items():
        for entity in _fetch(carrier, items):
            plan = plan_sync(entity)
            if plan is not None:
                plans.append(plan)

    written = 0
    with transaction.atomic():
        for plan in plans:
            written += apply_plan(plan, UPDATE_AUTO)
    return written


@shared_task(name="domains.tracking.tasks.sync_routes")
def sync_routes() -> int:
    """
    주기 동기화 (Celery beat).
    실패하면 이번 주기의 쓰기는 모두 롤백되고 다음 주기에 다시 시도한다.
    """
    try:
        written = run_sync_tick()
    except Exception:
        logger.exception("Auto-pull: sync tick aborted, no changes were written")
        return 0
    if written:
        logger.info(f"Auto-pull: {written} new event(s) written")
    return written
