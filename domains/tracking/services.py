# domains/tracking/services.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from . import repository
from .entity import Entity
from .errors import AppError
from .gateway import get_gateway
from .sync import sync_entity
from .tracking_id import TrackingID

logger = logging.getLogger(__name__)

UPDATE_MANUAL = "manual-pull"
UPDATE_AUTO = "auto-pull"

# 엔드포인트별로 허용하는 공통 쿼리 파라미터 (택배사 필수 파라미터는 별도)
WHEREIS_PARAMS = ("refresh", "fulldata")
STATUS_PARAMS: Tuple[str, ...] = ()


def _flag(value: Any) -> bool:
    return str(value or "").strip().lower() == "true"


def parse_request(
    slug: str, query: Mapping[str, Any], allowed: Iterable[str]
) -> Tuple[TrackingID, Dict[str, str]]:
    """
    URL 의 id + 쿼리 → (TrackingID, 택배사 조회 파라미터)
    - 번호/택배사 오류: 400-01/02/04/05
    - 필수 파라미터 누락, 모르는 쿼리 파라미터: 400-03
    """
    tracking_id = TrackingID.parse(slug)
    gateway = get_gateway()
    extra_params = gateway.get_extra_params(tracking_id.carrier, query)
    gateway.validate_params(tracking_id.carrier, extra_params)

    valid = set(allowed) | set(extra_params)
    invalid = sorted(k for k in query.keys() if k not in valid)
    if invalid:
        raise AppError("400-03", "server - " + ",".join(invalid))
    return tracking_id, extra_params


# ---- whereis ---------------------------------------------------------------------
def refresh_entity_from_provider(tracking_id: TrackingID, extra_params: Mapping[str, str]) -> Entity:
    """택배사에서 새로 받아 병합 저장 후, 저장된 전체 이벤트를 반환."""
    fresh = get_gateway().request_where_is(tracking_id, extra_params, UPDATE_MANUAL)
    stored = repository.query_entity(tracking_id)
    if stored is not None:
        # 외부 식별자는 최초 저장 값을 유지
        fresh.uuid = stored.uuid
    sync_entity(fresh, UPDATE_MANUAL)
    return repository.query_entity(tracking_id) or fresh


def get_entity_from_db_or_provider(tracking_id: TrackingID, extra_params: Mapping[str, str]) -> Entity:
    gateway = get_gateway()
    stored = repository.query_entity(tracking_id)
    if stored is not None:
        gateway.validate_stored_entity(stored, tracking_id, extra_params)
        return stored

    fresh = gateway.request_where_is(tracking_id, extra_params, UPDATE_MANUAL)
    sync_entity(fresh, UPDATE_MANUAL)
    return fresh


def where_is(slug: str, query: Mapping[str, Any]) -> Dict[str, Any]:
    tracking_id, extra_params = parse_request(slug, query, WHEREIS_PARAMS)
    if _flag(query.get("refresh")):
        entity = refresh_entity_from_provider(tracking_id, extra_params)
    else:
        entity = get_entity_from_db_or_provider(tracking_id, extra_params)
    return entity.to_json(full_data=_flag(query.get("fulldata")))


# ---- status ----------------------------------------------------------------------
def get_status(slug: str, query: Mapping[str, Any]) -> Dict[str, Any]:
    """저장된 최신 상태, 없으면 택배사에서 받아 저장(backfill) 후 반환."""
    tracking_id, extra_params = parse_request(slug, query, STATUS_PARAMS)
    gateway = get_gateway()

    stored = repository.query_entity(tracking_id)
    if stored is not None:
        gateway.validate_stored_entity(stored, tracking_id, extra_params)
        return stored.get_last_status()

    fresh = gateway.request_where_is(tracking_id, extra_params, UPDATE_MANUAL)
    sync_entity(fresh, UPDATE_MANUAL)
    status = fresh.get_last_status()
    if status is None:
        raise AppError("404-01", f"Received empty data from source {tracking_id.carrier}")
    return status


def list_carriers() -> List[Dict[str, str]]:
    return get_gateway().active_operators()
