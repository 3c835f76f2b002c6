# domains/tracking/adapters/sfex.py
from __future__ import annotations

import base64
import hashlib
import json
import logging
import time
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

from django.utils.dateparse import parse_datetime

from ..entity import Entity, Event, fingerprint, parse_when
from ..errors import AppError, CarrierError
from ..status_map import StatusCode, describe
from .base import CarrierAdapter, Table, keyword_rule, update_method_display

if TYPE_CHECKING:
    from ..tracking_id import TrackingID

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://bspgw.sf-express.com/std/service"
DEFAULT_TIMEZONE = "Asia/Shanghai"
SERVICE_CODE = "EXP_RECE_SEARCH_ROUTES"

RESULT_OK = "A1000"
# 파트너 ID / 체크워드 문제
CREDENTIAL_ERRORS = {"A1001", "A1004", "A1006"}

# 3300(도착) 누락 판단: 3250 이후에 나오면 도착을 거친 것으로 본다
POST_3300_STATUSES = (3002, 3003, 3004, 3350, 3400, 3500)
# 3400(수입통관 완료) 누락 판단: 3350 이후에 나오면 통관을 마친 것으로 본다
POST_3400_STATUSES = (3004, 3450, 3500)

_ROUTE_OPCODES = Table({
    "30": StatusCode.LOGISTICS_IN_PROGRESS,
    "31": StatusCode.ARRIVED_IN_TRANSIT,
    "36": StatusCode.DEPARTED_IN_TRANSIT,
    "105": StatusCode.IN_TRANSIT,
    "106": StatusCode.ARRIVED_AT_DESTINATION,
    "310": StatusCode.ARRIVED_IN_TRANSIT,
})


def sign(msg_data: str, timestamp: str, check_word: str) -> str:
    """base64(md5(encodeURIComponent(msgData + timestamp + checkWord)))"""
    encoded = quote(msg_data + timestamp + check_word, safe="-_.!~*'()")
    return base64.b64encode(hashlib.md5(encoded.encode("utf-8")).digest()).decode("ascii")


def _find_missing_base(entity: Entity, trigger: int, target: int, post_statuses) -> Optional[Event]:
    triggered = False
    for event in entity.events:
        if event.status == trigger:
            triggered = True
        if event.status == target:
            return None
        if triggered and event.status in post_statuses:
            # 위치가 없으면 보충 이벤트를 만들지 않는다
            return event if event.where else None
    return None


class SfexAdapter(CarrierAdapter):
    code = "sfex"
    name = "SF Express"
    tracking_number_pattern = r"SF\d{13}"
    required_params = ("phonenum",)

    category_field = "secondaryStatusCode"
    operation_field = "opCode"
    status_map = {
        "101": Table({"50": StatusCode.RECEIVED_BY_CARRIER, "54": StatusCode.RECEIVED_BY_CARRIER}),
        "201": keyword_rule(
            "remark",
            [("完成分拣", StatusCode.SCANNED_IN_TRANSIT), ("快件离开", StatusCode.DEPARTED_IN_TRANSIT)],
            otherwise=_ROUTE_OPCODES,
        ),
        "204": keyword_rule(
            "secondaryStatusName", [("清关中", StatusCode.IMPORT_CUSTOMS_IN_PROGRESS)], StatusCode.LOGISTICS_IN_PROGRESS
        ),
        "205": keyword_rule(
            "secondaryStatusName", [("已清关", StatusCode.IMPORT_CUSTOMS_RELEASED)], StatusCode.LOGISTICS_IN_PROGRESS
        ),
        "301": keyword_rule(
            "secondaryStatusName", [("派送中", StatusCode.FINAL_DELIVERY_IN_PROGRESS)], StatusCode.LOGISTICS_IN_PROGRESS
        ),
        "1301": Table({"70": StatusCode.ARRIVED_AT_DESTINATION}),
        "401": Table({"80": StatusCode.DELIVERED}),
    }

    @property
    def source_timezone(self) -> ZoneInfo:
        return ZoneInfo(str(self.state.option(self.code, "timezone") or DEFAULT_TIMEZONE))

    # ---- 조회 ------------------------------------------------------------------
    def get_route(self, tracking_num: str, params: Mapping[str, str]) -> Dict[str, Any]:
        """
        라우트 조회 API 호출.
        반환: apiResultData 를 풀어낸 dict (msgData.routeResps[0].routes 에 스캔 목록)
        """
        if not self.is_active():
            raise AppError("500-01", "sfex - PARTNERID")

        creds = self.state.credentials_for(self.code)
        url = str(self.state.option(self.code, "api_url") or DEFAULT_API_URL)

        msg_data = json.dumps(
            {"trackingType": 1, "trackingNumber": [tracking_num], "checkPhoneNo": params.get("phonenum", "")},
            separators=(",", ":"),
            ensure_ascii=False,
        )
        timestamp = str(int(time.time() * 1000))
        form = {
            "partnerID": creds.get("partner_id", ""),
            "requestID": str(uuid.uuid4()),
            "serviceCode": SERVICE_CODE,
            "timestamp": timestamp,
            "msgDigest": sign(msg_data, timestamp, creds.get("check_word", "")),
            "msgData": msg_data,
        }

        response = self._post(url, data=form, context="getRoute")
        if not response.ok:
            logger.error(f"sfex getRoute HTTP {response.status_code}: {response.text[:500]}")
            raise CarrierError("502-01", f"sfex - HTTP {response.status_code}")
        result = self._json(response, context="getRoute")

        result_code = result.get("apiResultCode")
        if result_code != RESULT_OK:
            if result_code in CREDENTIAL_ERRORS:
                logger.error(f"sfex rejected credentials: {result_code} {result.get('apiErrorMsg')}")
                raise AppError("500-01", "sfex - PARTNERID")
            raise CarrierError("502-01", f"sfex - {result_code}: {result.get('apiErrorMsg')}")

        try:
            data = json.loads(result.get("apiResultData") or "{}")
        except ValueError as e:
            raise CarrierError("502-01", "sfex - apiResultData") from e
        if not isinstance(data, dict):
            raise CarrierError("502-01", "sfex - apiResultData")
        return data

    # ---- 변환 ------------------------------------------------------------------
    def scan_entries(self, raw: Mapping[str, Any]) -> List[Dict[str, Any]]:
        route_resps = ((raw or {}).get("msgData") or {}).get("routeResps") or []
        if not route_resps:
            return []
        return list(route_resps[0].get("routes") or [])

    def event_time(self, accept_time: Optional[str]) -> Optional[str]:
        """'2024-10-26 06:12:43' → '2024-10-26T06:12:43+08:00' (원천 시간대 기준)"""
        if not accept_time:
            return None
        dt = parse_datetime(str(accept_time).strip().replace(" ", "T"))
        if dt is None:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=self.source_timezone)
        return dt.isoformat()

    def create_event(
        self,
        tracking_id: "TrackingID",
        entry: Mapping[str, Any],
        update_method: str,
        now: datetime,
    ) -> Event:
        status = self.resolve_status(entry)
        when = self.event_time(entry.get("acceptTime"))
        # event_id 는 수집 시점과 무관하게 원천 상태로 만든다
        event_id = fingerprint(str(tracking_id), when, status)

        occurred = parse_when(when)
        if occurred is not None and occurred > now:
            status = int(StatusCode.INFORMATION_RECEIVED)
            logger.info(
                f"{update_method_display(update_method)} -> SFEX: Future event detected for {tracking_id}. "
                f"Event time: {when}, Current time(UTC): {now.isoformat()}. "
                f"Assigning status 3005 (Information Received)."
            )

        what = describe(status)
        remark = str(entry.get("remark") or "").strip()
        if remark.startswith("快件途经"):
            where = remark[4:]
        else:
            where = str(entry.get("acceptAddress") or "")

        return Event(
            event_id=event_id,
            operator_code=self.code,
            tracking_num=tracking_id.tracking_num,
            status=status,
            what=what,
            when=when,
            where=where,
            whom=self.name,
            notes="" if remark.lower() == what.lower() else remark,
            data_provider=self.name,
            extra={"updateMethod": update_method, "updatedAt": now.isoformat()},
            source_data=dict(entry),
        )

    def missing_event_checks(self):
        return (
            (
                int(StatusCode.ARRIVED_AT_DESTINATION),
                lambda entity: _find_missing_base(entity, 3250, 3300, POST_3300_STATUSES),
            ),
            (
                int(StatusCode.IMPORT_CUSTOMS_RELEASED),
                lambda entity: _find_missing_base(entity, 3350, 3400, POST_3400_STATUSES),
            ),
        )
