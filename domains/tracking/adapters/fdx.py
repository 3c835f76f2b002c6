# domains/tracking/adapters/fdx.py
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..entity import Entity, Event, fingerprint
from ..errors import AppError, CarrierError
from ..status_map import ExceptionCode, StatusCode, describe
from .base import CarrierAdapter, Rule, Table, keyword_rule

if TYPE_CHECKING:
    from ..tracking_id import TrackingID

logger = logging.getLogger(__name__)

DEFAULT_OAUTH_URL = "https://apis.fedex.com/oauth/token"
DEFAULT_TRACK_URL = "https://apis.fedex.com/track/v1/trackingnumbers"

CREDENTIAL_ERRORS = {"BAD.REQUEST.ERROR", "NOT.AUTHORIZED.ERROR"}

_EXCEPTION_CODES = {
    "08": ExceptionCode.RECIPIENT_NOT_AVAILABLE,
    "29": ExceptionCode.REROUTED,
}
# 예외로 보지 않는 코드
_IGNORED_EXCEPTIONS = {"", "71"}


# ---- IT(운송중) 세부 규칙 ------------------------------------------------------
def _departed(source: Mapping[str, Any], operation: str) -> Optional[int]:
    if source.get("locationType") == "ORIGIN_FEDEX_FACILITY":
        return StatusCode.RECEIVED_BY_CARRIER
    if re.search(r"Departed FedEx hub", str(source.get("eventDescription") or ""), re.IGNORECASE):
        return StatusCode.IN_TRANSIT
    return StatusCode.DEPARTED_IN_TRANSIT


def _arrived(source: Mapping[str, Any], operation: str) -> Optional[int]:
    location_type = source.get("locationType")
    if location_type == "SORT_FACILITY" and re.search(
        r"destination", str(source.get("eventDescription") or ""), re.IGNORECASE
    ):
        return StatusCode.ARRIVED_AT_DESTINATION
    by_location = {
        "ORIGIN_FEDEX_FACILITY": StatusCode.RECEIVED_BY_CARRIER,
        "DESTINATION_FEDEX_FACILITY": StatusCode.ARRIVED_AT_DESTINATION,
    }
    return by_location.get(location_type, StatusCode.ARRIVED_IN_TRANSIT)


def _in_transit(source: Mapping[str, Any], operation: str) -> Optional[int]:
    if str(source.get("exceptionCode") or "") == "67":
        return StatusCode.FINAL_DELIVERY_IN_PROGRESS
    return StatusCode.LOGISTICS_IN_PROGRESS


def exception_code_for(source: Mapping[str, Any]) -> Optional[int]:
    raw = str(source.get("exceptionCode") or "")
    if raw in _IGNORED_EXCEPTIONS:
        return None
    return int(_EXCEPTION_CODES.get(raw, ExceptionCode.EXCEPTION))


def format_address(address: Optional[Mapping[str, Any]]) -> str:
    address = address or {}
    parts = [address.get("city") or "", address.get("stateOrProvinceCode") or "", address.get("countryName") or ""]
    return " ".join(str(p) for p in parts).strip()


def _find_3100_base(entity: Entity) -> Optional[Event]:
    # 3100 이 이미 있거나 이후 단계가 없으면 보충하지 않는다
    if not any(e.status > StatusCode.RECEIVED_BY_CARRIER for e in entity.events):
        return None
    for event in entity.events:
        if event.status == StatusCode.RECEIVED_BY_CARRIER:
            return None
        if event.status > StatusCode.RECEIVED_BY_CARRIER:
            break
    for event in entity.events:
        if event.status < StatusCode.RECEIVED_BY_CARRIER:
            continue
        if 3001 <= event.status <= 3004 or event.status > StatusCode.RECEIVED_BY_CARRIER:
            return event
    return None


class FdxAdapter(CarrierAdapter):
    code = "fdx"
    name = "FedEx"
    tracking_number_pattern = r"\d{12}|\d{15}|\d{20}|\d{22}"
    batch_size = 10
    required_params = ()

    category_field = "derivedStatusCode"
    operation_field = "eventType"
    status_map = {
        "IN": Table({"OC": StatusCode.TRANSPORT_BILL_CREATED}),
        "IT": Table({
            "DR": StatusCode.IN_TRANSIT,
            "DP": Rule(_departed),
            "AR": Rule(_arrived),
            "IT": Rule(_in_transit),
            "AF": StatusCode.LOGISTICS_IN_PROGRESS,
            "CC": keyword_rule(
                "eventDescription",
                [("Export", StatusCode.EXPORT_CUSTOMS_RELEASED), ("Import", StatusCode.IMPORT_CUSTOMS_RELEASED)],
            ),
            "OD": StatusCode.FINAL_DELIVERY_IN_PROGRESS,
            "RR": StatusCode.FINAL_DELIVERY_IN_PROGRESS,
        }),
        "CD": Table({
            "CD": keyword_rule(
                "eventDescription",
                [("Import", StatusCode.IMPORT_CUSTOMS_IN_PROGRESS)],
                StatusCode.EXPORT_CUSTOMS_IN_PROGRESS,
            ),
        }),
        "PU": Table({"PU": StatusCode.PICKED_UP}),
        "DL": Table({"DL": StatusCode.DELIVERED}),
        "DE": Table({"DE": StatusCode.FINAL_DELIVERY_IN_PROGRESS}),
        "CA": Table({"CA": StatusCode.PROCESS_STOPPED}),
    }

    # ---- 토큰 ------------------------------------------------------------------
    def get_token(self) -> str:
        """만료 30초 전까지는 캐시된 토큰, 이후엔 한 스레드만 갱신."""
        return self.state.token_cache(self.code).get(self._fetch_token)

    def _fetch_token(self) -> Tuple[str, float]:
        creds = self.state.credentials_for(self.code)
        if not creds.get("client_id") or not creds.get("client_secret"):
            raise AppError("500-01", "fdx - CLIENT_ID/SECRET")

        url = str(self.state.option(self.code, "oauth_url") or DEFAULT_OAUTH_URL)
        response = self._post(
            url,
            data={
                "grant_type": "client_credentials",
                "client_id": creds["client_id"],
                "client_secret": creds["client_secret"],
            },
            context="getToken",
        )
        data = self._json(response, context="getToken")

        if not response.ok:
            errors = data.get("errors")
            code = ""
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                code = str(errors[0].get("code") or "")
            if code in CREDENTIAL_ERRORS:
                logger.error(f"fdx rejected credentials: {code}")
                raise AppError("500-01", f"fdx - {code}")
            raise CarrierError("502-01", f"fdx - getToken {response.status_code} {code}".strip())

        token = data.get("access_token")
        expires_in = data.get("expires_in")
        if not token:
            raise CarrierError("502-01", "fdx - no access_token")
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool) or expires_in <= 0:
            raise CarrierError("502-01", "fdx - invalid expires_in")
        logger.info(f"fdx token refreshed (expires_in={expires_in})")
        return str(token), float(expires_in)

    # ---- 조회 ------------------------------------------------------------------
    def get_route(self, tracking_num: str, params: Mapping[str, str]) -> Dict[str, Any]:
        return self._track([tracking_num])

    def get_routes(self, tracking_nums: Sequence[str]) -> Dict[str, Dict[str, Any]]:
        """
        최대 batch_size 건을 한 번에 조회하고 번호별 payload 로 나눈다.
        각 값은 get_route 응답과 같은 모양 (output.completeTrackResults 에 한 건).
        """
        raw = self._track(list(tracking_nums))
        output = (raw or {}).get("output") or {}
        split: Dict[str, Dict[str, Any]] = {}
        for complete in output.get("completeTrackResults") or []:
            num = str(complete.get("trackingNumber") or "")
            split[num] = {"output": {"completeTrackResults": [complete]}}
        return split

    def _track(self, tracking_nums: List[str]) -> Dict[str, Any]:
        if not self.is_active():
            raise AppError("500-01", "fdx - CLIENT_ID")

        payload = {
            "includeDetailedScans": True,
            "trackingInfo": [{"trackingNumberInfo": {"trackingNumber": num}} for num in tracking_nums],
        }
        token = self.get_token()
        url = str(self.state.option(self.code, "track_url") or DEFAULT_TRACK_URL)
        response = self._post(
            url,
            json=payload,
            headers={"X-locale": "en_US", "Authorization": f"Bearer {token}"},
            context="getRoute",
        )
        if response.status_code == 401:
            # 서버 쪽에서 토큰이 먼저 만료된 경우: 다음 호출에서 새로 받는다
            self.state.token_cache(self.code).clear()
        if not response.ok:
            logger.error(f"fdx getRoute HTTP {response.status_code}: {response.text[:500]}")
            raise CarrierError("502-01", f"fdx - HTTP {response.status_code}")
        return self._json(response, context="getRoute")

    # ---- 변환 ------------------------------------------------------------------
    @staticmethod
    def track_result(raw: Mapping[str, Any]) -> Dict[str, Any]:
        output = (raw or {}).get("output") or {}
        complete = output.get("completeTrackResults") or []
        if not complete:
            return {}
        results = complete[0].get("trackResults") or []
        return dict(results[0]) if results else {}

    def scan_entries(self, raw: Mapping[str, Any]) -> List[Dict[str, Any]]:
        result = self.track_result(raw)
        if result.get("error") is not None:
            logger.error(f"fdx reported an error for the shipment: {result.get('error')}")
            raise AppError("404-01", f"fdx - {(result.get('error') or {}).get('code', '')}")
        # 최신순으로 오므로 시간순으로 뒤집는다
        return list(reversed(result.get("scanEvents") or []))

    def entity_extra(self, raw: Mapping[str, Any]) -> Dict[str, Any]:
        result = self.track_result(raw)
        return {
            "origin": format_address((result.get("shipperInformation") or {}).get("address")),
            "destination": format_address((result.get("recipientInformation") or {}).get("address")),
        }

    @staticmethod
    def where_of(scan_event: Mapping[str, Any]) -> str:
        where = format_address(scan_event.get("scanLocation"))
        if not where and scan_event.get("locationType") == "CUSTOMER":
            return "Customer location"
        return where

    def create_event(
        self,
        tracking_id: "TrackingID",
        entry: Mapping[str, Any],
        update_method: str,
        now: datetime,
    ) -> Event:
        status = self.resolve_status(entry)
        when = entry.get("date") or None
        what = describe(status)

        description = str(entry.get("eventDescription") or "").strip()
        exception_desc = str(entry.get("exceptionDescription") or "").strip()
        notes = f"{description}: {exception_desc}" if exception_desc else description

        event = Event(
            event_id=fingerprint(str(tracking_id), when, status),
            operator_code=self.code,
            tracking_num=tracking_id.tracking_num,
            status=status,
            what=what,
            when=when,
            where=self.where_of(entry),
            whom=self.name,
            notes="" if notes.lower() == what.lower() else notes,
            data_provider=self.name,
            extra={"updateMethod": update_method, "updatedAt": now.isoformat()},
            source_data=dict(entry),
        )
        event.set_exception(exception_code_for(entry))
        return event

    def missing_event_checks(self):
        return ((int(StatusCode.RECEIVED_BY_CARRIER), _find_3100_base),)
