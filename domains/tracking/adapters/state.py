# domains/tracking/adapters/state.py
"""
프로세스 단위 택배사 상태.
- 자격증명/활성 플래그: 기동 시 한 번 읽고 이후 읽기 전용
- 베어러 토큰 캐시: 필요할 때 갱신, 택배사별 동시 갱신은 1건만
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# 만료 30초 전부터 새 토큰을 받는다
TOKEN_REFRESH_MARGIN = 30.0


class TokenCache:
    """
    만료 시각이 있는 베어러 토큰 캐시.
    fetch() 는 (access_token, expires_in_seconds) 를 돌려줘야 한다.
    락을 잡은 스레드만 갱신하고, 나머지는 락에서 기다렸다가 갱신된 토큰을 그대로 쓴다.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    def _valid(self) -> bool:
        return bool(self._token) and self._clock() <= self._expires_at - TOKEN_REFRESH_MARGIN

    def get(self, fetch: Callable[[], Tuple[str, float]]) -> str:
        if self._valid():
            return self._token  # type: ignore[return-value]
        with self._lock:
            # 기다리는 동안 다른 스레드가 이미 갱신했을 수 있다
            if self._valid():
                return self._token  # type: ignore[return-value]
            token, expires_in = fetch()
            self._token = token
            self._expires_at = self._clock() + float(expires_in)
            return token

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0


@dataclass
class CarrierState:
    """
    택배사별 자격증명과 토큰 캐시를 묶은 명시적 상태 객체.
    어댑터에 참조로 넘겨서 사용한다(전역 변수 대신).
    """

    credentials: Dict[str, Dict[str, str]] = field(default_factory=dict)
    options: Dict[str, Dict[str, object]] = field(default_factory=dict)
    timeout: float = 10.0
    _tokens: Dict[str, TokenCache] = field(default_factory=dict)
    _tokens_lock: threading.Lock = field(default_factory=threading.Lock)

    @classmethod
    def init(cls, conf: Mapping[str, Mapping[str, object]], timeout: float = 10.0) -> "CarrierState":
        """
        settings.CARRIERS 형태의 설정에서 상태를 만든다.
        예) {"fdx": {"credentials": {"client_id": "..", ...}, "oauth_url": ".."}}
        """
        credentials: Dict[str, Dict[str, str]] = {}
        options: Dict[str, Dict[str, object]] = {}
        for code, entry in (conf or {}).items():
            entry = dict(entry or {})
            creds = entry.pop("credentials", {}) or {}
            credentials[code] = {k: str(v or "") for k, v in dict(creds).items()}
            options[code] = entry
        state = cls(credentials=credentials, options=options, timeout=float(timeout))
        logger.info(f"Carrier state initialized for: {', '.join(sorted(credentials)) or '-'}")
        return state

    def credentials_for(self, code: str) -> Dict[str, str]:
        return self.credentials.get(code, {})

    def option(self, code: str, key: str, default=None):
        return self.options.get(code, {}).get(key, default)

    def is_configured(self, code: str) -> bool:
        """자격증명 값이 모두 채워져 있어야 활성."""
        creds = self.credentials.get(code)
        return bool(creds) and all(creds.values())

    def token_cache(self, code: str) -> TokenCache:
        with self._tokens_lock:
            cache = self._tokens.get(code)
            if cache is None:
                cache = self._tokens[code] = TokenCache()
            return cache

    def teardown(self) -> None:
        with self._tokens_lock:
            for cache in self._tokens.values():
                cache.clear()
            self._tokens.clear()
