# shared/exceptions.py
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from domains.tracking.errors import AppError

logger = logging.getLogger(__name__)

INTERNAL_ERROR = {"code": "500", "message": "Internal Server Error"}


def api_exception_handler(exc, context):
    """
    모든 API 에러를 {code, message} 형태로 통일.
    - AppError: 코드 앞자리가 HTTP 상태 (4xx 는 info, 5xx 는 error 로그)
    - DRF 기본 예외: DRF 처리 결과 유지
    - 그 외: 500 + 일반 메시지
    """
    request = context.get("request")
    url = request.build_absolute_uri() if request is not None else "-"

    if isinstance(exc, AppError):
        if exc.is_client_error():
            logger.info(f"Request URL: {url}")
            logger.info(f"Error detail: {exc.get_message()}")
        else:
            logger.error(f"Request URL: {url}")
            logger.error(f"Error detail: {exc.get_message()}")
        return Response(exc.to_dict(), status=exc.http_status)

    response = drf_exception_handler(exc, context)
    if response is not None:
        return response

    logger.exception(f"Unhandled error on {url}: {exc}")
    return Response(INTERNAL_ERROR, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
