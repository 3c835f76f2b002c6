# domains/tracking/views.py
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import OpenApiParameter, extend_schema

from .serializers import (
    CarrierListSerializer,
    ErrorSerializer,
    LastStatusSerializer,
    WhereIsSerializer,
)
from .services import get_status, list_carriers, where_is

_ERRORS = {400: ErrorSerializer, 404: ErrorSerializer, 500: ErrorSerializer}

_PHONENUM = OpenApiParameter(
    name="phonenum", required=False, type=str, description="수취인 전화번호 (sfex 필수)"
)


# --------------------------------------------------------------------
# GET /api/v1/whereis/{carrier-trackingNum}/
# 저장본 우선, 없으면 택배사 조회 후 저장. refresh=true 면 항상 택배사 조회
# --------------------------------------------------------------------
class WhereIsAPI(APIView):
    permission_classes = [permissions.AllowAny]

    @extend_schema(
        parameters=[
            _PHONENUM,
            OpenApiParameter(name="refresh", required=False, type=bool, description="택배사에서 다시 조회"),
            OpenApiParameter(name="fulldata", required=False, type=bool, description="원본 sourceData 포함"),
        ],
        responses={200: WhereIsSerializer, **_ERRORS},
    )
    def get(self, request, tracking_id: str):
        data = where_is(tracking_id, request.query_params)
        return Response(data, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# GET /api/v1/status/{carrier-trackingNum}/  (최신 상태만)
# --------------------------------------------------------------------
class StatusAPI(APIView):
    permission_classes = [permissions.AllowAny]

    @extend_schema(parameters=[_PHONENUM], responses={200: LastStatusSerializer, **_ERRORS})
    def get(self, request, tracking_id: str):
        data = get_status(tracking_id, request.query_params)
        return Response(data, status=status.HTTP_200_OK)


# --------------------------------------------------------------------
# GET /api/v1/carriers/  (활성 택배사)
# --------------------------------------------------------------------
class CarrierListAPI(APIView):
    permission_classes = [permissions.AllowAny]

    @extend_schema(responses={200: CarrierListSerializer})
    def get(self, request):
        return Response({"operators": list_carriers()}, status=status.HTTP_200_OK)
