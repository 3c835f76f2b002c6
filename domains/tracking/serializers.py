from __future__ import annotations

from rest_framework import serializers

from .status_map import StatusCode


# 문서화(drf-spectacular)용 응답 스키마
class ErrorSerializer(serializers.Serializer):
    code = serializers.CharField()
    message = serializers.CharField()


class CarrierSerializer(serializers.Serializer):
    code = serializers.CharField()
    name = serializers.CharField()


class CarrierListSerializer(serializers.Serializer):
    operators = CarrierSerializer(many=True)


class LastStatusSerializer(serializers.Serializer):
    id = serializers.CharField()
    status = serializers.ChoiceField(choices=StatusCode.choices)
    what = serializers.CharField()
    whom = serializers.CharField()
    when = serializers.CharField(allow_null=True)
    where = serializers.CharField()
    notes = serializers.CharField(allow_null=True, required=False)


class EventExtraSerializer(serializers.Serializer):
    trackingNum = serializers.CharField()
    operatorCode = serializers.CharField()
    dataProvider = serializers.CharField()
    updateMethod = serializers.CharField(allow_null=True)
    updatedAt = serializers.CharField(allow_null=True)
    exceptionCode = serializers.IntegerField(required=False)
    exceptionDesc = serializers.CharField(required=False)


class EventSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=StatusCode.choices)
    what = serializers.CharField()
    whom = serializers.CharField()
    when = serializers.CharField(allow_null=True)
    where = serializers.CharField()
    notes = serializers.CharField(required=False)
    extra = EventExtraSerializer()
    sourceData = serializers.DictField(required=False)


class EntitySummarySerializer(serializers.Serializer):
    id = serializers.CharField()
    type = serializers.CharField()
    uuid = serializers.CharField()
    createdAt = serializers.CharField()
    extra = serializers.DictField(required=False)


class WhereIsSerializer(serializers.Serializer):
    entity = EntitySummarySerializer()
    events = EventSerializer(many=True)
