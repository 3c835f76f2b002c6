from __future__ import annotations

import uuid

from django.db import models

from .carriers import Carrier
from .status_map import StatusCode


class IngestionMode(models.TextChoices):
    PULL = "pull", "Pull"
    PUSH = "push", "Push"


class TrackedEntity(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # 외부 노출용 불투명 식별자 (eg1_...)
    uuid = models.CharField(max_length=64, unique=True)
    tracking_id = models.CharField(max_length=80, unique=True)
    carrier = models.CharField(max_length=10, choices=Carrier.choices)
    tracking_num = models.CharField(max_length=64)

    type = models.CharField(max_length=20, default="waybill")
    ingestion_mode = models.CharField(
        max_length=10, choices=IngestionMode.choices, default=IngestionMode.PULL
    )
    completed = models.BooleanField(default=False)
    creation_time = models.CharField(max_length=40, blank=True)

    params = models.JSONField(default=dict, blank=True)
    extra = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["completed", "ingestion_mode"], name="tracking_in_processing_idx"),
            models.Index(fields=["carrier", "tracking_num"], name="tracking_carrier_num_idx"),
        ]

    def __str__(self) -> str:
        return self.tracking_id


class TrackedEvent(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    entity = models.ForeignKey(
        TrackedEntity, on_delete=models.CASCADE, related_name="events"
    )
    event_id = models.CharField(max_length=160)
    operator_code = models.CharField(max_length=10)
    tracking_num = models.CharField(max_length=64)

    status = models.PositiveIntegerField(choices=StatusCode.choices)
    what = models.CharField(max_length=120, blank=True)
    # 원천 시간대 오프셋을 보존한 ISO8601 문자열, 정렬은 occurred_at 으로
    when = models.CharField(max_length=40, blank=True)
    occurred_at = models.DateTimeField(null=True, blank=True)
    where = models.CharField(max_length=200, blank=True)
    whom = models.CharField(max_length=80, blank=True)
    notes = models.TextField(null=True, blank=True)
    data_provider = models.CharField(max_length=80, blank=True)

    exception_code = models.PositiveIntegerField(null=True, blank=True)
    exception_desc = models.CharField(max_length=120, null=True, blank=True)

    extra = models.JSONField(default=dict, blank=True)
    source_data = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["entity", "occurred_at"], name="tracking_event_entity_at_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=("entity", "event_id"), name="uq_entity_event_id")
        ]

    def __str__(self) -> str:
        return f"{self.entity_id}@{self.when} {self.status}"
