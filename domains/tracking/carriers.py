from django.db import models


class Carrier(models.TextChoices):
    """지원 택배사(닫힌 집합). 값은 TrackingID 의 왼쪽 세그먼트."""

    SFEX = "sfex", "SF Express"
    FDX = "fdx", "FedEx"
