from datetime import date, datetime, time

from django.utils import timezone


def aware(d: date, hour: int = 10) -> datetime:
    return timezone.make_aware(datetime.combine(d, time(hour, 0)))
