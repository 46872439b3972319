"""
Statistics Aggregator

Reduces a set of catalog objects into status buckets for the "currently in
orbit" summary. Missing or unrecognized status values count as "other", so the
four buckets always sum to the input size.
"""

from collections import Counter
from typing import Iterable

from orbit_navigator.models import CatalogObject, StatusCounts

STATUS_BUCKETS = ("active", "inactive", "debris")


def status_bucket(status) -> str:
    """Bucket name for a status value."""
    if isinstance(status, str) and status.lower() in STATUS_BUCKETS:
        return status.lower()
    return "other"


def aggregate(objects: Iterable[CatalogObject]) -> StatusCounts:
    """Count objects into active / inactive / debris / other."""
    counts = Counter(status_bucket(obj.status) for obj in objects)
    return StatusCounts(
        active=counts["active"],
        inactive=counts["inactive"],
        debris=counts["debris"],
        other=counts["other"],
    )
