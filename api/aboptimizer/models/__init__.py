from aboptimizer.models.ab_event import ABEvent, ABEventType
from aboptimizer.models.ab_test import ABTest, ABTestStatus
from aboptimizer.models.base import Base

__all__ = [
    "Base",
    "ABEvent",
    "ABEventType",
    "ABTest",
    "ABTestStatus",
]
