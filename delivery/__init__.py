"""Delivery scheduling and the sink contract."""

from delivery.scheduler import (
    DeliveryCycleSummary,
    DeliveryPlan,
    DistributionScheduler,
    UserOutcome,
    run_delivery_cycle,
)
from delivery.sink import DeliverySink, LoggingDeliverySink

__all__ = [
    "DeliveryCycleSummary",
    "DeliveryPlan",
    "DeliverySink",
    "DistributionScheduler",
    "LoggingDeliverySink",
    "UserOutcome",
    "run_delivery_cycle",
]
