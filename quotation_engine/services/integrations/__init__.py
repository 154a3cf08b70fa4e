"""External collaborator clients."""

from quotation_engine.services.integrations.work_order_client import (
    HttpWorkOrderGateway,
    WorkOrderError,
    WorkOrderGateway,
    WorkOrderParams,
)

__all__ = [
    "HttpWorkOrderGateway",
    "WorkOrderError",
    "WorkOrderGateway",
    "WorkOrderParams",
]
