from orchestrator.src.models.db import User, Stand, StepState, Product
from api.src.models.stand import (
    StandCreate,
    StandResponse,
    UserResponse,
    NotificationResponse,
)

__all__ = [
    "User",
    "Stand",
    "StepState",
    "Product",
    "StandCreate",
    "StandResponse",
    "UserResponse",
    "NotificationResponse",
]
