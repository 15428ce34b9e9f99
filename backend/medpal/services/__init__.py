"""Service layer exports."""
from medpal.services import (
    adherence_service,
    auth_service,
    lifecycle_service,
    materializer_service,
    medication_service,
    user_service,
)

__all__ = [
    "adherence_service",
    "auth_service",
    "lifecycle_service",
    "materializer_service",
    "medication_service",
    "user_service",
]
