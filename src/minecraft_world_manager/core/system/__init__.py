from .service import (
    ServiceController,
    SystemdServiceController,
    ServiceState,
    ServiceActionResult,
)

__all__ = [
    "ServiceController",
    "SystemdServiceController",
    "ServiceState",
    "ServiceActionResult",
]
