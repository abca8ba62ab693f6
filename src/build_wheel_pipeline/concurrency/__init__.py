from .singleflight import (
    ProcessKeyLock,
    SingleFlightRegistry,
    SingleFlightScheduler,
    owner_record,
)

__all__ = [
    "ProcessKeyLock",
    "SingleFlightRegistry",
    "SingleFlightScheduler",
    "owner_record",
]
