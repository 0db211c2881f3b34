from enum import IntEnum

from pydantic import BaseModel

# Default TTL, in seconds, for records we advertise.
DEFAULT_TTL = 120


class BasePydanticModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "frozen": True,
    }

class RecordKind(IntEnum):
    """DNS record type codes understood by the discovery engine."""
    A = 1
    PTR = 12
    TXT = 16
    AAAA = 28
    SRV = 33
    ANY = 255
