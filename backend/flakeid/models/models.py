from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError
from datetime import datetime, timezone
from flakeid.core.commonExceptions import ConfigurationError


class bits:
    """
    64-bit layout (big-endian):
        1 bit   = unused, keeps ids positive as signed int64
        41 bits = milliseconds since EPOCH
        5 bits  = datacenter id (0-31)
        5 bits  = machine id    (0-31)
        12 bits = per-ms sequence (0-4095)
    """
    EPOCH = 1704067200000  # 2024-01-01T00:00:00Z

    TIMESTAMP_BITS = 41
    DATACENTER_ID_BITS = 5
    MACHINE_ID_BITS = 5
    SEQUENCE_BITS = 12

    MAX_TIMESTAMP = (1 << TIMESTAMP_BITS) - 1
    MAX_DATACENTER_ID = (1 << DATACENTER_ID_BITS) - 1
    MAX_MACHINE_ID = (1 << MACHINE_ID_BITS) - 1
    SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1

    MACHINE_ID_SHIFT = SEQUENCE_BITS
    DATACENTER_ID_SHIFT = SEQUENCE_BITS + MACHINE_ID_BITS
    TIMESTAMP_SHIFT = SEQUENCE_BITS + MACHINE_ID_BITS + DATACENTER_ID_BITS

    MAX_ID = (1 << 63) - 1


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    datacenter_id: StrictInt = Field(ge=0, le=bits.MAX_DATACENTER_ID)
    machine_id: StrictInt = Field(ge=0, le=bits.MAX_MACHINE_ID)

    @classmethod
    def create(cls, datacenter_id: int, machine_id: int) -> "Identity":
        """Builds an identity, raising `ConfigurationError` instead of pydantic's `ValidationError`."""
        try:
            return cls(datacenter_id=datacenter_id, machine_id=machine_id)
        except ValidationError as err:
            fields = ", ".join(str(e["loc"][0]) for e in err.errors())
            raise ConfigurationError(
                f"Invalid {fields}: datacenter_id must be 0-{bits.MAX_DATACENTER_ID} and "
                f"machine_id 0-{bits.MAX_MACHINE_ID}, got ({datacenter_id!r}, {machine_id!r})"
            ) from err


class SnowflakeParts(BaseModel):
    """Decoded fields of a snowflake id. `timestamp_ms` is relative to `bits.EPOCH`."""
    model_config = ConfigDict(frozen=True)

    timestamp_ms: int = Field(ge=0, le=bits.MAX_TIMESTAMP)
    datacenter_id: int = Field(ge=0, le=bits.MAX_DATACENTER_ID)
    machine_id: int = Field(ge=0, le=bits.MAX_MACHINE_ID)
    sequence: int = Field(ge=0, le=bits.SEQUENCE_MASK)

    @property
    def unix_ms(self) -> int:
        return self.timestamp_ms + bits.EPOCH

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.unix_ms / 1000, tz=timezone.utc)

    @property
    def identity(self) -> Identity:
        return Identity(datacenter_id=self.datacenter_id, machine_id=self.machine_id)

    def to_int(self) -> int:
        return (
            (self.timestamp_ms << bits.TIMESTAMP_SHIFT)
            | (self.datacenter_id << bits.DATACENTER_ID_SHIFT)
            | (self.machine_id << bits.MACHINE_ID_SHIFT)
            | self.sequence
        )
