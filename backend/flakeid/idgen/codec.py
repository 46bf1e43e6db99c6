from flakeid.models.models import bits, SnowflakeParts


def _check_range(name: str, value: int, upper: int):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, not {type(value).__name__}")
    if not 0 <= value <= upper:
        raise ValueError(f"{name} must be 0-{upper}, got {value}")


def encode(timestamp_ms: int, datacenter_id: int, machine_id: int, sequence: int) -> int:
    """
    Packs the four fields into one 64-bit id.

    `timestamp_ms` is the delta from `bits.EPOCH`, not a unix timestamp.
    """
    _check_range("timestamp_ms", timestamp_ms, bits.MAX_TIMESTAMP)
    _check_range("datacenter_id", datacenter_id, bits.MAX_DATACENTER_ID)
    _check_range("machine_id", machine_id, bits.MAX_MACHINE_ID)
    _check_range("sequence", sequence, bits.SEQUENCE_MASK)
    return (
        (timestamp_ms << bits.TIMESTAMP_SHIFT)
        | (datacenter_id << bits.DATACENTER_ID_SHIFT)
        | (machine_id << bits.MACHINE_ID_SHIFT)
        | sequence
    )


def decode(snowflake: int) -> SnowflakeParts:
    # bson Int64 subclasses int and passes the check as is
    _check_range("snowflake", snowflake, bits.MAX_ID)
    snowflake = int(snowflake)
    return SnowflakeParts(
        timestamp_ms=snowflake >> bits.TIMESTAMP_SHIFT,
        datacenter_id=(snowflake >> bits.DATACENTER_ID_SHIFT) & bits.MAX_DATACENTER_ID,
        machine_id=(snowflake >> bits.MACHINE_ID_SHIFT) & bits.MAX_MACHINE_ID,
        sequence=snowflake & bits.SEQUENCE_MASK,
    )
