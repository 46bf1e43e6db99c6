from typing import Protocol, Union
import logging
import threading

from flakeid.core.commonExceptions import ConfigurationError
from flakeid.core.config import AppEnvironmentSetup as appset
from flakeid.idgen.snowflakeGen import AsyncSnowflakeGenerator, SnowflakeGenerator
from flakeid.models.models import Identity

logger = logging.getLogger("flakeid.identity")


class IdentityProvider(Protocol):
    def currentDatacenterId(self) -> int:
        ...

    def currentMachineId(self) -> int:
        ...


class StaticIdentityProvider:
    def __init__(self, datacenter_id: int, machine_id: int):
        self._datacenter_id = datacenter_id
        self._machine_id = machine_id

    def currentDatacenterId(self) -> int:
        return self._datacenter_id

    def currentMachineId(self) -> int:
        return self._machine_id


class EnvIdentityProvider:
    """Reads FLAKEID_DATACENTER_ID / FLAKEID_MACHINE_ID (a `.env` file is honoured)."""

    def __init__(self, datacenter_id: str = None, machine_id: str = None):
        self._raw_datacenter_id = datacenter_id if datacenter_id is not None else appset.DATACENTER_ID
        self._raw_machine_id = machine_id if machine_id is not None else appset.MACHINE_ID

    @staticmethod
    def _parse(name: str, raw) -> int:
        if raw is None or str(raw).strip() == "":
            raise ConfigurationError(f"{name} is not set")
        try:
            return int(str(raw).strip())
        except ValueError as err:
            raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from err

    def currentDatacenterId(self) -> int:
        return self._parse("FLAKEID_DATACENTER_ID", self._raw_datacenter_id)

    def currentMachineId(self) -> int:
        return self._parse("FLAKEID_MACHINE_ID", self._raw_machine_id)


_registry_lock = threading.Lock()
_generators: dict[Identity, Union[SnowflakeGenerator, AsyncSnowflakeGenerator]] = {}


def _lookup(kind, provider: IdentityProvider):
    provider = provider or EnvIdentityProvider()
    identity = Identity.create(provider.currentDatacenterId(), provider.currentMachineId())
    with _registry_lock:
        generator = _generators.get(identity)
        if generator is None:
            generator = kind(identity.datacenter_id, identity.machine_id)
            _generators[identity] = generator
            logger.info(
                "Registered %s for datacenter=%s machine=%s",
                kind.__name__,
                identity.datacenter_id,
                identity.machine_id,
            )
        elif type(generator) is not kind:
            # two generation states for one identity would hand out the same ids
            raise ConfigurationError(
                f"datacenter={identity.datacenter_id} machine={identity.machine_id} is already "
                f"served by a {type(generator).__name__}, cannot register a {kind.__name__}"
            )
        return generator


def get_generator(provider: IdentityProvider = None) -> SnowflakeGenerator:
    """
    Returns the process wide generator for the provider's identity.

    Ids are only unique while a single generation state exists per identity, so
    repeated lookups for the same pair hand back the same instance. The registry
    is shared with `get_async_generator`: an identity already taken by the async
    generator raises `ConfigurationError` here, and the other way round.
    """
    return _lookup(SnowflakeGenerator, provider)


def get_async_generator(provider: IdentityProvider = None) -> AsyncSnowflakeGenerator:
    return _lookup(AsyncSnowflakeGenerator, provider)


def reset_generators():
    with _registry_lock:
        _generators.clear()
