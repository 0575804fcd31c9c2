import json
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import settings
from app.core.db import make_engine, make_sessionmaker
from app.platform.ports.catalog import CatalogSourcePort
from app.platform.ports.event_bus import EventBusPort
from app.platform.adapters.bus_noop import NoopEventBus
from app.platform.adapters.bus_redis import RedisEventBus
from app.modules.appointments.repository import InMemoryAppointmentRepository, SqlAppointmentRepository
from app.modules.appointments.service import AppointmentService
from app.modules.appointments.store import AppointmentStore
from app.modules.directory.catalogs import RemoteCatalogSource, StaticCatalogSource
from app.modules.directory.service import DoctorDirectory
from app.modules.events.publisher import EventPublisher
from app.modules.patients.remote import RemotePatientSource
from app.modules.patients.repository import InMemoryPatientRepository, SqlPatientRepository
from app.modules.patients.service import PatientService
from app.modules.tokens.issuer import TokenIssuer
from app.modules.tokens.numbering import TokenSequencer


def _static_catalogs(path: str | None) -> StaticCatalogSource:
    if not path:
        return StaticCatalogSource()
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return StaticCatalogSource(staff=data.get("staff"), roles=data.get("roles"), departments=data.get("departments"))


class ProviderRegistry:
    """One instance of each collaborator per process; the store is shared by every request."""
    _engine: AsyncEngine | None = None
    _event_bus: EventBusPort | None = None
    _catalogs: CatalogSourcePort | None = None
    _patients: PatientService | None = None
    _remote_patients: RemotePatientSource | None = None
    _directory: DoctorDirectory | None = None
    _store: AppointmentStore | None = None
    _sequencer: TokenSequencer | None = None
    _appointments: AppointmentService | None = None
    _tokens: TokenIssuer | None = None

    @classmethod
    def engine(cls) -> AsyncEngine:
        if cls._engine is None:
            cls._engine = make_engine()
        return cls._engine

    @classmethod
    def event_bus(cls) -> EventBusPort:
        if cls._event_bus is None:
            prov = (settings.EVENT_BUS_PROVIDER or "noop").lower()
            if prov == "redis":
                cls._event_bus = RedisEventBus()
            else:
                cls._event_bus = NoopEventBus()
        return cls._event_bus

    @classmethod
    def catalogs(cls) -> CatalogSourcePort:
        if cls._catalogs is None:
            if settings.CATALOG_PROVIDER == "http":
                cls._catalogs = RemoteCatalogSource()
            else:
                cls._catalogs = _static_catalogs(settings.CATALOG_FILE)
        return cls._catalogs

    @classmethod
    def patients(cls) -> PatientService:
        if cls._patients is None:
            if settings.STORE_PROVIDER == "sql":
                repo = SqlPatientRepository(make_sessionmaker(cls.engine()))
            else:
                repo = InMemoryPatientRepository()
            cls._patients = PatientService(repo)
        return cls._patients

    @classmethod
    def remote_patients(cls) -> RemotePatientSource:
        if cls._remote_patients is None:
            cls._remote_patients = RemotePatientSource()
        return cls._remote_patients

    @classmethod
    def directory(cls) -> DoctorDirectory:
        if cls._directory is None:
            cls._directory = DoctorDirectory(cls.catalogs())
        return cls._directory

    @classmethod
    def store(cls) -> AppointmentStore:
        if cls._store is None:
            if settings.STORE_PROVIDER == "sql":
                repo = SqlAppointmentRepository(make_sessionmaker(cls.engine()))
            else:
                repo = InMemoryAppointmentRepository()
            cls._store = AppointmentStore(repo)
        return cls._store

    @classmethod
    def sequencer(cls) -> TokenSequencer:
        if cls._sequencer is None:
            cls._sequencer = TokenSequencer()
        return cls._sequencer

    @classmethod
    def appointments(cls) -> AppointmentService:
        if cls._appointments is None:
            cls._appointments = AppointmentService(
                cls.store(), cls.patients(), cls.directory(),
                events=EventPublisher(cls.event_bus()), sequencer=cls.sequencer(),
            )
        return cls._appointments

    @classmethod
    def tokens(cls) -> TokenIssuer:
        if cls._tokens is None:
            cls._tokens = TokenIssuer(
                cls.store(), cls.patients(), cls.directory(),
                sequencer=cls.sequencer(), events=EventPublisher(cls.event_bus()),
            )
        return cls._tokens

    @classmethod
    async def close(cls):
        for resource in (cls._event_bus, cls._catalogs, cls._remote_patients):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()
        if cls._engine is not None:
            await cls._engine.dispose()
        cls.reset()

    @classmethod
    def reset(cls):
        cls._engine = None
        cls._event_bus = None
        cls._catalogs = None
        cls._patients = None
        cls._remote_patients = None
        cls._directory = None
        cls._store = None
        cls._sequencer = None
        cls._appointments = None
        cls._tokens = None

registry = ProviderRegistry()
