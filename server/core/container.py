"""Dependency injection container for the caption service."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from core.cache import WorkingCache
from services.ai import AIService
from services.captions import CaptionGenerator
from services.regeneration import RegenerationController, RegenerationOptions
from services.scheduler import CycleScheduler
from services.snapshot import SnapshotWriter


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    options = providers.Singleton(
        RegenerationOptions.from_settings,
        settings=settings
    )

    # Record store handle, opened and closed by the bootstrap lifespan
    database = providers.Singleton(
        Database,
        settings=settings
    )

    cache = providers.Singleton(
        WorkingCache,
        ttl=options.provided.cache_ttl,
        max_entries=settings.provided.cache_max_entries
    )

    # Services
    ai_service = providers.Singleton(
        AIService,
        settings=settings
    )

    caption_generator = providers.Singleton(
        CaptionGenerator,
        complete=ai_service.provided.complete,
        options=options
    )

    snapshot_writer = providers.Factory(
        SnapshotWriter,
        database=database,
        path=settings.provided.snapshot_path
    )

    controller = providers.Singleton(
        RegenerationController,
        store=database,
        cache=cache,
        generator=caption_generator,
        options=options
    )

    scheduler = providers.Singleton(
        CycleScheduler,
        controller=controller,
        interval_seconds=settings.provided.regen_interval_seconds
    )


# Global container instance
container = Container()
