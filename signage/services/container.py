from __future__ import annotations

import logging
from dataclasses import dataclass

from infrastructure.database.repositories.content import SQLiteContentCatalog
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler
from signage.config import AppConfig
from signage.domain.devices import DeviceRegistry
from signage.services.scheduling_service import ContentSchedulingService
from signage.utils.time import Clock
from signage.workers.unified_scheduler import UnifiedScheduler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    catalog: SQLiteContentCatalog
    registry: DeviceRegistry
    scheduling_service: ContentSchedulingService
    scheduler: UnifiedScheduler

    @classmethod
    def build(
        cls,
        config: AppConfig,
        *,
        clock: Clock | None = None,
        start_scheduler: bool = True,
    ) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            clock: Time source for the scheduling service (wall clock by default)
            start_scheduler: Whether to configure and start the background sweep
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.init()

        catalog = SQLiteContentCatalog(database)
        registry = config.device_registry()
        scheduling_service = ContentSchedulingService(catalog, clock=clock, registry=registry)
        scheduler = UnifiedScheduler(
            check_interval_seconds=config.scheduler_check_interval,
            max_workers=config.scheduler_max_workers,
        )

        container = cls(
            config=config,
            database=database,
            catalog=catalog,
            registry=registry,
            scheduling_service=scheduling_service,
            scheduler=scheduler,
        )

        if start_scheduler:
            from signage.workers.scheduled_tasks import configure_scheduler

            try:
                configure_scheduler(container.scheduler, container)
                logger.info("UnifiedScheduler initialized and started")
            except Exception as e:
                database.close_db()
                raise RuntimeError("Failed to initialize UnifiedScheduler") from e

        logger.info("ServiceContainer built successfully.")
        return container

    def shutdown(self) -> None:
        """Release resources before process exit."""
        try:
            self.scheduler.shutdown()
        except RuntimeError as e:
            logger.warning(f"Failed to stop UnifiedScheduler: {e}")

        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
