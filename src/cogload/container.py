"""
Dependency container wiring the store, synchronization layer, coordinators
and control surfaces from one configuration.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

import structlog

from cogload.config.config import Config, load_config
from cogload.control import ControlSurface
from cogload.metrics.extractor import TreeMetricsExtractor
from cogload.metrics.scoring import LoadScoringModel
from cogload.protocols import HostEnvironment, KeyValueStore, ManualTrigger
from cogload.sync.layer import SynchronizationLayer
from cogload.sync.store import SQLiteStore, create_store
from cogload.trigger.coordinator import RecomputeCoordinator
from cogload.trigger.debounce import Scheduler


class DependencyContainer:
    """
    Owns the shared store for a session and builds the components around it.

    Every coordinator and control surface created here shares one store
    instance, so their writes reach each other's subscribers.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[Config] = None,
        store: Optional[KeyValueStore] = None,
    ) -> None:
        self.config_path = config_path
        self.config = config
        self.store = store
        self.sync: Optional[SynchronizationLayer] = None
        self.coordinators: List[RecomputeCoordinator] = []
        self.controls: List[ControlSurface] = []
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.is_running = False

    async def initialize(self) -> None:
        if self.config is None:
            self.config = load_config(self.config_path)
        if self.store is None:
            self.store = await create_store(self.config.store)
        self.sync = SynchronizationLayer(self.store, self.config.store.keys)
        self.is_running = True
        self.logger.info(
            "Dependency container initialized",
            store=self.config.store.backend,
            config_path=str(self.config_path) if self.config_path else "default",
        )

    def _require_sync(self) -> SynchronizationLayer:
        if self.sync is None or self.config is None:
            raise RuntimeError("Container must be initialized before creating components")
        return self.sync

    def create_coordinator(self, host: HostEnvironment, scheduler: Optional[Scheduler] = None) -> RecomputeCoordinator:
        sync = self._require_sync()
        assert self.config is not None
        coordinator = RecomputeCoordinator(
            host,
            sync,
            extractor=TreeMetricsExtractor(self.config.metrics.region_min_size),
            scorer=LoadScoringModel(self.config.metrics),
            config=self.config.trigger,
            scheduler=scheduler,
        )
        self.coordinators.append(coordinator)
        return coordinator

    def create_control_surface(self, trigger: ManualTrigger) -> ControlSurface:
        sync = self._require_sync()
        assert self.config is not None
        control = ControlSurface(sync, trigger, self.config.trigger)
        self.controls.append(control)
        return control

    async def shutdown(self) -> None:
        """Stop every coordinator, detach control surfaces and close the store."""
        for control in self.controls:
            control.close()
        for coordinator in self.coordinators:
            if coordinator.started:
                await coordinator.stop()
        if isinstance(self.store, SQLiteStore):
            await self.store.close()
        self.is_running = False
        self.logger.info("Dependency container shut down")

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[DependencyContainer]:
        await self.initialize()
        try:
            yield self
        finally:
            await self.shutdown()
