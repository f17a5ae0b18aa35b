from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from rackpower.config import AppConfig
from rackpower.domain.automations import Automation
from rackpower.domain.exceptions import ConfigurationError
from rackpower.hardware.sockets import ShellyClient, SocketRegistry
from rackpower.infrastructure.logging import AuditLogger
from rackpower.services.hardware import AutomationService, DeviceControlService
from rackpower.utils.cache import StatusCache
from rackpower.workers.unified_scheduler import UnifiedScheduler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core services."""

    config: AppConfig
    registry: SocketRegistry
    transport: ShellyClient
    status_cache: StatusCache
    audit_logger: AuditLogger
    device_control: DeviceControlService
    scheduler: UnifiedScheduler
    automation_service: AutomationService

    @classmethod
    def build(cls, config: AppConfig, *, start_scheduler: bool = True) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            start_scheduler: Whether to start the scheduler loop thread
        """
        logger.info("Building ServiceContainer...")

        registry = SocketRegistry.from_file(config.registry_path)
        transport = ShellyClient(timeout_seconds=config.http_timeout_seconds)
        status_cache = StatusCache()
        audit_logger = AuditLogger(config.audit_log_path, level=config.log_level)
        device_control = DeviceControlService(registry, transport, status_cache)
        scheduler = UnifiedScheduler(
            check_interval_seconds=config.scheduler_check_interval,
            max_history=config.scheduler_max_history,
            max_workers=config.scheduler_max_workers,
        )
        automation_service = AutomationService(device_control, scheduler, audit_logger=audit_logger)

        container = cls(
            config=config,
            registry=registry,
            transport=transport,
            status_cache=status_cache,
            audit_logger=audit_logger,
            device_control=device_control,
            scheduler=scheduler,
            automation_service=automation_service,
        )

        if start_scheduler:
            scheduler.start()

        logger.info("ServiceContainer built successfully.")
        return container

    def load_automations(self, path: str | Path) -> list[Automation]:
        """
        Create every automation defined in a JSON list file.

        Raises:
            ConfigurationError: File missing or not a JSON list
            ValidationError, NotFoundError: From the first invalid definition
        """
        path = Path(path)
        try:
            definitions = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigurationError(f"Automations file not found: {path}", detail={"path": str(path)}) from None
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Automations file is not valid JSON: {e}", detail={"path": str(path)}) from None

        if not isinstance(definitions, list):
            raise ConfigurationError("Automations file must contain a JSON list", detail={"path": str(path)})

        created = [self.automation_service.create(definition, actor="seed") for definition in definitions]
        logger.info(f"Loaded {len(created)} automations from {path}")
        return created

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        try:
            self.automation_service.shutdown()
        except Exception as e:
            logger.warning(f"Failed to cancel automations: {e}")

        # Stop unified scheduler
        try:
            self.scheduler.shutdown()
            logger.info("✓ UnifiedScheduler stopped")
        except Exception as e:
            logger.warning(f"Failed to stop UnifiedScheduler: {e}")

        self.transport.close()
        self.audit_logger.close()
        logger.info("ServiceContainer shut down.")
