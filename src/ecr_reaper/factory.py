"""Component factory."""

from __future__ import annotations

import logging

import structlog
from structlog.stdlib import BoundLogger

from .config import Config
from .services.reaper import Reaper
from .storage.ecr import EcrClient
from .storage.preloaded import PreloadedClient
from .storage.registry import ContainerRegistryClient


class Factory:
    """Build reaper components.

    Parameters
    ----------
    config
        Reaper configuration.
    logger
        Logger to use for messages.  If not given, one is created after
        logging has been configured for the debug setting in ``config``.
    """

    def __init__(
        self, config: Config, logger: BoundLogger | None = None
    ) -> None:
        self._config = config
        log_level = logging.DEBUG if config.debug else logging.INFO
        structlog.configure(
            wrapper_class=structlog.make_filtering_bound_logger(log_level)
        )
        self._logger = logger or structlog.get_logger(__name__)

    def create_registry_client(self) -> ContainerRegistryClient:
        """Create the registry client.

        Preloaded contents are used if the configuration names an input
        file; otherwise the client talks to ECR.
        """
        if self._config.input_file:
            self._logger.debug(
                "Using preloaded registry contents",
                input_file=str(self._config.input_file),
            )
            return PreloadedClient(
                self._config.registry_id, input_file=self._config.input_file
            )
        return EcrClient(self._config.registry_id, region=self._config.region)

    def create_reaper(
        self, storage: ContainerRegistryClient | None = None
    ) -> Reaper:
        if storage is None:
            storage = self.create_registry_client()
        return Reaper(self._config, storage)
