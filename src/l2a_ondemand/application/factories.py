"""Factory wiring the transformer and its collaborators."""

from typing import Optional

import requests

from l2a_ondemand.application.download_manager import DownloadManager
from l2a_ondemand.application.transformer import L2ATransformer
from l2a_ondemand.domain.exceptions import ConfigurationError, TransformationError, WebProcessError
from l2a_ondemand.infrastructure.config.loader import TransformerConfig
from l2a_ondemand.infrastructure.io.archive_fetcher import ResultArchiveFetcher
from l2a_ondemand.infrastructure.wps.client import WebProcessClient
from l2a_ondemand.infrastructure.wps.parameters import L2A_PROCESS, DataInputsFormatter
from l2a_ondemand.shared.logging import get_logger
from l2a_ondemand.shared.metrics import MetricsCollector

logger = get_logger(__name__)


class TransformerFactory:
    """
    Builds a ready-to-use transformer from configuration.

    All components share one HTTP session and one metrics collector.
    """

    def __init__(
        self,
        config: TransformerConfig,
        session: Optional[requests.Session] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config
        self.session = session or requests.Session()
        self.metrics = metrics or MetricsCollector()
        self._logger = get_logger(__name__)

    def create_client(self) -> WebProcessClient:
        return WebProcessClient(
            service_url=self.config.service_url,
            formatter=DataInputsFormatter(self.config),
            session=self.session,
            metrics=self.metrics,
        )

    def create_download_manager(self) -> DownloadManager:
        fetcher = ResultArchiveFetcher(self.config.tmp_dir, session=self.session)
        return DownloadManager(fetcher, max_workers=self.config.max_downloads, metrics=self.metrics)

    def prepare_scratch_directory(self) -> None:
        """
        Create the directory receiving downloaded results.

        Raises:
            ConfigurationError: If the directory cannot be created
        """
        tmp_dir = self.config.tmp_dir
        try:
            tmp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create scratch directory {tmp_dir}: {e}") from e
        if not tmp_dir.is_dir():
            raise ConfigurationError(f"Scratch directory {tmp_dir} is not a directory")

    def create_transformer(self, load_capabilities: bool = True) -> L2ATransformer:
        """
        Create the transformer.

        Args:
            load_capabilities: Contact the service right away to check it is reachable

        Raises:
            ConfigurationError: If the scratch directory cannot be used
            TransformationError: If the service is not reachable
        """
        self.prepare_scratch_directory()
        client = self.create_client()

        if load_capabilities:
            try:
                descriptor = client.load_capabilities()
            except WebProcessError as e:
                raise TransformationError(f"Service not reachable: {e}") from e
            if not descriptor.offers(L2A_PROCESS):
                self._logger.warning(
                    f"Service does not advertise process '{L2A_PROCESS}' "
                    f"(offers: {', '.join(descriptor.processes) or 'none'})"
                )

        return L2ATransformer(self.config, client, self.create_download_manager())
