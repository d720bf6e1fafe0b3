# borrow_indexer/cli/context.py

import logging
from typing import Optional

from ..core.config import IndexerConfig
from ..core.logging import IndexerLogger, log_with_context
from ..factory import create_pipeline, create_store
from ..pipeline.orchestrator import PipelineOrchestrator
from ..database.store import SqlBatchStore


class CLIContext:
    """Loads the configuration once and builds components on first use."""

    def __init__(self, config_path: str):
        self.config_path = config_path
        self.logger = IndexerLogger.get_logger('cli.context')
        self._config: Optional[IndexerConfig] = None
        self._store: Optional[SqlBatchStore] = None
        self._pipeline: Optional[PipelineOrchestrator] = None

    @property
    def config(self) -> IndexerConfig:
        if self._config is None:
            self._config = IndexerConfig.from_file(self.config_path)
        return self._config

    @property
    def store(self) -> SqlBatchStore:
        if self._store is None:
            self._store = create_store(self.config)
        return self._store

    @property
    def pipeline(self) -> PipelineOrchestrator:
        if self._pipeline is None:
            self._pipeline = create_pipeline(self.config, store=self.store)
        return self._pipeline

    def shutdown(self) -> None:
        if self._store is not None:
            self._store.db.shutdown()
            log_with_context(self.logger, logging.DEBUG, "CLI context shut down")
