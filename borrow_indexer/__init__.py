# borrow_indexer/__init__.py

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from .core.config import IndexerConfig
from .core.logging import IndexerLogger, log_with_context
from .factory import create_pipeline
from .pipeline.orchestrator import PipelineOrchestrator

__version__ = "0.1.0"


def create_indexer(config_path: Optional[str] = None,
                   env_vars: Optional[Mapping[str, str]] = None,
                   **collaborators) -> PipelineOrchestrator:
    """
    Build a ready-to-run pipeline from a config file.

    ``collaborators`` are passed to ``create_pipeline`` (log_client, store,
    lookups) and replace the ones built from the configuration.
    """
    env = env_vars if env_vars is not None else os.environ
    _configure_logging_early(env)

    logger = IndexerLogger.get_logger('core.init')

    config_path = config_path or env.get("BORROW_INDEXER_CONFIG")
    if not config_path:
        logger.error("No config path provided and BORROW_INDEXER_CONFIG not set")
        raise ValueError("Must provide config_path or set BORROW_INDEXER_CONFIG environment variable")

    config = IndexerConfig.from_file(config_path, env_vars)
    pipeline = create_pipeline(config, **collaborators)

    log_with_context(logger, logging.INFO, "Indexer created successfully", name=config.name)
    return pipeline


def _configure_logging_early(env: Mapping[str, str]) -> None:
    log_dir_env = env.get("BORROW_INDEXER_LOG_DIR")
    log_dir = Path(log_dir_env) if log_dir_env else Path.cwd() / "logs"

    IndexerLogger.configure(
        log_dir=log_dir,
        log_level=env.get("BORROW_INDEXER_LOG_LEVEL", "INFO"),
        console_enabled=env.get("BORROW_INDEXER_LOG_CONSOLE", "true").lower() == "true",
        file_enabled=env.get("BORROW_INDEXER_LOG_FILE", "false").lower() == "true",
        structured_format=env.get("BORROW_INDEXER_LOG_STRUCTURED", "false").lower() == "true",
    )


__all__ = [
    "IndexerConfig",
    "PipelineOrchestrator",
    "create_indexer",
    "create_pipeline",
    "__version__",
]
