# borrow_indexer/types/configs/config.py

from typing import Optional

from msgspec import Struct


class DatabaseConfig(Struct):
    url: str = "sqlite:///borrow_indexer.db"
    pool_size: int = 5
    max_overflow: int = 10


class RpcConfig(Struct):
    endpoint_url: str
    timeout: int = 30
    max_retries: int = 5
    backoff_base: float = 1.0
    max_logs_range: int = 2000


class PipelineSettings(Struct):
    max_batch_size: int = 500
    poll_interval: float = 15.0
    retry_backoff: float = 5.0
    max_batch_retries: int = 5
    extraction_workers: int = 4


class PathsConfig(Struct):
    abi_dir: str = "abis"
    log_dir: Optional[str] = None
