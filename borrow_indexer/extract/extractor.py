# borrow_indexer/extract/extractor.py

import time
from typing import Callable, Iterator, List, Optional

from ..clients.interfaces import LogClientInterface
from ..clients.rpc_client import LogRangeTooLargeError
from ..core.exceptions import BatchCancelled, TransientExtractionError
from ..core.logging import LoggingMixin
from ..types import (
    BlockRange,
    EvmHash,
    EvmLog,
    HexStr,
    RawLogRecord,
    Source,
    SourceKind,
    hex_to_int,
    to_evm_address,
    to_hex,
)
from ..types.configs.config import RpcConfig


class RawExtractor(LoggingMixin):
    """
    Turns a source and a block range into raw log records.

    The three policies differ only in the filter sent to the node and in the
    exclusion check applied afterwards. Pages that fail transiently are
    retried with exponential backoff; once retries are exhausted the error
    propagates and the caller discards the whole range.
    """

    def __init__(self,
                 client: LogClientInterface,
                 config: RpcConfig,
                 sleep: Callable[[float], None] = time.sleep,
                 is_cancelled: Optional[Callable[[], bool]] = None):
        self.client = client
        self.max_retries = config.max_retries
        self.backoff_base = config.backoff_base
        self.max_logs_range = config.max_logs_range
        self._sleep = sleep
        self._is_cancelled = is_cancelled or (lambda: False)

    def extract(self, source: Source, block_range: BlockRange) -> Iterator[RawLogRecord]:
        address, topics = self._filter_for(source)

        for page in block_range.split(self.max_logs_range):
            logs = self._fetch_page(source, address, topics, page)
            records = []
            for log in logs:
                record = self._to_record(source, log)
                if record is not None:
                    records.append(record)
            records.sort(key=lambda r: r.ordering_key)
            yield from records

    def extract_all(self, source: Source, block_range: BlockRange) -> List[RawLogRecord]:
        return list(self.extract(source, block_range))

    def _filter_for(self, source: Source):
        if source.kind is SourceKind.ADDRESS_LOG:
            return source.address, None
        return None, list(source.topics)

    def _fetch_page(self, source: Source, address, topics, page: BlockRange) -> List[EvmLog]:
        attempt = 0
        while True:
            if self._is_cancelled():
                raise BatchCancelled(f"Extraction of {source.id} cancelled at {page}")
            try:
                return self.client.get_logs(address, topics, page.start, page.end)
            except LogRangeTooLargeError:
                if len(page) == 1:
                    raise
                self.log_debug("Log range too large, splitting",
                               source_id=source.id, from_block=page.start, to_block=page.end)
                middle = page.start + len(page) // 2 - 1
                return (self._fetch_page(source, address, topics, BlockRange(page.start, middle))
                        + self._fetch_page(source, address, topics, BlockRange(middle + 1, page.end)))
            except TransientExtractionError as e:
                attempt += 1
                if attempt > self.max_retries:
                    self.log_error("Extraction failed after retries",
                                   source_id=source.id,
                                   from_block=page.start,
                                   to_block=page.end,
                                   attempt=attempt,
                                   error=str(e))
                    raise
                delay = self.backoff_base * (2 ** (attempt - 1))
                self.log_warning("Transient extraction error, backing off",
                                 source_id=source.id,
                                 from_block=page.start,
                                 to_block=page.end,
                                 attempt=attempt,
                                 rate_limited=e.rate_limited,
                                 delay=delay,
                                 error=str(e))
                self._sleep(delay)

    def _to_record(self, source: Source, log: EvmLog) -> Optional[RawLogRecord]:
        if log.removed:
            return None

        address = to_evm_address(log.address)
        topics = tuple(EvmHash(to_hex(t)) for t in log.topics)

        if source.kind is SourceKind.ADDRESS_LOG:
            if address != source.address:
                return None
        else:
            if not topics or topics[0] not in source.topics:
                return None
            if source.kind is SourceKind.TOPIC_LOG_WITH_EXCLUSIONS and source.is_excluded(address):
                return None

        return RawLogRecord(
            source_id=source.id,
            block_number=hex_to_int(log.blockNumber),
            log_index=hex_to_int(log.logIndex),
            address=address,
            topics=topics,
            data=HexStr(to_hex(log.data)),
            tx_hash=EvmHash(to_hex(log.transactionHash)),
            tx_index=hex_to_int(log.transactionIndex),
        )
