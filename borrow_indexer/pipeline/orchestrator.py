# borrow_indexer/pipeline/orchestrator.py

import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional

from ..checkpoint.tracker import CheckpointTracker
from ..clients.interfaces import LogClientInterface
from ..core.config import IndexerConfig
from ..core.exceptions import (
    BatchCancelled,
    CommitError,
    ConfigurationError,
    DependencyLookupError,
    TransientExtractionError,
)
from ..core.logging import LoggingMixin
from ..database.interfaces import BatchStoreInterface
from ..decode.log_decoder import LogDecoder
from ..extract.extractor import RawExtractor
from ..sources.registry import SourceRegistry
from ..transform.graph import TransformerGraph
from ..types import (
    BatchResult,
    BlockRange,
    DecodedEvent,
    ProcessingError,
    RawLogRecord,
    Source,
    create_commit_error,
    create_extract_error,
    create_transform_error,
)


class PipelineOrchestrator(LoggingMixin):
    """
    Drives extract -> decode -> transform -> commit over block-range batches.

    Sources are extracted concurrently; decoding and transformation start
    only once every source of the range is in. A failed batch is discarded
    as a whole and retried from the same range. ``stop`` abandons a batch
    that is still extracting but never interrupts a commit.
    """

    def __init__(self,
                 config: IndexerConfig,
                 registry: SourceRegistry,
                 extractor: RawExtractor,
                 decoder: LogDecoder,
                 graph: TransformerGraph,
                 tracker: CheckpointTracker,
                 store: BatchStoreInterface,
                 log_client: LogClientInterface,
                 cancel_event: Optional[threading.Event] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.settings = config.pipeline
        self.registry = registry
        self.extractor = extractor
        self.decoder = decoder
        self.graph = graph
        self.tracker = tracker
        self.store = store
        self.log_client = log_client
        self._cancel = cancel_event or threading.Event()
        self._sleep = sleep

        self.running = False
        self.errors: List[ProcessingError] = []

        self.log_info("PipelineOrchestrator initialized",
                      name=config.name,
                      source_count=len(registry),
                      transformer_order=graph.order,
                      max_batch_size=self.settings.max_batch_size)

    def is_cancelled(self) -> bool:
        return self._cancel.is_set()

    def next_range(self) -> Optional[BlockRange]:
        frontier = self.tracker.frontier(self.registry.all())
        if frontier is None:
            return None
        head = self.log_client.get_latest_block_number()
        if frontier > head:
            return None
        return BlockRange(frontier, min(frontier + self.settings.max_batch_size - 1, head))

    def run_batch(self, block_range: BlockRange, attempt: int = 1) -> BatchResult:
        sources = self.registry.sources_for(block_range)
        self.log_info("Processing batch",
                      from_block=block_range.start,
                      to_block=block_range.end,
                      attempt=attempt,
                      source_count=len(sources))

        raw = self._extract(sources, block_range)

        decoded: Dict[str, List[DecodedEvent]] = {}
        for source in sources:
            decoded[source.id] = self.decoder.decode_records(raw[source.id], source.abi)

        derived = self.graph.run(decoded, block_range)

        self.tracker.discard()
        for source in sources:
            self.tracker.pending(source.id, block_range.end)

        result = BatchResult(
            block_range=block_range,
            source_ids=tuple(source.id for source in sources),
            transformer_names=tuple(self.graph.order),
            decoded=decoded,
            derived=derived,
            checkpoints=self.tracker.staged(),
        )

        # from here on the batch is no longer cancellable
        self.store.commit_batch(result, attempt)
        self.tracker.discard()

        self.log_info("Batch completed",
                      from_block=block_range.start,
                      to_block=block_range.end,
                      decoded_count=result.decoded_count,
                      derived_count=result.derived_count)
        return result

    def _extract(self, sources: List[Source], block_range: BlockRange) -> Dict[str, List[RawLogRecord]]:
        if self.is_cancelled():
            raise BatchCancelled(f"Batch {block_range} cancelled before extraction")
        if not sources:
            return {}

        workers = max(1, min(self.settings.extraction_workers, len(sources)))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="extract")
        try:
            futures = {
                executor.submit(self.extractor.extract_all, source, block_range.clamp(start=source.starting_block)): source
                for source in sources
            }
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for future in not_done:
                future.cancel()

            for future in futures:
                if future in done and future.exception() is not None:
                    raise future.exception()
            return {futures[f].id: f.result() for f in futures}
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def process_range(self, block_range: BlockRange) -> BatchResult:
        max_attempts = self.settings.max_batch_retries + 1
        attempt = 0
        while True:
            attempt += 1
            try:
                return self.run_batch(block_range, attempt)
            except (BatchCancelled, ConfigurationError):
                self.tracker.discard()
                raise
            except Exception as e:
                self.tracker.discard()
                error = self._record_error(e, block_range, attempt)
                self.store.record_failure(block_range, attempt, str(e))

                if attempt >= max_attempts:
                    self.log_error("Batch failed, retries exhausted",
                                   from_block=block_range.start,
                                   to_block=block_range.end,
                                   attempt=attempt,
                                   error_id=error.error_id,
                                   error=str(e),
                                   exception_type=type(e).__name__)
                    raise

                delay = self.settings.retry_backoff * (2 ** (attempt - 1))
                self.log_warning("Batch failed, retrying",
                                 from_block=block_range.start,
                                 to_block=block_range.end,
                                 attempt=attempt,
                                 delay=delay,
                                 error_id=error.error_id,
                                 error=str(e),
                                 exception_type=type(e).__name__)
                self._sleep(delay)
                if self.is_cancelled():
                    raise BatchCancelled(f"Batch {block_range} cancelled during backoff") from e

    def _record_error(self, e: Exception, block_range: BlockRange, attempt: int) -> ProcessingError:
        if isinstance(e, TransientExtractionError):
            error = create_extract_error(
                "rate_limited" if e.rate_limited else "transient_io", str(e),
                from_block=e.from_block if e.from_block is not None else block_range.start,
                to_block=e.to_block if e.to_block is not None else block_range.end,
            )
        elif isinstance(e, DependencyLookupError):
            error = create_transform_error(
                "dependency_missing", str(e),
                transformer_name=e.transformer_name,
                block_number=e.block_number,
                key=e.key,
            )
        elif isinstance(e, CommitError):
            error = create_commit_error(
                "commit_failed", str(e), from_block=block_range.start, to_block=block_range.end
            )
        else:
            error = create_transform_error(type(e).__name__, str(e))

        for existing in self.errors:
            if existing.error_id == error.error_id:
                existing.add_attempt()
                return existing
        error.attempts = attempt
        self.errors.append(error)
        return error

    def run(self, until_block: Optional[int] = None, max_batches: Optional[int] = None) -> int:
        """Process batches until caught up with ``until_block``, ``max_batches`` or ``stop``."""
        self._cancel.clear()
        self.running = True
        batches = 0

        self.log_info("Starting pipeline", until_block=until_block, max_batches=max_batches)
        try:
            while not self.is_cancelled():
                if max_batches is not None and batches >= max_batches:
                    break

                if until_block is not None:
                    frontier = self.tracker.frontier(self.registry.all())
                    if frontier is None or frontier > until_block:
                        break

                block_range = self.next_range()
                if block_range is not None and until_block is not None:
                    block_range = block_range.clamp(end=until_block)

                if block_range is None:
                    self.log_debug("Caught up with chain head, waiting",
                                   poll_interval=self.settings.poll_interval)
                    self._sleep(self.settings.poll_interval)
                    continue

                self.process_range(block_range)
                batches += 1

        except BatchCancelled as e:
            self.log_warning("Batch abandoned on stop", error=str(e))
        finally:
            self.running = False
            self.log_info("Pipeline stopped", batches_processed=batches)

        return batches

    def stop(self) -> None:
        self.log_info("Stop requested")
        self._cancel.set()

    def rewind(self, block_number: int) -> Dict[str, int]:
        """Reorg recovery: everything after ``block_number`` is derived again."""
        if self.running:
            raise RuntimeError("Cannot rewind while the pipeline is running")
        return self.tracker.rewind(block_number)
