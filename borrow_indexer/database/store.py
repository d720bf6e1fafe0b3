# borrow_indexer/database/store.py

from typing import Dict, List, Optional

import msgspec
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..core.exceptions import CommitError
from ..core.logging import LoggingMixin
from ..types import (
    BatchResult,
    BlockRange,
    DecodedEvent,
    DerivedEvent,
    DomainPayload,
    MultiplyHistory,
    PriceUpdate,
)
from .connection import DatabaseManager
from .interfaces import BatchStoreInterface
from .tables import BatchRun, BatchStatus, CheckpointRow, DecodedEventRow, DerivedEventRow


def _subject(event: DerivedEvent) -> Optional[str]:
    payload = event.payload
    if isinstance(payload, PriceUpdate):
        return payload.token
    urn = getattr(payload, "urn", None)
    return str(urn) if urn else None


class SqlBatchStore(BatchStoreInterface, LoggingMixin):
    """
    SQLAlchemy-backed store. ``commit_batch`` is the single write path of the
    pipeline: one transaction deletes what an earlier attempt stored for the
    range, inserts the new rows and advances the checkpoints.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def commit_batch(self, result: BatchResult, attempt: int = 1) -> None:
        block_range = result.block_range
        try:
            with self.db.get_transaction() as session:
                if result.source_ids:
                    session.execute(
                        delete(DecodedEventRow)
                        .where(DecodedEventRow.source_id.in_(result.source_ids))
                        .where(DecodedEventRow.block_number.between(block_range.start, block_range.end))
                    )
                if result.transformer_names:
                    session.execute(
                        delete(DerivedEventRow)
                        .where(DerivedEventRow.transformer_name.in_(result.transformer_names))
                        .where(DerivedEventRow.block_number.between(block_range.start, block_range.end))
                    )

                session.add_all(self._decoded_rows(result))
                session.add_all(self._derived_rows(result))

                for checkpoint in result.checkpoints:
                    row = session.get(CheckpointRow, checkpoint.source_id)
                    if row is None:
                        session.add(CheckpointRow(
                            source_id=checkpoint.source_id,
                            last_processed_block=checkpoint.last_processed_block,
                        ))
                    elif checkpoint.last_processed_block > row.last_processed_block:
                        row.last_processed_block = checkpoint.last_processed_block

                session.add(BatchRun(
                    from_block=block_range.start,
                    to_block=block_range.end,
                    attempt=attempt,
                    status=BatchStatus.COMMITTED,
                    decoded_count=result.decoded_count,
                    derived_count=result.derived_count,
                ))

        except SQLAlchemyError as e:
            self.log_error("Batch commit failed",
                           from_block=block_range.start,
                           to_block=block_range.end,
                           attempt=attempt,
                           error=str(e),
                           exception_type=type(e).__name__)
            raise CommitError(f"Commit of {block_range} failed: {e}") from e

        self.log_info("Batch committed",
                      from_block=block_range.start,
                      to_block=block_range.end,
                      decoded_count=result.decoded_count,
                      derived_count=result.derived_count,
                      checkpoint_count=len(result.checkpoints))

    def _decoded_rows(self, result: BatchResult) -> List[DecodedEventRow]:
        rows = []
        for events in result.decoded.values():
            for event in events:
                rows.append(DecodedEventRow(
                    source_id=event.source_id,
                    block_number=event.block_number,
                    log_index=event.log_index,
                    event_name=event.event_name,
                    address=event.address,
                    tx_hash=event.tx_hash,
                    fields=msgspec.to_builtins(event.fields),
                ))
        return rows

    def _derived_rows(self, result: BatchResult) -> List[DerivedEventRow]:
        return [
            DerivedEventRow(
                content_id=event.content_id,
                transformer_name=event.transformer_name,
                block_number=event.block_number,
                log_index=event.log_index,
                tx_hash=event.tx_hash,
                event_type=event.payload.event_type,
                subject=_subject(event),
                payload=event.payload_dict(),
            )
            for event in result.all_derived()
        ]

    def record_failure(self, block_range: BlockRange, attempt: int, error: str) -> None:
        try:
            with self.db.get_transaction() as session:
                session.add(BatchRun(
                    from_block=block_range.start,
                    to_block=block_range.end,
                    attempt=attempt,
                    status=BatchStatus.FAILED,
                    error_message=error,
                ))
        except SQLAlchemyError as e:
            self.log_warning("Could not record failed batch",
                             from_block=block_range.start,
                             to_block=block_range.end,
                             error=str(e))

    def get_checkpoint(self, source_id: str) -> Optional[int]:
        with self.db.get_session() as session:
            row = session.get(CheckpointRow, source_id)
            return row.last_processed_block if row else None

    def get_checkpoints(self) -> Dict[str, int]:
        with self.db.get_session() as session:
            rows = session.execute(select(CheckpointRow).order_by(CheckpointRow.source_id)).scalars()
            return {row.source_id: row.last_processed_block for row in rows}

    def save_checkpoint(self, source_id: str, block_number: int) -> None:
        try:
            with self.db.get_transaction() as session:
                row = session.get(CheckpointRow, source_id)
                if row is None:
                    session.add(CheckpointRow(source_id=source_id, last_processed_block=block_number))
                else:
                    row.last_processed_block = block_number
        except SQLAlchemyError as e:
            raise CommitError(f"Checkpoint write for {source_id} failed: {e}") from e

    def rewind_checkpoints(self, to_block: int, source_ids: Optional[List[str]] = None) -> Dict[str, int]:
        rewound: Dict[str, int] = {}
        try:
            with self.db.get_transaction() as session:
                query = select(CheckpointRow).where(CheckpointRow.last_processed_block > to_block)
                if source_ids is not None:
                    query = query.where(CheckpointRow.source_id.in_(source_ids))
                for row in session.execute(query).scalars().all():
                    row.last_processed_block = to_block
                    rewound[row.source_id] = to_block

                # rows past the rewind point are re-derived when the frontier reaches them
                session.execute(delete(DecodedEventRow).where(DecodedEventRow.block_number > to_block))
                session.execute(delete(DerivedEventRow).where(DerivedEventRow.block_number > to_block))
        except SQLAlchemyError as e:
            raise CommitError(f"Rewind to {to_block} failed: {e}") from e

        self.log_warning("Checkpoints rewound",
                         to_block=to_block,
                         sources=sorted(rewound))
        return rewound

    def latest_price(self, token: str, block_number: int) -> Optional[str]:
        with self.db.get_session() as session:
            row = session.execute(
                select(DerivedEventRow)
                .where(DerivedEventRow.event_type == PriceUpdate.__name__)
                .where(DerivedEventRow.subject == token)
                .where(DerivedEventRow.block_number <= block_number)
                .order_by(DerivedEventRow.block_number.desc(), DerivedEventRow.log_index.desc())
                .limit(1)
            ).scalar_one_or_none()
            return row.payload["price"] if row else None

    def multiply_cdp_for_urn(self, urn: str, block_number: int) -> Optional[int]:
        with self.db.get_session() as session:
            row = session.execute(
                select(DerivedEventRow)
                .where(DerivedEventRow.event_type == MultiplyHistory.__name__)
                .where(DerivedEventRow.subject == urn)
                .where(DerivedEventRow.block_number <= block_number)
                .order_by(DerivedEventRow.block_number.desc(), DerivedEventRow.log_index.desc())
                .limit(1)
            ).scalar_one_or_none()
            return int(row.payload["cdp_id"]) if row else None

    def derived_events(self, transformer_name: str, block_range: Optional[BlockRange] = None) -> List[DerivedEvent]:
        with self.db.get_session() as session:
            query = select(DerivedEventRow).where(DerivedEventRow.transformer_name == transformer_name)
            if block_range is not None:
                query = query.where(DerivedEventRow.block_number.between(block_range.start, block_range.end))
            query = query.order_by(DerivedEventRow.block_number, DerivedEventRow.log_index, DerivedEventRow.id)

            return [
                DerivedEvent(
                    transformer_name=row.transformer_name,
                    block_number=row.block_number,
                    log_index=row.log_index,
                    payload=msgspec.convert(row.payload, DomainPayload),
                    tx_hash=row.tx_hash,
                )
                for row in session.execute(query).scalars()
            ]

    def decoded_events(self, source_id: str, block_range: Optional[BlockRange] = None) -> List[DecodedEvent]:
        with self.db.get_session() as session:
            query = select(DecodedEventRow).where(DecodedEventRow.source_id == source_id)
            if block_range is not None:
                query = query.where(DecodedEventRow.block_number.between(block_range.start, block_range.end))
            query = query.order_by(DecodedEventRow.block_number, DecodedEventRow.log_index)

            return [
                DecodedEvent(
                    source_id=row.source_id,
                    block_number=row.block_number,
                    log_index=row.log_index,
                    event_name=row.event_name,
                    fields=dict(row.fields),
                    address=row.address,
                    tx_hash=row.tx_hash,
                )
                for row in session.execute(query).scalars()
            ]
