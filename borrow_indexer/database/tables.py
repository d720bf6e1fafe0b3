# borrow_indexer/database/tables.py

import enum

from sqlalchemy import JSON, BigInteger, Column, Enum, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB

from .base import DBBaseModel
from .types import DomainEventIdType, EvmAddressType, EvmHashType

# JSONB on postgres, plain JSON elsewhere
JsonType = JSON().with_variant(JSONB(), "postgresql")


class CheckpointRow(DBBaseModel):
    __tablename__ = 'checkpoints'

    source_id = Column(String(128), primary_key=True)
    last_processed_block = Column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<CheckpointRow(source_id={self.source_id}, block={self.last_processed_block})>"


class DecodedEventRow(DBBaseModel):
    """Decoded logs, kept for audit."""
    __tablename__ = 'decoded_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_id = Column(String(128), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    log_index = Column(Integer, nullable=False)
    event_name = Column(String(128), nullable=False)
    address = Column(EvmAddressType(), nullable=False)
    tx_hash = Column(EvmHashType(), nullable=True, index=True)
    fields = Column(JsonType, nullable=False)

    __table_args__ = (
        UniqueConstraint('source_id', 'block_number', 'log_index', name='uq_decoded_events_position'),
        Index('ix_decoded_events_source_block', 'source_id', 'block_number'),
    )


class DerivedEventRow(DBBaseModel):
    __tablename__ = 'derived_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    content_id = Column(DomainEventIdType(), nullable=False)
    transformer_name = Column(String(128), nullable=False)
    block_number = Column(BigInteger, nullable=False)
    log_index = Column(Integer, nullable=False)
    tx_hash = Column(EvmHashType(), nullable=True, index=True)
    event_type = Column(String(64), nullable=False)
    subject = Column(String(128), nullable=True)  # token for prices, urn for vault events
    payload = Column(JsonType, nullable=False)

    __table_args__ = (
        UniqueConstraint('transformer_name', 'content_id', name='uq_derived_events_content'),
        Index('ix_derived_events_transformer_block', 'transformer_name', 'block_number'),
        Index('ix_derived_events_type_subject_block', 'event_type', 'subject', 'block_number'),
    )


class BatchStatus(enum.Enum):
    COMMITTED = "committed"
    FAILED = "failed"


class BatchRun(DBBaseModel):
    __tablename__ = 'batch_runs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_block = Column(BigInteger, nullable=False, index=True)
    to_block = Column(BigInteger, nullable=False)
    attempt = Column(Integer, nullable=False, default=1)
    status = Column(Enum(BatchStatus, native_enum=False), nullable=False)
    decoded_count = Column(Integer, nullable=False, default=0)
    derived_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
