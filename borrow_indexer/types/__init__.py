# borrow_indexer/types/__init__.py

# New Types
from .new import (
    HexStr,
    EvmAddress,
    EvmHash,
    DomainEventId,
    ErrorId,
    to_hex,
    to_evm_address,
    hex_to_int,
)

# EVM Types
from .evm import EvmLog

# Pipeline Records
from .records import (
    SourceKind,
    BlockRange,
    Source,
    RawLogRecord,
    DecodedEvent,
    DerivedEvent,
    Checkpoint,
    BatchResult,
)

# Model Types: Payloads
from .model import *  # noqa: F401,F403
from .model import __all__ as _model_all

# Model Types: Errors
from .model.errors import (
    ProcessingError,
    create_extract_error,
    create_transform_error,
    create_commit_error,
)

__all__ = [
    "HexStr",
    "EvmAddress",
    "EvmHash",
    "DomainEventId",
    "ErrorId",
    "to_hex",
    "to_evm_address",
    "hex_to_int",
    "EvmLog",
    "SourceKind",
    "BlockRange",
    "Source",
    "RawLogRecord",
    "DecodedEvent",
    "DerivedEvent",
    "Checkpoint",
    "BatchResult",
    "ProcessingError",
    "create_extract_error",
    "create_transform_error",
    "create_commit_error",
    *_model_all,
]
