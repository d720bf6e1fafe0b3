# borrow_indexer/types/model/errors.py

from typing import Optional, Dict, Any, Literal
import hashlib

import msgspec
from msgspec import Struct

from ..new import ErrorId


class ProcessingError(Struct):
    stage: str  # "extract", "decode", "transform", "commit"
    error_type: str  # "transient_io", "dependency_missing", "commit_failed", ...
    message: str
    status: Literal["unresolved", "resolved"] = "unresolved"
    attempts: int = 0
    error_id: Optional[ErrorId] = None
    context: Optional[Dict[str, Any]] = None  # source_id, transformer_name, block range, ...

    def __post_init__(self) -> None:
        if not self.error_id:
            self.error_id = self.generate_error_id()

    def mark_resolved(self) -> None:
        self.status = "resolved"

    def add_attempt(self) -> None:
        self.attempts += 1

    def generate_error_id(self) -> ErrorId:
        content_struct = {
            "stage": self.stage,
            "error_type": self.error_type,
            "message": self.message,
            "context": self.context or {},
        }
        content_bytes = msgspec.msgpack.encode(content_struct)
        hash_hex = hashlib.sha256(content_bytes).hexdigest()

        return ErrorId(hash_hex[:12])


'''
Helper functions to create specific error types
'''
def create_extract_error(
    error_type: str,
    message: str,
    from_block: Optional[int] = None,
    to_block: Optional[int] = None,
    source_id: Optional[str] = None,
) -> ProcessingError:
    context = {}
    if from_block is not None:
        context["from_block"] = from_block
    if to_block is not None:
        context["to_block"] = to_block
    if source_id:
        context["source_id"] = source_id

    return ProcessingError(
        stage="extract",
        error_type=error_type,
        message=message,
        context=context if context else None
    )


def create_transform_error(
    error_type: str,
    message: str,
    transformer_name: Optional[str] = None,
    block_number: Optional[int] = None,
    key: Optional[Any] = None,
) -> ProcessingError:
    context = {}
    if transformer_name:
        context["transformer_name"] = transformer_name
    if block_number is not None:
        context["block_number"] = block_number
    if key is not None:
        context["key"] = str(key)

    return ProcessingError(
        stage="transform",
        error_type=error_type,
        message=message,
        context=context if context else None
    )


def create_commit_error(
    error_type: str,
    message: str,
    from_block: Optional[int] = None,
    to_block: Optional[int] = None,
) -> ProcessingError:
    context = {}
    if from_block is not None:
        context["from_block"] = from_block
    if to_block is not None:
        context["to_block"] = to_block

    return ProcessingError(
        stage="commit",
        error_type=error_type,
        message=message,
        context=context if context else None
    )
