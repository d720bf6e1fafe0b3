# borrow_indexer/types/configs/transformer.py

from typing import Any, Dict, List

from msgspec import Struct


class TransformerConfig(Struct):
    name: str
    kind: str
    sources: List[str] = []
    depends_on: List[str] = []
    options: Dict[str, Any] = {}
