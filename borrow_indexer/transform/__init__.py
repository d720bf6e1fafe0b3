# borrow_indexer/transform/__init__.py

from .context import BatchView, BlockContext, TransformInput
from .dependencies import ChainLookups, PriceLookup, IlkInfo, IlkKey, Lookup
from .graph import TransformerGraph
from .registry import TRANSFORMER_KINDS, build_transformer, build_transformers
from .transformers import BaseTransformer

__all__ = [
    "BatchView",
    "BlockContext",
    "TransformInput",
    "ChainLookups",
    "PriceLookup",
    "IlkInfo",
    "IlkKey",
    "Lookup",
    "TransformerGraph",
    "TRANSFORMER_KINDS",
    "build_transformer",
    "build_transformers",
    "BaseTransformer",
]
