# borrow_indexer/checkpoint/__init__.py

from .tracker import CheckpointTracker

__all__ = ["CheckpointTracker"]
