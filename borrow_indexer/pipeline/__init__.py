# borrow_indexer/pipeline/__init__.py

from .orchestrator import PipelineOrchestrator

__all__ = ["PipelineOrchestrator"]
