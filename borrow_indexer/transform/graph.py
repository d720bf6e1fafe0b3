# borrow_indexer/transform/graph.py

from collections import deque
from typing import Dict, List, Mapping, Optional, Sequence

from ..core.exceptions import ConfigurationError, DependencyCycleError
from ..core.logging import LoggingMixin
from ..types import BlockRange, DecodedEvent, DerivedEvent
from .context import TransformInput
from .transformers.base import BaseTransformer


class TransformerGraph(LoggingMixin):
    """
    Transformers in dependency order. Each transformer runs after every
    transformer it depends on and sees only their outputs.
    """

    def __init__(self, ordered: Sequence[BaseTransformer]):
        self.transformers = list(ordered)

    @classmethod
    def build(cls, transformers: Sequence[BaseTransformer],
              known_sources: Optional[Sequence[str]] = None) -> 'TransformerGraph':
        by_name: Dict[str, BaseTransformer] = {}
        for transformer in transformers:
            if transformer.name in by_name:
                raise ConfigurationError("Duplicate transformer name", transformer.name)
            by_name[transformer.name] = transformer

        for transformer in transformers:
            unknown = sorted(d for d in transformer.depends_on if d not in by_name)
            if unknown:
                raise ConfigurationError(
                    f"Depends on unknown transformers {', '.join(unknown)}", transformer.name
                )
            if transformer.name in transformer.depends_on:
                raise DependencyCycleError([transformer.name, transformer.name])
            if known_sources is not None:
                missing = sorted(s for s in transformer.sources if s not in known_sources)
                if missing:
                    raise ConfigurationError(
                        f"Reads unknown sources {', '.join(missing)}", transformer.name
                    )

        dependents: Dict[str, List[str]] = {name: [] for name in by_name}
        in_degree: Dict[str, int] = {name: 0 for name in by_name}
        for transformer in transformers:
            for dep in transformer.depends_on:
                dependents[dep].append(transformer.name)
                in_degree[transformer.name] += 1

        # Kahn's algorithm, always taking the alphabetically first ready node
        ready = deque(sorted(name for name, degree in in_degree.items() if degree == 0))
        order: List[str] = []
        while ready:
            name = ready.popleft()
            order.append(name)
            released = []
            for dependent in dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    released.append(dependent)
            ready = deque(sorted(list(ready) + released))

        if len(order) != len(by_name):
            remaining = {name for name in by_name if name not in order}
            raise DependencyCycleError(_find_cycle(remaining, by_name))

        graph = cls([by_name[name] for name in order])
        graph.log_info("Transformer graph built", execution_order=order)
        return graph

    @property
    def order(self) -> List[str]:
        return [t.name for t in self.transformers]

    def run(self, decoded_by_source: Mapping[str, Sequence[DecodedEvent]],
            block_range: BlockRange) -> Dict[str, List[DerivedEvent]]:
        outputs: Dict[str, List[DerivedEvent]] = {}
        for transformer in self.transformers:
            upstream = {dep: outputs[dep] for dep in sorted(transformer.depends_on)}
            inputs = TransformInput(block_range, decoded_by_source, upstream)
            try:
                derived = transformer.transform(inputs)
            except Exception as e:
                self.log_error("Transformer failed",
                               transformer_name=transformer.name,
                               from_block=block_range.start,
                               to_block=block_range.end,
                               error=str(e),
                               exception_type=type(e).__name__)
                raise
            outputs[transformer.name] = sorted(derived, key=lambda d: d.ordering_key)
        return outputs


def _find_cycle(remaining: set, by_name: Mapping[str, BaseTransformer]) -> List[str]:
    """Walk dependencies among unresolved nodes until one repeats."""
    start = min(remaining)
    path = [start]
    seen = {start: 0}
    current = start
    while True:
        current = min(d for d in by_name[current].depends_on if d in remaining)
        if current in seen:
            return path[seen[current]:] + [current]
        seen[current] = len(path)
        path.append(current)
