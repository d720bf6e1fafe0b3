# borrow_indexer/transform/transformers/base.py

from abc import ABC
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ...core.exceptions import ConfigurationError, DependencyLookupError
from ...core.logging import LoggingMixin
from ...types import DecodedEvent, DerivedEvent, EvmHash, Payload
from ..context import BlockContext, TransformInput
from ..dependencies import Lookup

HandlerResult = Union[None, Payload, List[Payload]]


class BaseTransformer(ABC, LoggingMixin):
    """
    One named step of the transformer graph.

    Subclasses either fill ``handler_map`` (event name -> handler returning
    zero or more payloads for one decoded event) or override ``transform``
    when they need to look at several events at once.
    """

    kind: ClassVar[str] = ""
    required_dependencies: ClassVar[Tuple[str, ...]] = ()
    # options holding address-book keys, resolved before construction
    address_options: ClassVar[Tuple[str, ...]] = ()

    def __init__(self,
                 name: str,
                 sources: Sequence[str] = (),
                 depends_on: Sequence[str] = (),
                 dependencies: Optional[Mapping[str, Lookup]] = None):
        self.name = name
        self.sources = tuple(sources)
        self.depends_on = frozenset(depends_on)
        self.dependencies: Dict[str, Lookup] = dict(dependencies or {})
        self.handler_map: Dict[str, Callable[[DecodedEvent, TransformInput], HandlerResult]] = {}

        missing = [d for d in self.required_dependencies if d not in self.dependencies]
        if missing:
            raise ConfigurationError(
                f"Transformer is missing dependencies {', '.join(missing)}", name
            )

        self.log_debug("Transformer initialized",
                       transformer_name=self.name,
                       kind=self.kind,
                       sources=list(self.sources),
                       depends_on=sorted(self.depends_on))

    @property
    def input_event_names(self) -> frozenset:
        return frozenset(self.handler_map)

    def transform(self, inputs: TransformInput) -> List[DerivedEvent]:
        if not self.handler_map:
            raise ConfigurationError("Transformer has no handler map configured", self.name)

        derived: List[DerivedEvent] = []
        for event in inputs.events(self.sources, self.input_event_names):
            result = self.handler_map[event.event_name](event, inputs)
            for payload in self._as_list(result):
                derived.append(self.emit(event.block_number, event.log_index, payload, event.tx_hash))

        self.log_debug("Transform completed",
                       transformer_name=self.name,
                       from_block=inputs.block_range.start,
                       to_block=inputs.block_range.end,
                       derived_count=len(derived))
        return derived

    def emit(self, block_number: int, log_index: int, payload: Payload,
             tx_hash: Optional[EvmHash] = None) -> DerivedEvent:
        return DerivedEvent(
            transformer_name=self.name,
            block_number=block_number,
            log_index=log_index,
            payload=payload,
            tx_hash=tx_hash,
        )

    def lookup(self, dependency: str, key: Any, context: BlockContext) -> Any:
        """Resolve a required dependency; a miss fails the batch. A None key is a miss."""
        value = self.dependencies[dependency](key, context) if key is not None else None
        if value is None:
            self.log_error("Dependency lookup failed",
                           transformer_name=self.name,
                           block_number=context.block_number,
                           dependency=dependency,
                           key=key)
            raise DependencyLookupError(self.name, dependency, key, context.block_number)
        return value

    def lookup_for(self, dependency: str, key: Any, event: Union[DecodedEvent, DerivedEvent],
                   inputs: TransformInput) -> Any:
        return self.lookup(dependency, key, inputs.context_for(event.block_number, event.log_index, event.tx_hash))

    @staticmethod
    def _as_list(result: HandlerResult) -> Iterable[Payload]:
        if result is None:
            return ()
        if isinstance(result, list):
            return result
        return (result,)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
