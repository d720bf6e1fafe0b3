# borrow_indexer/sources/registry.py

from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from ..contracts.abi_loader import ABILoader, select_abi_entries
from ..contracts.signatures import abi_topics
from ..core.config import IndexerConfig
from ..core.exceptions import ConfigurationError, DuplicateSourceError
from ..core.logging import LoggingMixin
from ..types import BlockRange, EvmHash, Source, SourceKind


class SourceRegistry(LoggingMixin):
    """
    Immutable-after-start catalogue of sources. ``freeze`` is called once the
    pipeline is wired, after which registration fails.
    """

    def __init__(self):
        self._sources: Dict[str, Source] = {}
        self._frozen = False

    def register(self, source: Source) -> str:
        if self._frozen:
            raise ConfigurationError("Source registry is frozen", source.id)
        if source.id in self._sources:
            self.log_error("Duplicate source id", source_id=source.id)
            raise DuplicateSourceError(source.id)

        self._sources[source.id] = source
        self.log_debug("Source registered",
                       source_id=source.id,
                       kind=source.kind.value,
                       starting_block=source.starting_block)
        return source.id

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, source_id: str) -> Source:
        try:
            return self._sources[source_id]
        except KeyError:
            raise ConfigurationError("Unknown source", source_id) from None

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def all(self) -> List[Source]:
        return sorted(self._sources.values(), key=lambda s: (s.starting_block, s.id))

    def sources_for(self, block_range: BlockRange) -> List[Source]:
        return [s for s in self.all() if s.starting_block <= block_range.end]

    def find_topic_collisions(self) -> List[Tuple[str, str, EvmHash]]:
        """
        Pairs of topic-based sources claiming the same topic. Exclusions
        only cede named emitters, so any emitter outside both exclusion sets
        has its logs claimed by both sources. These are not fatal, but every
        one of them is a place where the same log can be processed twice.
        """
        by_topic: Dict[EvmHash, List[Source]] = defaultdict(list)
        for source in self.all():
            if source.kind.is_topic_based:
                for topic in source.topics:
                    by_topic[topic].append(source)

        collisions = []
        for topic, sources in sorted(by_topic.items()):
            for i, first in enumerate(sources):
                for second in sources[i + 1:]:
                    collisions.append((first.id, second.id, topic))
        return collisions

    def find_unceded_addresses(self) -> List[Tuple[str, str]]:
        """Address-log sources whose emitter is also reachable through a topic source."""
        unceded = []
        address_sources = [s for s in self.all() if s.kind is SourceKind.ADDRESS_LOG]
        topic_sources = [s for s in self.all() if s.kind.is_topic_based]
        for address_source in address_sources:
            own_topics = set(abi_topics(address_source.abi))
            for topic_source in topic_sources:
                if not own_topics.intersection(topic_source.topics):
                    continue
                if not topic_source.is_excluded(address_source.address):
                    unceded.append((address_source.id, topic_source.id))
        return unceded

    def validate(self) -> None:
        for first, second, topic in self.find_topic_collisions():
            self.log_warning("Topic sources share a topic and both claim its logs",
                             source_id=first, other_source=second, topic=topic)
        for address_source, topic_source in self.find_unceded_addresses():
            self.log_warning("Topic source may claim logs of an address-log source",
                             source_id=topic_source, other_source=address_source)

    @classmethod
    def from_config(cls, config: IndexerConfig, abi_loader: Optional[ABILoader] = None) -> 'SourceRegistry':
        registry = cls()
        for source_config in config.sources:
            abi = ()
            if source_config.abi_file:
                if abi_loader is None:
                    raise ConfigurationError("ABI loader required for source", source_config.id)
                abi = select_abi_entries(
                    abi_loader.load_abi(source_config.abi_file),
                    event_names=source_config.event_names,
                    note_functions=source_config.note_functions,
                )

            address = config.resolve_address(source_config.address) if source_config.address else None
            excluded = frozenset(config.resolve_address(a) for a in source_config.exclude)
            topics = abi_topics(abi) if source_config.kind.is_topic_based else ()
            starting_block = (
                source_config.starting_block
                if source_config.starting_block is not None
                else config.starting_block
            )

            try:
                source = Source(
                    id=source_config.id,
                    kind=source_config.kind,
                    starting_block=starting_block,
                    address=address,
                    topics=topics,
                    abi=abi,
                    excluded_addresses=excluded,
                )
            except ValueError as e:
                raise ConfigurationError(str(e), source_config.id) from e

            registry.register(source)

        registry.validate()
        return registry
