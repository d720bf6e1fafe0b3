# borrow_indexer/database/types.py

from typing import Optional

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

from ..types.new import EvmAddress, EvmHash, DomainEventId


class EvmAddressType(TypeDecorator):
    impl = String(42)
    cache_ok = True

    def process_bind_param(self, value: Optional[EvmAddress], dialect) -> Optional[str]:
        return str(value).lower() if value else None

    def process_result_value(self, value: Optional[str], dialect) -> Optional[EvmAddress]:
        return EvmAddress(value) if value else None


class EvmHashType(TypeDecorator):
    impl = String(66)
    cache_ok = True

    def process_bind_param(self, value: Optional[EvmHash], dialect) -> Optional[str]:
        return str(value).lower() if value else None

    def process_result_value(self, value: Optional[str], dialect) -> Optional[EvmHash]:
        return EvmHash(value) if value else None


class DomainEventIdType(TypeDecorator):
    impl = String(16)
    cache_ok = True

    def process_bind_param(self, value: Optional[DomainEventId], dialect) -> Optional[str]:
        return str(value) if value else None

    def process_result_value(self, value: Optional[str], dialect) -> Optional[DomainEventId]:
        return DomainEventId(value) if value else None
