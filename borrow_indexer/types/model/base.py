# borrow_indexer/types/model/base.py

from msgspec import Struct


class Payload(Struct, tag=True, kw_only=True):
    """
    Base of every derived-event payload. The tag (class name) and field set
    of each subclass are the contract with downstream consumers.
    """

    @property
    def event_type(self) -> str:
        return self.__class__.__name__
