from manetsim.utils.data_units import Packet

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class PacketTxEvent:
    """Raised by an application each time it successfully sends a packet."""

    time_s: float
    node_id: int
    src_address: str
    dst_address: str
    packet: Packet


@dataclass(frozen=True)
class PacketRxEvent:
    """Raised by a socket each time it hands a packet to its application."""

    time_s: float
    node_id: int
    src_address: str | None  # None if the sender address cannot be resolved
    packet: Packet


class EventBus:
    """
    Synchronous publish/subscribe of typed simulation events.

    Handlers run inside the scheduler action that publishes the event, so the
    order of delivered events follows the scheduler dispatch order.
    """

    def __init__(self):
        self.handlers: dict[type, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Callable):
        if handler not in self.handlers[event_type]:
            self.handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Callable):
        if handler in self.handlers[event_type]:
            self.handlers[event_type].remove(handler)

    def publish(self, event):
        for handler in list(self.handlers.get(type(event), [])):
            handler(event)
