from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.utils.event_logger import get_logger
from manetsim.utils.events import EventBus, PacketRxEvent, PacketTxEvent

from typing import TextIO

import sys


def format_tx_line(event: PacketTxEvent) -> str:
    return f"{event.time_s:g} source {event.src_address} send to dest {event.dst_address}"


def format_rx_line(event: PacketRxEvent) -> str:
    if event.src_address is None:
        return f"{event.time_s:g} {event.node_id} received one packet!"
    return f"{event.time_s:g} {event.node_id} received one packet from {event.src_address}"


class TraceCollector:
    """
    Writes one trace line per transmit and receive event, as soon as the event
    is published. Lines are not buffered, so they appear in dispatch order.
    """

    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        bus: EventBus,
        stream: TextIO = None,
        scheduler=None,
    ):
        self.cfg = cfg
        self.sparams = sparams

        self.bus = bus
        self.stream = stream

        self.tx_lines = 0
        self.rx_lines = 0
        self.dropped_lines = 0

        self.name = "TRACE"
        self.logger = get_logger(self.name, cfg, sparams, scheduler)

    def attach(self):
        self.bus.subscribe(PacketTxEvent, self.on_tx)
        self.bus.subscribe(PacketRxEvent, self.on_rx)

    def detach(self):
        self.bus.unsubscribe(PacketTxEvent, self.on_tx)
        self.bus.unsubscribe(PacketRxEvent, self.on_rx)

    def on_tx(self, event: PacketTxEvent):
        if self._emit(format_tx_line(event)):
            self.tx_lines += 1

    def on_rx(self, event: PacketRxEvent):
        if self._emit(format_rx_line(event)):
            self.rx_lines += 1

    def _emit(self, line: str) -> bool:
        # Resolved on every write so that a replaced sys.stdout is honoured
        stream = self.stream if self.stream is not None else sys.stdout
        try:
            stream.write(line + "\n")
            stream.flush()
        except (OSError, ValueError) as e:
            self.dropped_lines += 1
            self.logger.warning(f"Dropped trace line ({e}): {line}")
            return False
        return True
