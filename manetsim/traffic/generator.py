from manetsim.sim_params import SimParams as sparams_module
from manetsim.user_config import UserConfig as cfg_module

from manetsim.components.network import Network, Node
from manetsim.traffic.recorder import TrafficRecorder
from manetsim.utils.event_logger import get_logger
from manetsim.utils.events import PacketTxEvent

from dataclasses import dataclass

import random


@dataclass
class Flow:
    """One traffic flow: an on/off source sending fixed-size packets to a sink address."""

    source: Node
    dst_address: str
    dst_port: int
    start_time_s: float
    stop_time_s: float
    on_time_s: float = 1.0
    off_time_s: float = 0.0
    packet_size_bytes: int = 512
    data_rate_bps: float = 500e3

    @property
    def packet_interval_s(self) -> float:
        """Time between packets while the source is on."""
        return self.packet_size_bytes * 8 / self.data_rate_bps


class OnOffApplication:
    """
    Constant bit rate source alternating on and off periods.

    Each period starts after the off time; while on, a packet is sent every
    packet interval (the first one an interval after the period starts) until
    the on time elapses. The part of an interval elapsed when a period ends is
    carried into the next one, so back-to-back periods keep a constant rate.
    Every transition is a scheduler event.
    """

    def __init__(self, cfg: cfg_module, sparams: sparams_module, flow: Flow, logger):
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = flow.source.scheduler

        self.flow = flow
        self.node = flow.source

        self.socket = None

        self.running = False
        self.sending = False

        self.start_event = None  # Beginning of the next on period
        self.send_event = None
        self.period_end_event = None

        self.packets_sent = 0
        self.residual_s = 0.0  # Part of a packet interval already elapsed in earlier on periods

        self.recorder = TrafficRecorder(cfg, sparams, self.node.id, logger=logger)

        self.logger = logger

    def start(self):
        self.socket = self.node.create_socket()
        self.socket.connect(self.flow.dst_address, self.flow.dst_port)

        self.running = True
        self.logger.info(
            f"{self.node.name} -> Flow to {self.flow.dst_address}:{self.flow.dst_port} started"
        )
        self._schedule_start()

    def _schedule_start(self):
        self.start_event = self.scheduler.schedule_in(
            self.flow.off_time_s, self._start_sending
        )

    def _start_sending(self):
        self.sending = True
        self.period_end_event = self.scheduler.schedule_in(
            self.flow.on_time_s, self._stop_sending
        )
        self._schedule_next_tx(self.flow.packet_interval_s - self.residual_s)
        self.residual_s = 0.0

    def _stop_sending(self):
        self.sending = False
        if self.send_event is not None and not self.send_event.dispatched:
            self.residual_s = self.flow.packet_interval_s - (
                self.send_event.fire_time_s - self.scheduler.now
            )
        self.scheduler.cancel(self.send_event)
        self._schedule_start()

    def _schedule_next_tx(self, delay_s: float = None):
        if delay_s is None:
            delay_s = self.flow.packet_interval_s
        self.send_event = self.scheduler.schedule_in(delay_s, self._send_packet)

    def _send_packet(self):
        packet = self.socket.send(self.flow.packet_size_bytes)

        if packet is not None:
            self.packets_sent += 1
            self.recorder.record_packet(packet)
            self.node.network.bus.publish(
                PacketTxEvent(
                    time_s=self.scheduler.now,
                    node_id=self.node.id,
                    src_address=self.node.address,
                    dst_address=self.flow.dst_address,
                    packet=packet,
                )
            )

        self._schedule_next_tx()

    def stop(self):
        """Cancels every pending event of the flow and closes its socket."""
        self.running = False
        self.sending = False
        for event in (self.start_event, self.send_event, self.period_end_event):
            self.scheduler.cancel(event)

        if self.socket is not None:
            self.socket.close()

        self.logger.info(
            f"{self.node.name} -> Flow to {self.flow.dst_address} stopped after {self.packets_sent} packets"
        )


class TrafficGenerator:
    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        network: Network,
        rng: random.Random = None,
    ):
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = network.scheduler

        self.network = network
        self.rng = rng if rng is not None else network.rng

        self.flows: list[Flow] = []
        self.applications: list[OnOffApplication] = []

        self.name = "GEN"
        self.logger = get_logger(self.name, cfg, sparams, self.scheduler)

    def draw_start_time_s(self) -> float:
        """Uniform start time in [FLOW_START_MIN_s, FLOW_START_MAX_s)."""
        low, high = self.sparams.FLOW_START_MIN_s, self.sparams.FLOW_START_MAX_s
        return low + (high - low) * self.rng.random()

    def create_flow(self, source: Node, sink: Node) -> Flow:
        return Flow(
            source=source,
            dst_address=sink.address,
            dst_port=self.sparams.SINK_PORT,
            start_time_s=self.draw_start_time_s(),
            stop_time_s=self.sparams.FLOW_STOP_s,
            on_time_s=self.sparams.ON_TIME_s,
            off_time_s=self.sparams.OFF_TIME_s,
            packet_size_bytes=self.sparams.PACKET_SIZE_bytes,
            data_rate_bps=self.sparams.FLOW_DATA_RATE_bps,
        )

    def create_scenario_flow(self, nodes: list[Node]) -> Flow | None:
        """
        Creates and schedules the flow of the scenario, from the first node to the
        address of the last one. Returns None when there is no valid sink (fewer
        than two nodes).
        """
        if len(nodes) < 2:
            self.logger.warning(
                f"{len(nodes)} node(s) in the topology: no valid sink, no flow scheduled"
            )
            return None

        flow = self.create_flow(nodes[0], nodes[-1])
        self.schedule(flow)
        return flow

    def schedule(self, flow: Flow):
        """Turns a flow into scheduler events for its start and stop."""
        app = OnOffApplication(self.cfg, self.sparams, flow, self.logger)

        self.flows.append(flow)
        self.applications.append(app)
        flow.source.add_traffic_flow(app)

        self.scheduler.schedule(app.start, flow.start_time_s)
        self.scheduler.schedule(app.stop, flow.stop_time_s)

        self.logger.info(
            f"Flow {flow.source.address} -> {flow.dst_address}:{flow.dst_port}: "
            f"start at {flow.start_time_s:.6f} s, stop at {flow.stop_time_s} s"
        )
