from manetsim.sim_params import SimParams as sparams_module
from manetsim.user_config import UserConfig as cfg_module

from manetsim.components.network import Network, Node
from manetsim.components.scheduler import Scheduler
from manetsim.utils.data_units import Packet
from manetsim.utils.event_logger import get_logger
from manetsim.utils.events import PacketRxEvent

from collections import deque
from typing import Callable

EPHEMERAL_PORT_START = 49153


class UdpSocket:
    """Datagram endpoint of a node: no connection state, no delivery guarantees."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, scheduler: Scheduler, node: Node):
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = scheduler

        self.node = node

        self.local_port: int = None
        self.remote: tuple[str, int] = None  # (address, port) of connect()

        self.rx_queue: deque[tuple[Packet, str | None]] = deque()
        self.recv_callback: Callable = None

        self.packet_id = 0

        self.name = "APP"
        self.logger = get_logger(self.name, cfg, sparams, scheduler)

    def bind(self, port: int = 0):
        """
        Binds the socket to a local port. Port 0 picks the first free ephemeral port.

        Raises:
            EndpointBindError: If the port is already bound on this node.
        """
        if port == 0:
            port = EPHEMERAL_PORT_START
            while port in self.node.sockets:
                port += 1

        self.node.bind_socket(self, port)
        self.local_port = port
        self.logger.debug(f"{self.node.name} -> Socket bound to port {port}")

    def connect(self, address: str, port: int):
        if self.local_port is None:
            self.bind()
        self.remote = (address, port)

    def set_recv_callback(self, callback: Callable):
        self.recv_callback = callback

    def send(self, size_bytes: int) -> Packet | None:
        """Sends a datagram to the connected peer. Returns the packet, or None if it was refused."""
        if self.remote is None:
            self.logger.warning(f"{self.node.name} -> Socket is not connected")
            return None
        return self.send_to(size_bytes, *self.remote)

    def send_to(self, size_bytes: int, address: str, port: int) -> Packet | None:
        if self.local_port is None:
            self.bind()

        self.packet_id += 1
        packet = Packet(
            id=self.packet_id,
            size_bytes=size_bytes,
            src_address=self.node.address,
            dst_address=address,
            creation_time_s=self.scheduler.now,
            src_port=self.local_port,
            dst_port=port,
        )

        if not self.node.send(packet):
            self.node.tx_stats.add_failed_packet(packet)
            self.logger.debug(f"{self.node.name} -> Send failed for {packet}")
            return None

        self.node.tx_stats.add_packet(packet)
        return packet

    def enqueue(self, packet: Packet, src_address: str | None):
        """Called by the node when a datagram for the bound port arrives."""
        self.rx_queue.append((packet, src_address))
        if self.recv_callback is not None:
            self.recv_callback(self)

    def recv_from(self) -> tuple[Packet, str | None] | None:
        return self.rx_queue.popleft() if self.rx_queue else None

    def close(self):
        if self.local_port is not None:
            self.node.unbind_socket(self.local_port)
            self.local_port = None

    def __repr__(self):
        return f"UdpSocket({self.node.name}, port={self.local_port})"


class PacketSink:
    """Passive receive endpoint: drains its socket and raises a receive event per packet."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, node: Node, port: int):
        self.cfg = cfg
        self.sparams = sparams

        self.node = node

        self.socket = node.create_socket()
        self.socket.bind(port)
        self.socket.set_recv_callback(self.receive)

        self.received = 0

    def receive(self, socket: UdpSocket):
        while (item := socket.recv_from()) is not None:
            packet, src_address = item
            self.received += 1
            self.node.rx_stats.add_packet(packet)
            self.node.network.bus.publish(
                PacketRxEvent(
                    time_s=self.node.scheduler.now,
                    node_id=self.node.id,
                    src_address=src_address,
                    packet=packet,
                )
            )


def install_sinks(
    cfg: cfg_module, sparams: sparams_module, network: Network, port: int = None
) -> list[PacketSink]:
    """Opens a packet sink on every node, so any node can act as the flow destination."""
    port = port if port is not None else sparams.SINK_PORT
    return [PacketSink(cfg, sparams, node, port) for node in network.get_nodes()]
