from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.components.network import Network, Node
from manetsim.utils.data_units import BROADCAST_ADDRESS, DataUnit, Packet
from manetsim.utils.event_logger import get_logger

from typing import Callable, TextIO

import networkx as nx


class RoutingProtocol:
    """
    Capability interface of a routing protocol instance bound to one node.

    Implementations provide route lookup (`lookup`), the hooks used to send
    local packets and handle received data units (`send`, `receive`), periodic
    maintenance (`maintain`) and a human-readable routing table dump.
    """

    MAINTENANCE_INTERVAL_s = None  # Period of maintain(); None disables it

    def __init__(self, cfg: cfg_module, sparams: sparams_module, node: Node, network: Network):
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = network.scheduler

        self.node = node
        self.network = network

        self.packets_forwarded = 0
        self.packets_dropped = 0

        self.name = "ROUTING"
        self.logger = get_logger(self.name, cfg, sparams, self.scheduler)

    @property
    def address(self) -> str:
        return self.node.address

    def start(self):
        """Called once every node has an address and a radio device."""
        if self.MAINTENANCE_INTERVAL_s:
            self.scheduler.schedule_in(self.MAINTENANCE_INTERVAL_s, self._maintenance_tick)

    def _maintenance_tick(self):
        self.maintain()
        self.scheduler.schedule_in(self.MAINTENANCE_INTERVAL_s, self._maintenance_tick)

    def lookup(self, dst_address: str) -> str | None:
        """Returns the next hop towards a destination, or None if there is no usable route."""
        raise NotImplementedError

    def send(self, packet: Packet) -> bool:
        """Routes a locally generated packet. Returns False if it could not be accepted."""
        if packet.dst_address == self.address:
            self.scheduler.schedule_in(0, self.node.deliver, packet, packet.src_address)
            return True

        if packet.dst_address == BROADCAST_ADDRESS:
            return self.node.device.send(packet, BROADCAST_ADDRESS)

        next_hop = self.lookup(packet.dst_address)
        if next_hop is None:
            self.packets_dropped += 1
            self.logger.warning(
                f"{self.node.name} -> No route to {packet.dst_address}, dropping {packet}"
            )
            return False
        return self.node.device.send(packet, next_hop)

    def receive(self, data_unit: DataUnit, sender: str):
        """Handles a data unit received by the radio device of the node."""
        if isinstance(data_unit, Packet):
            self.receive_packet(data_unit, sender)
        else:
            self.logger.debug(
                f"{self.node.name} -> Ignoring {data_unit.type} from {sender}"
            )

    def receive_packet(self, packet: Packet, sender: str):
        if packet.dst_address in (self.address, BROADCAST_ADDRESS):
            self.node.deliver(packet, packet.src_address)
        else:
            self.forward(packet)

    def forward(self, packet: Packet) -> bool:
        packet.ttl -= 1
        if packet.ttl <= 0:
            self.packets_dropped += 1
            self.logger.warning(f"{self.node.name} -> TTL expired, dropping {packet}")
            return False

        next_hop = self.lookup(packet.dst_address)
        if next_hop is None:
            self.packets_dropped += 1
            self.logger.warning(
                f"{self.node.name} -> Cannot forward {packet}: no route to {packet.dst_address}"
            )
            return False

        packet.hops += 1
        self.packets_forwarded += 1
        self.logger.debug(f"{self.node.name} -> Forwarding {packet} via {next_hop}")
        return self.node.device.send(packet, next_hop)

    def maintain(self):
        pass

    def print_routing_table(self, stream: TextIO):
        raise NotImplementedError


class StaticRoutingProtocol(RoutingProtocol):
    """Shortest-path routes over the radio link graph, computed once at start."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, node: Node, network: Network):
        super().__init__(cfg, sparams, node, network)

        self.routes: dict[str, tuple[str, int]] = {}  # Destination -> (next hop, hops)

    def start(self):
        super().start()

        paths = nx.single_source_shortest_path(self.network.graph, self.node.id)
        for dst_id, path in paths.items():
            if dst_id == self.node.id:
                continue
            dst_address = self.network.nodes[dst_id].address
            next_hop_address = self.network.nodes[path[1]].address
            self.routes[dst_address] = (next_hop_address, len(path) - 1)

        self.logger.debug(f"{self.node.name} -> {len(self.routes)} static routes")

    def lookup(self, dst_address: str) -> str | None:
        route = self.routes.get(dst_address)
        return route[0] if route is not None else None

    def print_routing_table(self, stream: TextIO):
        stream.write(
            f"Node: {self.node.id}; Time: {self.scheduler.now:g}s, Static routing table\n"
        )
        stream.write(f"{'Destination':<20}{'Gateway':<20}{'Interface':<20}{'Hops'}\n")
        for dst_address, (next_hop, hops) in sorted(self.routes.items()):
            stream.write(f"{dst_address:<20}{next_hop:<20}{self.address:<20}{hops}\n")
        stream.write("\n")


ROUTING_PROTOCOLS: dict[str, Callable] = {}


def register_routing_protocol(name: str, factory: Callable):
    """
    Registers a routing protocol factory under a name.

    The factory is called as factory(cfg, sparams, node, network) and must return
    a RoutingProtocol instance.
    """
    ROUTING_PROTOCOLS[name] = factory


def get_routing_protocols() -> list[str]:
    return sorted(ROUTING_PROTOCOLS)


def create_routing_protocol(
    name: str, cfg: cfg_module, sparams: sparams_module, node: Node, network: Network
) -> RoutingProtocol:
    if name not in ROUTING_PROTOCOLS:
        raise KeyError(
            f"Unknown routing protocol '{name}'. Available: {', '.join(get_routing_protocols())}"
        )
    return ROUTING_PROTOCOLS[name](cfg, sparams, node, network)


register_routing_protocol("static", StaticRoutingProtocol)
