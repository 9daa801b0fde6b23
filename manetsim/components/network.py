from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.components.scheduler import Scheduler
from manetsim.utils.errors import EndpointBindError
from manetsim.utils.event_logger import get_logger
from manetsim.utils.events import EventBus
from manetsim.utils.statistics import TransmissionStats, ReceptionStats, NetworkStats
from manetsim.utils.transmission import get_distance_m

import networkx as nx
import random


class Node:
    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        scheduler: Scheduler,
        id: int,
        position: tuple[float, float, float],
        network,
    ):
        """Initializes an individual network node object."""
        from manetsim.components.medium import RadioDevice
        from manetsim.components.routing import RoutingProtocol
        from manetsim.components.app import UdpSocket

        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = scheduler

        self.id = id
        self.name = f"node-{id}"
        self._position = position  # x, y, z

        self.network: Network = network

        self.device: RadioDevice = None
        self._address: str = None
        self.routing: RoutingProtocol = None

        self.sockets: dict[int, UdpSocket] = {}  # Bound sockets by port

        self.tx_stats = TransmissionStats()
        self.rx_stats = ReceptionStats()

        self.traffic_flows = []

        self.logger = get_logger("NODE", cfg, sparams, scheduler)

    @property
    def position(self) -> tuple[float, float, float]:
        return self._position

    @property
    def address(self) -> str:
        return self._address

    def assign_address(self, address: str):
        """Assigns the network address of the node. An address can only be assigned once."""
        if self._address is not None:
            raise RuntimeError(f"{self.name} already has address {self._address}")
        self._address = address

    def create_socket(self):
        from manetsim.components.app import UdpSocket

        return UdpSocket(self.cfg, self.sparams, self.scheduler, self)

    def bind_socket(self, socket, port: int):
        if port in self.sockets:
            raise EndpointBindError(
                f"{self.name} -> Port {port} is already bound by another socket"
            )
        self.sockets[port] = socket

    def unbind_socket(self, port: int):
        self.sockets.pop(port, None)

    def send(self, packet) -> bool:
        """Hands a locally generated packet to the routing protocol. Returns False if it was refused."""
        if self.routing is None or self.device is None:
            self.logger.warning(f"{self.name} -> No protocol stack installed, dropping {packet}")
            return False
        return self.routing.send(packet)

    def deliver(self, packet, src_address: str | None):
        """Delivers a packet addressed to this node to the socket bound to its destination port."""
        packet.reception_time_s = self.scheduler.now
        socket = self.sockets.get(packet.dst_port)
        if socket is None:
            self.logger.debug(
                f"{self.name} -> No socket bound to port {packet.dst_port}, dropping {packet}"
            )
            return
        socket.enqueue(packet, src_address)

    def add_traffic_flow(self, traffic_flow):
        self.traffic_flows.append(traffic_flow)
        self.logger.debug(
            f"{self.name} -> Added traffic source: {traffic_flow.__class__.__name__}"
        )

    def __repr__(self):
        return f"{self.__class__.__name__}({self.id}, pos={self.position}, address={self.address})"


class Network:
    """
    Setup context of a simulation run.

    Holds the node registry, the shared medium, the event bus and the harness
    random generator. Nodes and links are only added during the setup phase.
    """

    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        scheduler: Scheduler,
        rng: random.Random = None,
    ):
        from manetsim.components.medium import Channel

        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = scheduler

        self.rng = rng if rng is not None else random.Random(cfg.SEED)

        self.bus = EventBus()

        self.graph = nx.Graph()

        self.nodes: dict[int, Node] = {}
        self.addresses = {}  # Network address -> Node

        self.medium: Channel = None

        self.assignment = None  # AddressAssignment of the installed protocol stack
        self.sinks = []  # Packet sinks opened on every node

        self.stats = NetworkStats(cfg, sparams, self)

        self.name = "NETWORK"
        self.logger = get_logger(self.name, cfg, sparams, scheduler)

    def add_node(self, node_id: int, position: tuple[float, float, float]) -> Node:
        if node_id in self.nodes:
            self.logger.warning(
                f"Node {node_id} already exists in the network... Returning existing node."
            )
            return self.nodes[node_id]

        self.logger.debug(f"Adding node {node_id} at position {position}")
        node = Node(self.cfg, self.sparams, self.scheduler, node_id, position, self)
        self.nodes[node_id] = node
        self.graph.add_node(node_id, pos=position, name=node.name)
        return node

    def add_link(self, node1_id: int, node2_id: int):
        """Records that two nodes are within radio range of each other."""
        self.graph.add_edge(
            node1_id,
            node2_id,
            distance=self.get_distance_between_nodes(node1_id, node2_id),
        )

    def register_address(self, node: Node):
        self.addresses[node.address] = node

    def get_node(self, node_id: int) -> Node:
        if node_id not in self.nodes:
            self.logger.error(f"Node {node_id} not found")
            return None
        return self.nodes[node_id]

    def get_node_by_address(self, address: str) -> Node | None:
        return self.addresses.get(address)

    def get_nodes(self) -> list[Node]:
        return list(self.nodes.values())

    def get_node_pos(self, node_id: int) -> tuple[float, float, float]:
        return self.graph.nodes[node_id]["pos"]

    def get_distance_between_nodes(self, node1_id: int, node2_id: int) -> float:
        return get_distance_m(self.get_node_pos(node1_id), self.get_node_pos(node2_id))

    def __len__(self):
        return len(self.nodes)

    def __repr__(self):
        return f"Network(nodes={len(self.nodes)}, links={self.graph.number_of_edges()})"


class TopologyBuilder:
    """Creates the node set and places the nodes on a row-major grid."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, network: Network):
        self.cfg = cfg
        self.sparams = sparams

        self.network = network

        self.name = "NETWORK"
        self.logger = get_logger(self.name, cfg, sparams, network.scheduler)

    @staticmethod
    def grid_position(
        index: int, step_m: float, grid_width: int
    ) -> tuple[float, float, float]:
        """Position of the node with the given index: ((i mod W)*step, (i div W)*step)."""
        return (
            float((index % grid_width) * step_m),
            float((index // grid_width) * step_m),
            0.0,
        )

    def build(self, size: int, step_m: float, grid_width: int = None) -> list[Node]:
        """
        Creates `size` nodes spaced `step_m` meters apart.

        Args:
            size (int): Number of nodes. Zero yields an empty topology.
            step_m (float): Grid step in meters.
            grid_width (int, optional): Nodes per row. Defaults to `size` (a single line).

        Returns:
            list[Node]: The created nodes, ordered by index.
        """
        grid_width = grid_width or max(size, 1)

        self.logger.info(f"Creating {size} nodes {step_m} m apart.")

        return [
            self.network.add_node(i, self.grid_position(i, step_m, grid_width))
            for i in range(size)
        ]
