from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.components.network import Network, Node
from manetsim.components.routing import create_routing_protocol
from manetsim.utils.errors import AddressPoolExhaustedError, SetupError
from manetsim.utils.event_logger import get_logger

import ipaddress
import os


class AddressAssignment:
    """Result of a stack installation: which address each node received."""

    def __init__(self, network: ipaddress.IPv4Network):
        self.network = network
        self.addresses: dict[int, str] = {}  # Node id -> address

    def add(self, node_id: int, address: str):
        self.addresses[node_id] = address

    def get_address(self, node_id: int) -> str | None:
        return self.addresses.get(node_id)

    def __contains__(self, address: str) -> bool:
        return ipaddress.IPv4Address(address) in self.network

    def __len__(self):
        return len(self.addresses)

    def __iter__(self):
        return iter(self.addresses.items())

    def __repr__(self):
        return f"AddressAssignment({self.network}, nodes={len(self.addresses)})"


class ProtocolStackInstaller:
    """Assigns an address and a routing protocol instance to every node."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, network: Network):
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = network.scheduler

        self.network = network

        self.protocol_id: str = None
        self.snapshots_written = 0

        self.name = "STACK"
        self.logger = get_logger(self.name, cfg, sparams, self.scheduler)

    def install(
        self, nodes: list[Node], subnet_base: str, subnet_mask: str, protocol_id: str
    ) -> AddressAssignment:
        """
        Installs the protocol stack on every node.

        Addresses are drawn in order from the host addresses of the subnet
        (10.0.0.1, 10.0.0.2, ... for 10.0.0.0/255.0.0.0), so node i gets the
        (i+1)-th host address.

        Raises:
            SetupError: If the subnet or the protocol identifier is invalid.
            AddressPoolExhaustedError: If the subnet has fewer host addresses than nodes.
        """
        try:
            subnet = ipaddress.IPv4Network(f"{subnet_base}/{subnet_mask}")
        except ValueError as e:
            raise SetupError(f"Invalid subnet {subnet_base}/{subnet_mask}: {e}") from e

        # Also excludes the network and broadcast addresses
        pool_size = (
            subnet.num_addresses - 2 if subnet.prefixlen < 31 else subnet.num_addresses
        )
        if pool_size < len(nodes):
            raise AddressPoolExhaustedError(
                f"Subnet {subnet} has {pool_size} host addresses for {len(nodes)} nodes"
            )

        if self.network.medium is None and nodes:
            raise SetupError("Radio devices must be attached before installing the stack")

        self.protocol_id = protocol_id
        assignment = AddressAssignment(subnet)

        for node, host in zip(nodes, subnet.hosts()):
            node.assign_address(str(host))
            self.network.register_address(node)
            self.network.medium.register_address(node.device)
            assignment.add(node.id, node.address)
            self.logger.debug(f"{node.name} -> Address {node.address}")

        for node in nodes:
            try:
                node.routing = create_routing_protocol(
                    protocol_id, self.cfg, self.sparams, node, self.network
                )
            except KeyError as e:
                raise SetupError(str(e)) from e

        for node in nodes:
            node.routing.start()

        self.logger.info(
            f"Installed {protocol_id} on {len(nodes)} nodes, addresses in {subnet}"
        )

        if self.cfg.PRINT_ROUTES and nodes:
            self.schedule_routes_dump(nodes)

        return assignment

    def schedule_routes_dump(self, nodes: list[Node]):
        """Schedules the routing table dump of every node at the snapshot time."""
        time_s = self.sparams.ROUTES_PRINT_TIME_s
        filepath = os.path.join(self.cfg.OUTPUT_PATH, f"{self.protocol_id}.routes")

        # Start from an empty file, each dump is appended
        try:
            os.makedirs(self.cfg.OUTPUT_PATH, exist_ok=True)
            open(filepath, "w").close()
        except OSError as e:
            self.logger.warning(f"Cannot create routes file {filepath}: {e}")
            return

        handle = self.scheduler.schedule(self._dump_routes, time_s, nodes, filepath)
        if handle.dropped:
            self.logger.warning(
                f"Routes dump at t = {time_s} s is beyond the simulation time, skipped"
            )

    def _dump_routes(self, nodes: list[Node], filepath: str):
        try:
            with open(filepath, "a") as file:
                for node in nodes:
                    node.routing.print_routing_table(file)
            self.snapshots_written += 1
            self.logger.info(f"Routing tables dumped to {filepath}")
        except OSError as e:
            self.logger.warning(f"Dropped routing table dump to {filepath}: {e}")

        if self.sparams.ROUTES_PRINT_INTERVAL_s:
            self.scheduler.schedule_in(
                self.sparams.ROUTES_PRINT_INTERVAL_s, self._dump_routes, nodes, filepath
            )
