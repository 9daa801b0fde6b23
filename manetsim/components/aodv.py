from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.components.network import Network, Node
from manetsim.components.routing import RoutingProtocol, register_routing_protocol
from manetsim.utils.data_units import BROADCAST_ADDRESS, DataUnit, Packet, RREQ, RREP

from collections import deque
from typing import TextIO

DELETE_PERIOD_FACTOR = 5  # Invalid routes are kept DELETE_PERIOD = K * ACTIVE_ROUTE_TIMEOUT


class RouteEntry:
    def __init__(
        self,
        dst: str,
        next_hop: str,
        hop_count: int,
        seq_no: int,
        valid_seq_no: bool,
        expiry_s: float,
    ):
        self.dst = dst
        self.next_hop = next_hop
        self.hop_count = hop_count
        self.seq_no = seq_no
        self.valid_seq_no = valid_seq_no
        self.expiry_s = expiry_s
        self.valid = True

    @property
    def flag(self) -> str:
        return "UP" if self.valid else "DOWN"

    def __repr__(self):
        return f"RouteEntry(dst={self.dst}, via={self.next_hop}, hops={self.hop_count}, seq={self.seq_no}, {self.flag})"


class AodvRoutingProtocol(RoutingProtocol):
    """
    Ad hoc On-Demand Distance Vector routing.

    Routes are discovered only when a node has data for a destination it has no
    valid route to: a RREQ is flooded (duplicates are suppressed by origin and
    request id), every node on the way learns a reverse route to the originator,
    and the destination (or a node with a fresh enough route) unicasts a RREP back
    along the reverse path, installing the forward route. Data waiting for a
    route is buffered and flushed when the RREP reaches the originator.
    """

    def __init__(self, cfg: cfg_module, sparams: sparams_module, node: Node, network: Network):
        super().__init__(cfg, sparams, node, network)

        self.MAINTENANCE_INTERVAL_s = sparams.MAINTENANCE_INTERVAL_s

        self.rng = network.rng

        self.seq_no = 0
        self.rreq_id = 0

        self.routing_table: dict[str, RouteEntry] = {}
        self.seen_rreqs: dict[tuple[str, int], float] = {}  # (origin, id) -> expiry

        self.pending: dict[str, deque] = {}  # Destination -> (packet, queued time)
        self.discoveries: dict[str, list] = {}  # Destination -> [retries, timeout handle]

        self.rreq_sent = 0
        self.rrep_sent = 0

    # --- Route table --- #

    def lookup(self, dst_address: str) -> str | None:
        entry = self.routing_table.get(dst_address)
        if entry is None or not entry.valid or entry.expiry_s <= self.scheduler.now:
            return None
        return entry.next_hop

    def _refresh(self, dst_address: str):
        """Extends the lifetime of an active route that is being used."""
        entry = self.routing_table.get(dst_address)
        if entry is not None and entry.valid:
            entry.expiry_s = max(
                entry.expiry_s, self.scheduler.now + self.sparams.ACTIVE_ROUTE_TIMEOUT_s
            )

    def _update_route(
        self,
        dst: str,
        next_hop: str,
        hop_count: int,
        seq_no: int,
        valid_seq_no: bool,
        lifetime_s: float,
    ) -> RouteEntry:
        """
        Creates or updates the route to a destination. An existing route is only
        replaced by fresher information (higher sequence number, or the same one
        with fewer hops) or when it is invalid or its sequence number is unknown.
        """
        now = self.scheduler.now
        entry = self.routing_table.get(dst)

        if entry is None:
            entry = RouteEntry(dst, next_hop, hop_count, seq_no, valid_seq_no, now + lifetime_s)
            self.routing_table[dst] = entry
            self.logger.debug(f"{self.node.name} -> New route {entry}")
            return entry

        fresher = (
            not entry.valid
            or entry.expiry_s <= now
            or not entry.valid_seq_no
            or (valid_seq_no and seq_no > entry.seq_no)
            or (valid_seq_no and seq_no == entry.seq_no and hop_count < entry.hop_count)
        )
        if fresher:
            entry.next_hop = next_hop
            entry.hop_count = hop_count
            if valid_seq_no:
                entry.seq_no = seq_no
                entry.valid_seq_no = True
            entry.valid = True
            entry.expiry_s = max(entry.expiry_s, now + lifetime_s)
            self.logger.debug(f"{self.node.name} -> Updated route {entry}")
        elif entry.next_hop == next_hop:
            entry.expiry_s = max(entry.expiry_s, now + lifetime_s)

        return entry

    def _update_neighbor(self, neighbor: str):
        entry = self.routing_table.get(neighbor)
        self._update_route(
            neighbor,
            neighbor,
            1,
            entry.seq_no if entry is not None else 0,
            False,
            self.sparams.ACTIVE_ROUTE_TIMEOUT_s,
        )

    # --- Sending --- #

    def send(self, packet: Packet) -> bool:
        if packet.dst_address in (self.address, BROADCAST_ADDRESS):
            return super().send(packet)

        next_hop = self.lookup(packet.dst_address)
        if next_hop is not None:
            self._refresh(packet.dst_address)
            self._refresh(next_hop)
            return self.node.device.send(packet, next_hop)

        return self._buffer(packet)

    def _buffer(self, packet: Packet) -> bool:
        queued = sum(len(q) for q in self.pending.values())
        if queued >= self.sparams.MAX_QUEUE_LEN_pkts:
            self.packets_dropped += 1
            self.logger.warning(
                f"{self.node.name} -> Route discovery queue full, dropping {packet}"
            )
            return False

        self.pending.setdefault(packet.dst_address, deque()).append(
            (packet, self.scheduler.now)
        )
        self.logger.debug(
            f"{self.node.name} -> Buffered {packet} waiting for a route to {packet.dst_address}"
        )

        if packet.dst_address not in self.discoveries:
            self._send_rreq(packet.dst_address, retries=0)
        return True

    def _broadcast(self, data_unit: DataUnit):
        self.node.device.send(data_unit, BROADCAST_ADDRESS)

    def _send_rreq(self, dst: str, retries: int):
        self.seq_no += 1
        self.rreq_id += 1

        entry = self.routing_table.get(dst)
        known_seq_no = entry is not None and entry.valid_seq_no

        rreq = RREQ(
            origin=self.address,
            origin_seq_no=self.seq_no,
            rreq_id=self.rreq_id,
            dst=dst,
            dst_seq_no=entry.seq_no if known_seq_no else 0,
            creation_time_s=self.scheduler.now,
            unknown_seq_no=not known_seq_no,
        )
        self.seen_rreqs[(self.address, self.rreq_id)] = (
            self.scheduler.now + self.sparams.PATH_DISCOVERY_TIME_s
        )

        self.rreq_sent += 1
        self.logger.header(
            f"{self.node.name} -> Route discovery for {dst} (attempt {retries + 1})"
        )
        self._broadcast(rreq)

        wait_s = self.sparams.NET_TRAVERSAL_TIME_s * 2**retries
        handle = self.scheduler.schedule_in(wait_s, self._rreq_timeout, dst)
        self.discoveries[dst] = [retries, handle]

    def _rreq_timeout(self, dst: str):
        retries, _ = self.discoveries.pop(dst, (0, None))

        if self.lookup(dst) is not None:
            return

        if retries >= self.sparams.RREQ_RETRIES:
            dropped = self.pending.pop(dst, deque())
            self.packets_dropped += len(dropped)
            self.logger.warning(
                f"{self.node.name} -> Route discovery for {dst} failed, dropped {len(dropped)} packets"
            )
            return

        self._send_rreq(dst, retries + 1)

    def _flush_pending(self, dst: str):
        next_hop = self.lookup(dst)
        if next_hop is None:
            return

        queue = self.pending.pop(dst, deque())
        while queue:
            packet, _ = queue.popleft()
            self.node.device.send(packet, next_hop)
        self._refresh(dst)
        self._refresh(next_hop)

    # --- Reception --- #

    def receive(self, data_unit: DataUnit, sender: str):
        match data_unit.type:
            case "RREQ":
                self._receive_rreq(data_unit, sender)
            case "RREP":
                self._receive_rrep(data_unit, sender)
            case "DATA":
                self._refresh(sender)
                self._refresh(data_unit.src_address)
                self._refresh(data_unit.dst_address)
                next_hop = self.lookup(data_unit.dst_address)
                if next_hop is not None:
                    self._refresh(next_hop)
                self.receive_packet(data_unit, sender)
            case _:
                super().receive(data_unit, sender)

    def _receive_rreq(self, rreq: RREQ, sender: str):
        now = self.scheduler.now

        if rreq.origin == self.address:
            return

        key = (rreq.origin, rreq.rreq_id)
        if self.seen_rreqs.get(key, -1) > now:
            self.logger.debug(f"{self.node.name} -> Discarding duplicate {rreq}")
            return
        self.seen_rreqs[key] = now + self.sparams.PATH_DISCOVERY_TIME_s

        self._update_neighbor(sender)

        hop_count = rreq.hop_count + 1
        reverse_lifetime_s = (
            2 * self.sparams.NET_TRAVERSAL_TIME_s
            - 2 * hop_count * self.sparams.NODE_TRAVERSAL_TIME_s
        )
        self._update_route(
            rreq.origin, sender, hop_count, rreq.origin_seq_no, True, reverse_lifetime_s
        )

        if rreq.dst == self.address:
            self.seq_no = max(self.seq_no, rreq.dst_seq_no)
            rrep = RREP(
                origin=rreq.origin,
                dst=self.address,
                dst_seq_no=self.seq_no,
                lifetime_s=2 * self.sparams.ACTIVE_ROUTE_TIMEOUT_s,
                creation_time_s=now,
            )
            self._send_rrep(rrep, sender)
            return

        entry = self.routing_table.get(rreq.dst)
        if (
            self.lookup(rreq.dst) is not None
            and entry.valid_seq_no
            and (rreq.unknown_seq_no or entry.seq_no >= rreq.dst_seq_no)
        ):
            rrep = RREP(
                origin=rreq.origin,
                dst=rreq.dst,
                dst_seq_no=entry.seq_no,
                lifetime_s=entry.expiry_s - now,
                creation_time_s=now,
                hop_count=entry.hop_count,
            )
            self._send_rrep(rrep, sender)
            return

        if rreq.ttl <= 1:
            self.logger.debug(f"{self.node.name} -> TTL expired, not forwarding {rreq}")
            return

        forwarded = rreq.copy()
        forwarded.hop_count = hop_count
        forwarded.ttl = rreq.ttl - 1
        if entry is not None and entry.valid_seq_no and entry.seq_no > rreq.dst_seq_no:
            forwarded.dst_seq_no = entry.seq_no
            forwarded.unknown_seq_no = False

        jitter_s = self.rng.uniform(0, self.sparams.BROADCAST_JITTER_s)
        self.scheduler.schedule_in(jitter_s, self._broadcast, forwarded)

    def _send_rrep(self, rrep: RREP, next_hop: str):
        self.rrep_sent += 1
        self.logger.debug(f"{self.node.name} -> Sending {rrep} to {next_hop}")
        self.node.device.send(rrep, next_hop)

    def _receive_rrep(self, rrep: RREP, sender: str):
        self._update_neighbor(sender)

        hop_count = rrep.hop_count + 1
        self._update_route(
            rrep.dst, sender, hop_count, rrep.dst_seq_no, True, rrep.lifetime_s
        )

        if rrep.origin == self.address:
            retries, handle = self.discoveries.pop(rrep.dst, (0, None))
            if handle is not None:
                self.scheduler.cancel(handle)
            self.logger.success(
                f"{self.node.name} -> Route to {rrep.dst} discovered ({hop_count} hops)"
            )
            self._flush_pending(rrep.dst)
            return

        next_hop = self.lookup(rrep.origin)
        if next_hop is None:
            self.logger.warning(
                f"{self.node.name} -> No reverse route to {rrep.origin}, dropping {rrep}"
            )
            return

        self._refresh(rrep.origin)
        forwarded = RREP(
            origin=rrep.origin,
            dst=rrep.dst,
            dst_seq_no=rrep.dst_seq_no,
            lifetime_s=rrep.lifetime_s,
            creation_time_s=rrep.creation_time_s,
            hop_count=hop_count,
        )
        self._send_rrep(forwarded, next_hop)

    # --- Maintenance --- #

    def maintain(self):
        """Expires stale routes, request ids and buffered packets."""
        now = self.scheduler.now
        delete_period_s = DELETE_PERIOD_FACTOR * self.sparams.ACTIVE_ROUTE_TIMEOUT_s

        for dst, entry in list(self.routing_table.items()):
            if entry.expiry_s > now:
                continue
            if entry.valid:
                entry.valid = False
                entry.expiry_s = now + delete_period_s
                self.logger.debug(f"{self.node.name} -> Route to {dst} expired")
            else:
                del self.routing_table[dst]

        self.seen_rreqs = {k: t for k, t in self.seen_rreqs.items() if t > now}

        for dst, queue in list(self.pending.items()):
            while queue and now - queue[0][1] > self.sparams.MAX_QUEUE_TIME_s:
                queue.popleft()
                self.packets_dropped += 1
            if not queue:
                del self.pending[dst]

    def print_routing_table(self, stream: TextIO):
        now = self.scheduler.now
        stream.write(f"Node: {self.node.id}; Time: {now:g}s, AODV Routing table\n")
        stream.write(
            f"{'Destination':<20}{'Gateway':<20}{'Interface':<20}{'Flag':<8}{'Expire':<12}{'Hops'}\n"
        )
        for dst, entry in sorted(self.routing_table.items()):
            expire = f"{entry.expiry_s - now:.2f}s"
            stream.write(
                f"{dst:<20}{entry.next_hop:<20}{self.address:<20}{entry.flag:<8}{expire:<12}{entry.hop_count}\n"
            )
        stream.write("\n")


register_routing_protocol("aodv", AodvRoutingProtocol)
