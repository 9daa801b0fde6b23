from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.components.network import Network, Node
from manetsim.utils.capture import PcapWriter, mac_from_index, format_mac, BROADCAST_MAC
from manetsim.utils.data_units import DataUnit, Frame
from manetsim.utils.event_logger import get_logger
from manetsim.utils.statistics import ChannelStats, DeviceStats
from manetsim.utils.transmission import (
    get_distance_m,
    get_tx_duration_s,
    get_propagation_delay_s,
)

from collections import deque

import os
import random


class RangeLossPolicy:
    """Frames are heard and delivered if and only if the receiver is within range."""

    def __init__(self, range_m: float):
        self.range_m = range_m

    def is_audible(self, distance_m: float) -> bool:
        return distance_m <= self.range_m

    def is_delivered(self, distance_m: float) -> bool:
        return True


class NoLossPolicy:
    """Every attached radio hears and receives every frame."""

    def is_audible(self, distance_m: float) -> bool:
        return True

    def is_delivered(self, distance_m: float) -> bool:
        return True


class RandomLossPolicy(RangeLossPolicy):
    """Range policy plus an independent loss probability per received frame."""

    def __init__(self, range_m: float, loss_probability: float, rng: random.Random):
        super().__init__(range_m)
        self.loss_probability = loss_probability
        self.rng = rng

    def is_delivered(self, distance_m: float) -> bool:
        return self.rng.random() >= self.loss_probability


def create_loss_policy(sparams: sparams_module, rng: random.Random):
    match sparams.LOSS_POLICY:
        case "range":
            return RangeLossPolicy(sparams.TX_RANGE_m)
        case "none":
            return NoLossPolicy()
        case "random":
            return RandomLossPolicy(
                sparams.TX_RANGE_m, sparams.PACKET_LOSS_PROBABILITY, rng
            )
        case _:
            raise ValueError(f"Unknown loss policy: {sparams.LOSS_POLICY}")


class Reception:
    def __init__(self, frame: Frame, sender, receiver, start_s: float, end_s: float):
        self.frame = frame
        self.sender: RadioDevice = sender
        self.receiver: RadioDevice = receiver
        self.start_s = start_s
        self.end_s = end_s

    def overlaps(self, other: "Reception") -> bool:
        return self.start_s < other.end_s and other.start_s < self.end_s


class NoCollisionModel:
    def is_collided(self, reception: Reception, receptions: list[Reception]) -> bool:
        return False


class OverlapCollisionModel:
    """A frame is lost when another audible reception overlaps it at the receiver."""

    def is_collided(self, reception: Reception, receptions: list[Reception]) -> bool:
        return any(
            other is not reception and other.overlaps(reception) for other in receptions
        )


COLLISION_MODELS = {
    "none": NoCollisionModel,
    "overlap": OverlapCollisionModel,
}


class RadioDevice:
    """
    Per-node radio. Queues outgoing frames and accesses the shared channel with
    carrier sense (DIFS) and collision avoidance (random backoff when the medium
    is busy).
    """

    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        node: Node,
        channel: "Channel",
        index: int,
    ):
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = node.scheduler

        self.node = node
        self.channel = channel

        self.id = 0  # Device index within the node
        self.index = index  # Device index within the channel
        self.mac = mac_from_index(index)

        self.tx_queue: deque[Frame] = deque()
        self.transmitting = False
        self.access_event = None

        self.receptions: list[Reception] = []  # Audible receptions, for collision models

        self.capture: PcapWriter = None

        self.stats = DeviceStats()

        self.name = "DEVICE"
        self.logger = get_logger(self.name, cfg, sparams, self.scheduler)

    @property
    def address(self) -> str:
        return self.node.address

    def enable_capture(self, prefix: str, path: str):
        filepath = os.path.join(path, f"{prefix}-{self.node.id}-{self.id}.pcap")
        self.capture = PcapWriter(self.cfg, self.sparams, filepath, self.scheduler)

    def send(self, data_unit: DataUnit, next_hop_address: str) -> bool:
        """Queues a data unit for transmission to the next hop (or broadcast)."""
        if len(self.tx_queue) >= self.sparams.MAX_TX_QUEUE_SIZE_pkts:
            self.stats.frames_dropped_queue_lim += 1
            self.logger.warning(
                f"{self.node.name} -> Tx queue full, dropping {data_unit}"
            )
            return False

        frame = Frame(data_unit, self.address, next_hop_address, self.scheduler.now)
        self.tx_queue.append(frame)
        self.logger.debug(f"{self.node.name} -> Queued {frame} for {next_hop_address}")

        self._request_access()
        return True

    def _request_access(self):
        if self.transmitting or not self.tx_queue:
            return
        if self.access_event is not None and self.access_event.pending:
            return

        now = self.scheduler.now
        idle_at_s = self.channel.get_busy_until_s(self)

        if idle_at_s <= now:
            access_time_s = now + self.sparams.DIFS_s
        else:
            backoff_slots = self.node.network.rng.randint(0, self.sparams.CW_MIN)
            access_time_s = (
                idle_at_s + self.sparams.DIFS_s + backoff_slots * self.sparams.SLOT_TIME_s
            )

        self.access_event = self.scheduler.schedule(self._access_medium, access_time_s)

    def _access_medium(self):
        self.access_event = None

        # The medium may have become busy while waiting
        if self.channel.get_busy_until_s(self) > self.scheduler.now:
            self._request_access()
            return

        frame = self.tx_queue.popleft()
        self.transmitting = True

        tx_duration_s = self.channel.transmit(self, frame, frame.dst_address)

        self.stats.frames_tx += 1
        self.stats.tx_bytes += frame.size_bytes
        self.capture_frame(frame, self.mac, self.channel.get_mac(frame.dst_address))

        self.scheduler.schedule_in(tx_duration_s, self._tx_completed)

    def _tx_completed(self):
        self.transmitting = False
        self._request_access()

    def capture_frame(self, frame: Frame, src_mac: bytes, dst_mac: bytes):
        if self.capture is not None:
            self.capture.write(self.scheduler.now, frame, src_mac, dst_mac)

    def receive(self, frame: Frame, sender: "RadioDevice"):
        frame.reception_time_s = self.scheduler.now

        self.stats.frames_rx += 1
        self.stats.rx_bytes += frame.size_bytes
        self.capture_frame(frame, sender.mac, self.channel.get_mac(frame.dst_address))

        self.logger.debug(
            f"{self.node.name} -> Received {frame} from {sender.node.name}"
        )

        if self.node.routing is not None:
            self.node.routing.receive(frame.data_unit, frame.src_address)

    def close(self):
        if self.capture is not None:
            self.capture.close()

    def __repr__(self):
        return f"RadioDevice({self.node.name}, mac={format_mac(self.mac)})"


class Channel:
    """Shared wireless medium connecting every radio device."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, network: Network):
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = network.scheduler

        self.network = network

        self.devices: list[RadioDevice] = []
        self.devices_by_address: dict[str, RadioDevice] = {}

        self.loss_policy = create_loss_policy(sparams, network.rng)
        self.collision_model = COLLISION_MODELS[sparams.COLLISION_MODEL]()

        self.transmissions = []  # Ongoing (device, start_s, end_s)

        self.stats = ChannelStats()

        self.name = "MEDIUM"
        self.logger = get_logger(self.name, cfg, sparams, self.scheduler)

    def attach(self, node: Node) -> RadioDevice:
        """Creates the radio device of a node and connects it to this channel."""
        if node.device is not None:
            self.logger.warning(f"{node.name} already has a radio device")
            return node.device

        device = RadioDevice(self.cfg, self.sparams, node, self, len(self.devices))

        for other in self.devices:
            if self.loss_policy.is_audible(self.get_distance_m(device, other)):
                self.network.add_link(node.id, other.node.id)

        self.devices.append(device)
        node.device = device

        self.logger.debug(f"Attached {device} ({self.sparams.DATA_RATE_bps / 1e6:g} Mbps)")
        return device

    def register_address(self, device: RadioDevice):
        self.devices_by_address[device.address] = device

    def get_mac(self, address: str) -> bytes:
        device = self.devices_by_address.get(address)
        return device.mac if device is not None else BROADCAST_MAC

    @staticmethod
    def get_distance_m(device_1: RadioDevice, device_2: RadioDevice) -> float:
        return get_distance_m(device_1.node.position, device_2.node.position)

    def get_busy_until_s(self, device: RadioDevice) -> float:
        """Returns when the medium sensed by a device becomes idle (now or earlier if idle)."""
        now = self.scheduler.now
        self.transmissions = [t for t in self.transmissions if t[2] > now]

        busy_until_s = 0.0
        for sender, start_s, end_s in self.transmissions:
            if sender is device or self.loss_policy.is_audible(
                self.get_distance_m(sender, device)
            ):
                busy_until_s = max(busy_until_s, end_s)
        return busy_until_s

    def transmit(self, device: RadioDevice, frame: Frame, destination_address: str) -> float:
        """
        Puts a frame on the air and schedules its delivery at every receiver that
        is addressed and within reach, after the transmission and propagation delays.

        Returns:
            float: The transmission duration in seconds.
        """
        now = self.scheduler.now
        tx_duration_s = get_tx_duration_s(self.sparams, frame.size_bytes)

        self.transmissions.append((device, now, now + tx_duration_s))

        self.stats.frames_tx += 1
        self.stats.airtime_s += tx_duration_s

        self.logger.header(
            f"Transmitting {frame} from {device.node.name} to {destination_address}..."
        )

        for receiver in self.devices:
            if receiver is device:
                continue

            distance_m = self.get_distance_m(device, receiver)
            if not self.loss_policy.is_audible(distance_m):
                continue

            start_s = now + get_propagation_delay_s(self.sparams, distance_m)
            reception = Reception(frame, device, receiver, start_s, start_s + tx_duration_s)

            receiver.receptions = [r for r in receiver.receptions if r.end_s > now]
            receiver.receptions.append(reception)

            if frame.is_broadcast or receiver.address == destination_address:
                self.scheduler.schedule(
                    self._deliver, reception.end_s, reception, distance_m
                )

        return tx_duration_s

    def _deliver(self, reception: Reception, distance_m: float):
        receiver = reception.receiver

        if not self.loss_policy.is_delivered(distance_m):
            self.stats.frames_lost += 1
            self.logger.debug(f"{reception.frame} lost on the way to {receiver.node.name}")
            return

        if self.collision_model.is_collided(reception, receiver.receptions):
            self.stats.frames_collided += 1
            self.logger.warning(
                f"{reception.frame} from {reception.sender.node.name} collided at {receiver.node.name}"
            )
            return

        self.stats.frames_delivered += 1
        receiver.receive(reception.frame, reception.sender)

    def close(self):
        for device in self.devices:
            device.close()
