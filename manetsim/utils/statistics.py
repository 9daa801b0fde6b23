from manetsim.sim_params import SimParams as sparams
from manetsim.user_config import UserConfig as cfg

from manetsim.utils.data_units import Packet
from manetsim.utils.event_logger import get_logger

from typing import cast

import pandas as pd
import json
import os

FLOW_KEY = ["src_address", "dst_address", "dst_port"]


def packet_record(packet: Packet) -> dict:
    return {
        "packet_id": packet.id,
        "src_address": packet.src_address,
        "dst_address": packet.dst_address,
        "src_port": packet.src_port,
        "dst_port": packet.dst_port,
        "size_bytes": packet.size_bytes,
        "creation_time_s": packet.creation_time_s,
        "reception_time_s": packet.reception_time_s,
        "hops": packet.hops,
    }


class TransmissionStats:
    def __init__(self):
        self.first_tx_time_s = None
        self.last_tx_time_s = None

        self.pkts_tx = 0  # Packets accepted by the protocol stack
        self.pkts_failed = 0  # Packets refused by the protocol stack

        self.tx_app_bytes = 0

        self.tx_packets_history: list[dict] = []

    def add_packet(self, packet: Packet):
        if self.first_tx_time_s is None:
            self.first_tx_time_s = packet.creation_time_s
        self.last_tx_time_s = packet.creation_time_s

        self.pkts_tx += 1
        self.tx_app_bytes += packet.size_bytes
        self.tx_packets_history.append(packet_record(packet))

    def add_failed_packet(self, packet: Packet):
        self.pkts_failed += 1


class ReceptionStats:
    def __init__(self):
        self.first_rx_time_s = None
        self.last_rx_time_s = None

        self.pkts_rx = 0
        self.rx_app_bytes = 0

        self.rx_packets_history: list[dict] = []

    def add_packet(self, packet: Packet):
        if self.first_rx_time_s is None:
            self.first_rx_time_s = packet.reception_time_s
        self.last_rx_time_s = packet.reception_time_s

        self.pkts_rx += 1
        self.rx_app_bytes += packet.size_bytes
        self.rx_packets_history.append(packet_record(packet))


class DeviceStats:
    def __init__(self):
        self.frames_tx = 0
        self.frames_rx = 0
        self.frames_dropped_queue_lim = 0

        self.tx_bytes = 0  # Including MAC header and FCS
        self.rx_bytes = 0


class ChannelStats:
    def __init__(self):
        self.frames_tx = 0
        self.frames_delivered = 0
        self.frames_lost = 0  # Dropped by the loss policy
        self.frames_collided = 0  # Dropped by the collision model

        self.airtime_s = 0  # Sum of the transmission durations


class NetworkStats:
    def __init__(self, cfg: cfg, sparams: sparams, network):
        from manetsim.components.network import Network

        self.cfg = cfg
        self.sparams = sparams

        self.network = network
        self.network = cast(Network, self.network)

        # Global Network Stats
        self.total_pkts_tx = 0
        self.total_pkts_rx = 0
        self.total_pkts_forwarded = 0
        self.total_pkts_dropped = 0

        self.total_frames_tx = 0
        self.total_bytes_tx = 0

        self.pkt_delivery_ratio = 0

        # Per-flow report
        self.flows = pd.DataFrame()

        # Per-node stats
        self.per_node_stats = {}

        # Medium Stats
        self.medium_stats = {}

        self.name = "STATS"
        self.logger = get_logger(self.name, cfg, sparams, self.network.scheduler)

    def collect_stats(self):
        """Aggregate statistics from all nodes and the shared medium."""
        from manetsim.components.network import Node

        now_s = self.network.scheduler.now

        tx_records, rx_records = [], []

        self.total_pkts_tx = self.total_pkts_rx = 0
        self.total_pkts_forwarded = self.total_pkts_dropped = 0
        self.total_frames_tx = self.total_bytes_tx = 0

        for node in self.network.get_nodes():
            node = cast(Node, node)
            tx_stats = node.tx_stats
            rx_stats = node.rx_stats

            tx_records.extend(tx_stats.tx_packets_history)
            rx_records.extend(rx_stats.rx_packets_history)

            self.total_pkts_tx += tx_stats.pkts_tx
            self.total_pkts_rx += rx_stats.pkts_rx

            if node.routing is not None:
                self.total_pkts_forwarded += node.routing.packets_forwarded
                self.total_pkts_dropped += node.routing.packets_dropped

            device_stats = node.device.stats if node.device is not None else None
            if device_stats is not None:
                self.total_frames_tx += device_stats.frames_tx
                self.total_bytes_tx += device_stats.tx_bytes

            self.per_node_stats[node.id] = {
                "address": node.address,
                "tx": {
                    "first_tx_time_s": tx_stats.first_tx_time_s,
                    "last_tx_time_s": tx_stats.last_tx_time_s,
                    "pkts_tx": tx_stats.pkts_tx,
                    "pkts_failed": tx_stats.pkts_failed,
                    "tx_app_bytes": tx_stats.tx_app_bytes,
                    "frames_tx": device_stats.frames_tx if device_stats else 0,
                    "frames_dropped_queue_lim": (
                        device_stats.frames_dropped_queue_lim if device_stats else 0
                    ),
                    "tx_bytes": device_stats.tx_bytes if device_stats else 0,
                },
                "rx": {
                    "first_rx_time_s": rx_stats.first_rx_time_s,
                    "last_rx_time_s": rx_stats.last_rx_time_s,
                    "pkts_rx": rx_stats.pkts_rx,
                    "rx_app_bytes": rx_stats.rx_app_bytes,
                    "frames_rx": device_stats.frames_rx if device_stats else 0,
                    "rx_bytes": device_stats.rx_bytes if device_stats else 0,
                },
                "routing": {
                    "pkts_forwarded": (
                        node.routing.packets_forwarded if node.routing else 0
                    ),
                    "pkts_dropped": node.routing.packets_dropped if node.routing else 0,
                },
            }

        self.pkt_delivery_ratio = (
            self.total_pkts_rx / self.total_pkts_tx if self.total_pkts_tx > 0 else 0
        )

        self.flows = self.get_flow_report(
            pd.DataFrame(tx_records), pd.DataFrame(rx_records)
        )

        medium = self.network.medium
        if medium is not None:
            self.medium_stats = {
                "frames_tx": medium.stats.frames_tx,
                "frames_delivered": medium.stats.frames_delivered,
                "frames_lost": medium.stats.frames_lost,
                "frames_collided": medium.stats.frames_collided,
                "airtime_s": medium.stats.airtime_s,
                "utilization": (
                    medium.stats.airtime_s / now_s * 100 if now_s > 0 else 0
                ),
            }

        if self.cfg.ENABLE_STATS_COLLECTION:
            self.save_stats()

    @staticmethod
    def get_flow_report(tx_df: pd.DataFrame, rx_df: pd.DataFrame) -> pd.DataFrame:
        """
        Builds the per-flow report. A flow is identified by its source address,
        destination address and destination port.

        Returns:
            pd.DataFrame: One row per flow with the sent and received packets, the
            delivery ratio, the mean end-to-end delay (s) and the goodput (kbps).
        """
        columns = FLOW_KEY + [
            "pkts_sent",
            "pkts_received",
            "delivery_ratio",
            "mean_delay_s",
            "goodput_kbps",
        ]
        if tx_df.empty:
            return pd.DataFrame(columns=columns)

        sent = tx_df.groupby(FLOW_KEY).agg(
            pkts_sent=("packet_id", "count"),
            first_tx_time_s=("creation_time_s", "min"),
        )

        if rx_df.empty:
            report = sent.assign(
                pkts_received=0, mean_delay_s=float("nan"), rx_app_bytes=0, last_rx_time_s=float("nan")
            )
        else:
            rx_df = rx_df.assign(
                delay_s=rx_df["reception_time_s"] - rx_df["creation_time_s"]
            )
            received = rx_df.groupby(FLOW_KEY).agg(
                pkts_received=("packet_id", "count"),
                mean_delay_s=("delay_s", "mean"),
                rx_app_bytes=("size_bytes", "sum"),
                last_rx_time_s=("reception_time_s", "max"),
            )
            report = sent.join(received, how="left")
            report["pkts_received"] = report["pkts_received"].fillna(0).astype(int)
            report["rx_app_bytes"] = report["rx_app_bytes"].fillna(0)

        report["delivery_ratio"] = report["pkts_received"] / report["pkts_sent"]

        duration_s = report["last_rx_time_s"] - report["first_tx_time_s"]
        report["goodput_kbps"] = (
            (report["rx_app_bytes"] * 8 / 1e3 / duration_s)
            .where(duration_s > 0, 0.0)
            .fillna(0.0)
        )

        return report.reset_index()[columns]

    def save_stats(self):
        """Save statistics to JSON and the per-flow report to CSV."""
        stats_data = {
            "global_stats": {
                "total_pkts_tx": self.total_pkts_tx,
                "total_pkts_rx": self.total_pkts_rx,
                "total_pkts_forwarded": self.total_pkts_forwarded,
                "total_pkts_dropped": self.total_pkts_dropped,
                "total_frames_tx": self.total_frames_tx,
                "total_bytes_tx": self.total_bytes_tx,
                "pkt_delivery_ratio": self.pkt_delivery_ratio,
            },
            "per_node_stats": self.per_node_stats,
            "medium_stats": self.medium_stats,
        }

        try:
            os.makedirs(self.cfg.STATS_SAVE_PATH, exist_ok=True)

            filepath = os.path.join(self.cfg.STATS_SAVE_PATH, "session_stats.json")
            with open(filepath, "w") as f:
                json.dump(stats_data, f, indent=4)

            self.flows.to_csv(
                os.path.join(self.cfg.STATS_SAVE_PATH, "flows.csv"), index=False
            )
        except OSError as e:
            self.logger.warning(f"Could not save statistics: {e}")
            return

        self.logger.info(f"Statistics saved to {self.cfg.STATS_SAVE_PATH}")

    def display_stats(self):
        """Print a summary of network statistics."""
        print("\033[93m" + "Network Statistics Summary:" + "\033[0m")
        print(f"Total Packets Transmitted: {self.total_pkts_tx}")
        print(f"Total Packets Received: {self.total_pkts_rx}")
        print(f"Total Packets Forwarded: {self.total_pkts_forwarded}")
        print(f"Total Packets Dropped: {self.total_pkts_dropped}")
        print(f"Total Frames Transmitted: {self.total_frames_tx}")
        print(f"Total Bytes Transmitted: {self.total_bytes_tx}")
        print(f"Packet Delivery Ratio: {self.pkt_delivery_ratio:.5%}")

        print("\033[93m" + "\nPer-Flow Stats:" + "\033[0m")
        for flow in self.flows.itertuples(index=False):
            print(f"  {flow.src_address} -> {flow.dst_address}:{flow.dst_port}")
            print(
                f"    Packets Sent: {flow.pkts_sent}, Packets Received: {flow.pkts_received} ({flow.delivery_ratio:.2%})"
            )
            print(f"    Mean Delay: {flow.mean_delay_s * 1e3:.3f} ms")
            print(f"    Goodput: {flow.goodput_kbps:.2f} kbps")

        if self.medium_stats:
            print("\033[93m" + "\nMedium Stats:" + "\033[0m")
            print(
                f"  Frames TX: {self.medium_stats['frames_tx']}, "
                f"Delivered: {self.medium_stats['frames_delivered']}, "
                f"Lost: {self.medium_stats['frames_lost']}, "
                f"Collided: {self.medium_stats['frames_collided']}"
            )
            print(f"  Total Airtime: {self.medium_stats['airtime_s']:.6f} s")
            print(f"  Utilization: {self.medium_stats['utilization']:.2f}%")
