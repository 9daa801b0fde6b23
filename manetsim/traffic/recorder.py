from manetsim.sim_params import SimParams as sparams_module
from manetsim.user_config import UserConfig as cfg_module

from manetsim.utils.data_units import Packet
from manetsim.utils.file_manager import clean_folder

import os
import csv


class TrafficRecorder:
    """Handles recording of generated packets in Wireshark-style CSV format."""

    def __init__(
        self,
        cfg: cfg_module,
        sparams: sparams_module,
        node_id=None,
        save_name="traffic_trace",
        save_format="csv",
        logger=None,
    ):
        self.cfg = cfg
        self.sparams = sparams
        self.node_id = node_id
        self.save_name = save_name
        self.save_format = save_format

        self.logger = logger

        self.filepath = None

    def is_enabled(self):
        return self.cfg.ENABLE_TRAFFIC_GEN_RECORDING

    def get_filepath(self, packet: Packet):
        if not self.filepath:
            save_folder = self.cfg.TRAFFIC_GEN_RECORDING_PATH
            clean_folder(save_folder)
            self.filepath = os.path.join(
                save_folder,
                f"{self.save_name}_node_{self.node_id}_to_{packet.dst_address}.{self.save_format}",
            )
        return self.filepath

    def record_packet(self, packet: Packet):
        if not self.is_enabled():
            return

        try:
            filepath = self.get_filepath(packet)
            write_header = not os.path.exists(filepath)

            with open(filepath, mode="a", newline="") as file:
                writer = csv.writer(file)
                if write_header:
                    writer.writerow(
                        ["ip.src", "ip.dst", "udp.dstport", "frame.time_relative", "frame.len"]
                    )
                writer.writerow(
                    [
                        packet.src_address,
                        packet.dst_address,
                        packet.dst_port,
                        round(packet.creation_time_s, 6),
                        packet.size_bytes,
                    ]
                )
        except OSError as e:
            if self.logger is not None:
                self.logger.warning(f"Dropped traffic record of {packet}: {e}")
