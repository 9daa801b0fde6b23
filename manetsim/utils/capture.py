from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.utils.data_units import DataUnit, Frame, Packet, RREQ, RREP
from manetsim.utils.event_logger import get_logger

import ipaddress
import struct
import os

PCAP_MAGIC = 0xA1B2C3D4
PCAP_VERSION = (2, 4)
PCAP_SNAPLEN = 65535
LINKTYPE_IEEE802_11 = 105

LLC_SNAP_IPV4 = bytes([0xAA, 0xAA, 0x03, 0x00, 0x00, 0x00, 0x08, 0x00])
IBSS_BSSID = bytes(6)
BROADCAST_MAC = bytes([0xFF] * 6)

IP_PROTO_UDP = 17

AODV_TYPE_RREQ = 1
AODV_TYPE_RREP = 2
AODV_FLAG_UNKNOWN_SEQ_NO = 0x08


def mac_from_index(index: int) -> bytes:
    """Sequential MAC address, 00:00:00:00:00:01 for the first device."""
    return (index + 1).to_bytes(6, "big")


def format_mac(mac: bytes) -> str:
    return ":".join(f"{b:02x}" for b in mac)


def _ip_checksum(header: bytes) -> int:
    total = 0
    for i in range(0, len(header), 2):
        total += (header[i] << 8) + header[i + 1]
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def encode_aodv_message(data_unit: DataUnit) -> bytes:
    """Encodes a RREQ or RREP using the RFC 3561 message layout."""
    if isinstance(data_unit, RREQ):
        flags = AODV_FLAG_UNKNOWN_SEQ_NO if data_unit.unknown_seq_no else 0
        return struct.pack(
            "!BBBBI4sI4sI",
            AODV_TYPE_RREQ,
            flags,
            0,
            data_unit.hop_count,
            data_unit.rreq_id,
            ipaddress.IPv4Address(data_unit.dst).packed,
            data_unit.dst_seq_no,
            ipaddress.IPv4Address(data_unit.origin).packed,
            data_unit.origin_seq_no,
        )
    if isinstance(data_unit, RREP):
        return struct.pack(
            "!BBBB4sI4sI",
            AODV_TYPE_RREP,
            0,
            0,
            data_unit.hop_count,
            ipaddress.IPv4Address(data_unit.dst).packed,
            data_unit.dst_seq_no,
            ipaddress.IPv4Address(data_unit.origin).packed,
            int(data_unit.lifetime_s * 1000),
        )
    raise ValueError(f"Not an AODV message: {data_unit}")


def encode_frame(
    sparams: sparams_module, frame: Frame, src_mac: bytes, dst_mac: bytes, seq_no: int
) -> bytes:
    """
    Encodes a frame as an 802.11 data frame carrying an IPv4/UDP datagram.

    Application packets keep their end-to-end addresses and ports; routing
    messages are sent hop by hop from the transmitting radio on the AODV port.
    """
    data_unit = frame.data_unit

    if isinstance(data_unit, Packet):
        ip_src, ip_dst = data_unit.src_address, data_unit.dst_address
        src_port, dst_port = data_unit.src_port, data_unit.dst_port
        payload = bytes(data_unit.size_bytes)
    else:
        ip_src, ip_dst = frame.src_address, frame.dst_address
        src_port = dst_port = sparams.AODV_PORT
        payload = encode_aodv_message(data_unit)

    udp_length = sparams.UDP_HEADER_SIZE_bytes + len(payload)
    udp_header = struct.pack("!HHHH", src_port, dst_port, udp_length, 0)

    ip_header = struct.pack(
        "!BBHHHBBH4s4s",
        0x45,
        0,
        sparams.IP_HEADER_SIZE_bytes + udp_length,
        seq_no & 0xFFFF,
        0,
        max(0, min(data_unit.ttl, 255)),
        IP_PROTO_UDP,
        0,
        ipaddress.IPv4Address(ip_src).packed,
        ipaddress.IPv4Address(ip_dst).packed,
    )
    ip_header = ip_header[:10] + struct.pack("!H", _ip_checksum(ip_header)) + ip_header[12:]

    mac_header = struct.pack(
        "!BBH6s6s6sH",
        0x08,  # Type: data
        0x00,
        0,
        dst_mac,
        src_mac,
        IBSS_BSSID,
        (seq_no & 0x0FFF) << 4,
    )

    return mac_header + LLC_SNAP_IPV4 + ip_header + udp_header + payload


class PcapWriter:
    """Writes the frames seen by one radio device to a libpcap capture file."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, filepath: str, scheduler=None):
        self.cfg = cfg
        self.sparams = sparams

        self.filepath = filepath
        self.file = None
        self.records = 0
        self.seq_no = 0

        self.name = "CAPTURE"
        self.logger = get_logger(self.name, cfg, sparams, scheduler)

        self._open()

    def _open(self):
        try:
            os.makedirs(os.path.dirname(self.filepath) or ".", exist_ok=True)
            self.file = open(self.filepath, "wb")
            self.file.write(
                struct.pack(
                    "<IHHiIII",
                    PCAP_MAGIC,
                    PCAP_VERSION[0],
                    PCAP_VERSION[1],
                    0,
                    0,
                    PCAP_SNAPLEN,
                    LINKTYPE_IEEE802_11,
                )
            )
        except OSError as e:
            self.logger.warning(f"Cannot open capture file {self.filepath}: {e}")
            self.file = None

    def write(self, time_s: float, frame: Frame, src_mac: bytes, dst_mac: bytes):
        if self.file is None:
            return

        self.seq_no += 1
        data = encode_frame(self.sparams, frame, src_mac, dst_mac, self.seq_no)

        ts_sec = int(time_s)
        ts_usec = int(round((time_s - ts_sec) * 1e6))
        if ts_usec >= 1000000:
            ts_sec, ts_usec = ts_sec + 1, ts_usec - 1000000

        try:
            self.file.write(struct.pack("<IIII", ts_sec, ts_usec, len(data), len(data)))
            self.file.write(data)
            self.records += 1
        except OSError as e:
            self.logger.warning(f"Dropped capture record in {self.filepath}: {e}")

    def close(self):
        if self.file is not None:
            try:
                self.file.close()
            except OSError as e:
                self.logger.warning(f"Cannot close capture file {self.filepath}: {e}")
            self.file = None
