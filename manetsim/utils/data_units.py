from manetsim.sim_params import SimParams as sparams

BROADCAST_ADDRESS = "255.255.255.255"


class DataUnit:
    """Abstract base class for all data units in the simulation."""

    def __init__(
        self, creation_time_s: float, size_bytes: int, src_address: str, dst_address: str
    ):
        """
        Initializes a DataUnit.

        Args:
            creation_time_s (float): The time of creation in seconds.
            size_bytes (int): The size of the data unit in bytes.
            src_address (str): The source network address.
            dst_address (str): The destination network address.
        """
        self.size_bytes: int = size_bytes

        self.src_address: str = src_address
        self.dst_address: str = dst_address

        self.creation_time_s: float = creation_time_s  # When the data unit was created
        self.reception_time_s: float | None = None  # When the data unit was received

        self.ttl: int = sparams.TTL

        self.type: str | None = None  # Type of the data unit

    def __repr__(self):
        return f"size={self.size_bytes}, src={self.src_address}, dst={self.dst_address}"


class Packet(DataUnit):
    def __init__(
        self,
        id: int,
        size_bytes: int,
        src_address: str,
        dst_address: str,
        creation_time_s: float,
        src_port: int = 0,
        dst_port: int = 0,
    ):
        """
        Initializes an application Packet (opaque payload of fixed size).

        Args:
            id (int): The ID of the packet.
            size_bytes (int): The payload size in bytes.
            src_address (str): The source network address.
            dst_address (str): The destination network address.
            creation_time_s (float): The time of creation in seconds.
            src_port (int, optional): The source port. Defaults to 0.
            dst_port (int, optional): The destination port. Defaults to 0.
        """
        super().__init__(creation_time_s, size_bytes, src_address, dst_address)

        self.id: int = id
        self.src_port: int = src_port
        self.dst_port: int = dst_port

        self.hops: int = 0  # Number of forwarding hops taken so far

        self.type: str = "DATA"

    @property
    def wire_size_bytes(self) -> int:
        """Size including the IP and UDP headers."""
        return self.size_bytes + sparams.IP_HEADER_SIZE_bytes + sparams.UDP_HEADER_SIZE_bytes

    def __repr__(self):
        return f"{self.__class__.__name__}(id={self.id}, {super().__repr__()})"


class RREQ(DataUnit):
    SIZE_bytes = 24

    def __init__(
        self,
        origin: str,
        origin_seq_no: int,
        rreq_id: int,
        dst: str,
        dst_seq_no: int,
        creation_time_s: float,
        hop_count: int = 0,
        unknown_seq_no: bool = True,
    ):
        """
        Initializes an AODV Route Request, flooded towards the destination.

        Args:
            origin (str): Address of the node that started the discovery.
            origin_seq_no (int): Sequence number of the originator.
            rreq_id (int): Identifier of the request at the originator.
            dst (str): Address whose route is requested.
            dst_seq_no (int): Last known sequence number of the destination.
            creation_time_s (float): The time of creation in seconds.
            hop_count (int, optional): Hops travelled so far. Defaults to 0.
            unknown_seq_no (bool, optional): True when dst_seq_no is not known. Defaults to True.
        """
        super().__init__(
            creation_time_s,
            self.SIZE_bytes + sparams.IP_HEADER_SIZE_bytes + sparams.UDP_HEADER_SIZE_bytes,
            origin,
            BROADCAST_ADDRESS,
        )
        self.origin = origin
        self.origin_seq_no = origin_seq_no
        self.rreq_id = rreq_id
        self.dst = dst
        self.dst_seq_no = dst_seq_no
        self.hop_count = hop_count
        self.unknown_seq_no = unknown_seq_no

        self.type: str = "RREQ"

    def copy(self) -> "RREQ":
        rreq = RREQ(
            self.origin,
            self.origin_seq_no,
            self.rreq_id,
            self.dst,
            self.dst_seq_no,
            self.creation_time_s,
            self.hop_count,
            self.unknown_seq_no,
        )
        rreq.ttl = self.ttl
        return rreq

    def __repr__(self):
        return f"{self.__class__.__name__}(origin={self.origin}, id={self.rreq_id}, dst={self.dst}, hops={self.hop_count})"


class RREP(DataUnit):
    SIZE_bytes = 20

    def __init__(
        self,
        origin: str,
        dst: str,
        dst_seq_no: int,
        lifetime_s: float,
        creation_time_s: float,
        hop_count: int = 0,
    ):
        """
        Initializes an AODV Route Reply, unicast back to the originator of a RREQ.

        Args:
            origin (str): Address of the node that started the discovery.
            dst (str): Address of the discovered destination.
            dst_seq_no (int): Sequence number of the destination.
            lifetime_s (float): Validity of the advertised route in seconds.
            creation_time_s (float): The time of creation in seconds.
            hop_count (int, optional): Hops from the destination. Defaults to 0.
        """
        super().__init__(
            creation_time_s,
            self.SIZE_bytes + sparams.IP_HEADER_SIZE_bytes + sparams.UDP_HEADER_SIZE_bytes,
            dst,
            origin,
        )
        self.origin = origin
        self.dst = dst
        self.dst_seq_no = dst_seq_no
        self.lifetime_s = lifetime_s
        self.hop_count = hop_count

        self.type: str = "RREP"

    def __repr__(self):
        return f"{self.__class__.__name__}(origin={self.origin}, dst={self.dst}, seq={self.dst_seq_no}, hops={self.hop_count})"


class Frame(DataUnit):
    def __init__(
        self,
        data_unit: DataUnit,
        src_address: str,
        dst_address: str,
        creation_time_s: float,
    ):
        """
        Initializes a link-layer Frame.

        Args:
            data_unit (DataUnit): The encapsulated DataUnit.
            src_address (str): Network address of the transmitting radio.
            dst_address (str): Network address of the next hop, or BROADCAST_ADDRESS.
            creation_time_s (float): The time of creation in seconds.
        """
        payload_size_bytes = (
            data_unit.wire_size_bytes
            if isinstance(data_unit, Packet)
            else data_unit.size_bytes
        )
        super().__init__(
            creation_time_s,
            payload_size_bytes
            + sparams.MAC_HEADER_SIZE_bytes
            + sparams.LLC_HEADER_SIZE_bytes
            + sparams.FCS_SIZE_bytes,
            src_address,
            dst_address,
        )

        self.data_unit: DataUnit = data_unit

        self.type: str = "FRAME"

    @property
    def is_broadcast(self) -> bool:
        return self.dst_address == BROADCAST_ADDRESS

    def __repr__(self):
        return f"{self.__class__.__name__}({self.data_unit.type}, {super().__repr__()})"
