class SimParams:
    # --- Addressing --- #
    SUBNET_BASE = "10.0.0.0"
    SUBNET_MASK = "255.0.0.0"

    # --- PHY Parameters --- #
    DATA_RATE_bps = 6e6  # Constant rate (OFDM 6 Mbps)
    PHY_PREAMBLE_s = 20e-6

    TX_RANGE_m = 150  # Maximum distance for a successful frame exchange

    PROPAGATION_SPEED_mps = 3e8  # Constant speed propagation delay model

    # --- MAC Parameters --- #
    SLOT_TIME_s = 9e-6
    SIFS_s = 16e-6
    DIFS_s = SIFS_s + 2 * SLOT_TIME_s  # equals 34 us

    CW_MIN = 15

    MAX_TX_QUEUE_SIZE_pkts = 400

    MAC_HEADER_SIZE_bytes = 24
    LLC_HEADER_SIZE_bytes = 8
    FCS_SIZE_bytes = 4

    IP_HEADER_SIZE_bytes = 20
    UDP_HEADER_SIZE_bytes = 8

    # --- Channel Parameters --- #
    LOSS_POLICY = "range"  # "range", "none" or "random"
    PACKET_LOSS_PROBABILITY = 0.0  # Only used by the "random" loss policy

    COLLISION_MODEL = "none"  # "none" or "overlap"

    # --- AODV Parameters --- #
    AODV_PORT = 654
    ACTIVE_ROUTE_TIMEOUT_s = 3
    NODE_TRAVERSAL_TIME_s = 0.04
    NET_DIAMETER = 35
    NET_TRAVERSAL_TIME_s = 2 * NODE_TRAVERSAL_TIME_s * NET_DIAMETER  # equals 2.8 s
    PATH_DISCOVERY_TIME_s = 2 * NET_TRAVERSAL_TIME_s
    RREQ_RETRIES = 2
    MAX_QUEUE_LEN_pkts = 64
    MAX_QUEUE_TIME_s = 30
    BROADCAST_JITTER_s = 0.01
    TTL = 64
    MAINTENANCE_INTERVAL_s = 1

    # --- Routing Table Dump --- #
    ROUTES_PRINT_TIME_s = 8
    ROUTES_PRINT_INTERVAL_s = None  # If set, the dump is repeated with this period

    # --- On/Off Traffic Flow --- #
    SINK_PORT = 80
    PACKET_SIZE_bytes = 512
    FLOW_DATA_RATE_bps = 500e3
    ON_TIME_s = 1.0
    OFF_TIME_s = 0.0
    FLOW_START_MIN_s = 1.0
    FLOW_START_MAX_s = 2.0
    FLOW_STOP_s = 10.0
