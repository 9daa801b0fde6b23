class UserConfig:
    # --- Simulation Parameters --- #
    SIZE = 10  # Number of nodes
    STEP_m = 100  # Grid step (distance between neighbouring nodes) in meters
    SIMULATION_TIME_s = 100  # Total simulated time in seconds

    # Row width of the grid. If None, all nodes are placed on a single row (1-dimensional line).
    GRID_WIDTH = None

    SEED = 12345  # Seed of the harness pseudo-random generator

    # --- Routing Configuration --- #
    ROUTING_PROTOCOL = "aodv"  # Registered routing protocol name: "aodv" or "static"

    PRINT_ROUTES = True  # Enable/disable the routing table dump (see ROUTES_PRINT_TIME_s in sim_params)

    # --- Capture Configuration --- #
    ENABLE_PCAP = False  # Enable/disable per-device PCAP capture files
    PCAP_PREFIX = "aodv"  # Capture files are named <prefix>-<node>-<device>.pcap

    # --- Output Configuration --- #
    OUTPUT_PATH = "data/output"  # Directory for routing table dumps and capture files

    # --- Logging Configuration --- #
    ENABLE_CONSOLE_LOGGING = True  # Enable/disable displaying logs in the console
    USE_COLORS_IN_LOGS = True  # Enable/disable colored logs

    ENABLE_LOGS_RECORDING = False  # Enable/disable recording logs in a JSON file
    LOGS_RECORDING_PATH = "data/events"

    # Logging exclusions (if ENABLE_CONSOLE_LOGGING or ENABLE_LOGS_RECORDING is enabled)
    # Format: { "<module_name>": ["<excluded_log_level_1>", "<excluded_log_level_2>", ...] }
    # <module_name>: Module name (e.g., "NETWORK", "MEDIUM", "DEVICE", "STACK", "ROUTING", "APP", "GEN", "TRACE", "SCHED", "STATS", "CAPTURE")
    # <excluded_log_level>: Log levels to exclude (e.g., "HEADER", "DEBUG", "INFO", "WARNING", "ALL")
    EXCLUDED_LOGS = {
        "NETWORK": ["HEADER", "DEBUG"],
        "NODE": ["HEADER", "DEBUG"],
        "MEDIUM": ["ALL"],
        "DEVICE": ["ALL"],
        "STACK": ["HEADER", "DEBUG"],
        "ROUTING": ["ALL"],
        "APP": ["ALL"],
        "GEN": ["HEADER", "DEBUG"],
        "TRACE": ["HEADER", "DEBUG"],
        "SCHED": ["ALL"],
        "STATS": [],
        "CAPTURE": ["HEADER", "DEBUG"],
        "PLOTTER": [],
    }

    # --- Trace Configuration --- #
    ENABLE_TRACE = True  # Enable/disable the transmit/receive trace lines on the standard output

    # --- Traffic Recording --- #
    ENABLE_TRAFFIC_GEN_RECORDING = False  # Record every generated packet in a CSV file
    TRAFFIC_GEN_RECORDING_PATH = "data/sim_traces/run_1"

    # --- Statistics Collection --- #
    ENABLE_STATS_COLLECTION = False  # Enable/disable saving the flow statistics
    STATS_SAVE_PATH = "data/statistics"

    # --- Visualization --- #
    ENABLE_FIGS_DISPLAY = False  # Enable/disable displaying the topology figure
    ENABLE_FIGS_SAVING = False  # Enable/disable saving the topology figure
    FIGS_SAVE_PATH = "figs/sim"
