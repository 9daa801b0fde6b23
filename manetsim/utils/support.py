from manetsim.user_config import UserConfig as cfg
from manetsim.sim_params import SimParams as sparams

from manetsim.components.aodv import AodvRoutingProtocol  # noqa: F401 (registers "aodv")
from manetsim.components.app import install_sinks
from manetsim.components.medium import COLLISION_MODELS, Channel
from manetsim.components.network import Network, TopologyBuilder
from manetsim.components.routing import get_routing_protocols
from manetsim.components.scheduler import Scheduler
from manetsim.components.stack import AddressAssignment, ProtocolStackInstaller
from manetsim.traffic.generator import Flow, TrafficGenerator
from manetsim.utils.errors import ConfigurationError
from manetsim.utils.trace import TraceCollector

from dataclasses import dataclass
from typing import TextIO

import ipaddress
import logging

LOSS_POLICIES = ["range", "none", "random"]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_params(sparams: sparams, logger: logging.Logger):
    """
    Checks the simulation parameters.

    Raises:
        ConfigurationError: On the first invalid parameter.
    """
    try:
        ipaddress.IPv4Network(f"{sparams.SUBNET_BASE}/{sparams.SUBNET_MASK}")
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid subnet {sparams.SUBNET_BASE}/{sparams.SUBNET_MASK}: {e}"
        ) from e

    positive_params = {
        "DATA_RATE_bps": sparams.DATA_RATE_bps,
        "TX_RANGE_m": sparams.TX_RANGE_m,
        "PROPAGATION_SPEED_mps": sparams.PROPAGATION_SPEED_mps,
        "PACKET_SIZE_bytes": sparams.PACKET_SIZE_bytes,
        "FLOW_DATA_RATE_bps": sparams.FLOW_DATA_RATE_bps,
        "ON_TIME_s": sparams.ON_TIME_s,
        "NET_TRAVERSAL_TIME_s": sparams.NET_TRAVERSAL_TIME_s,
        "ACTIVE_ROUTE_TIMEOUT_s": sparams.ACTIVE_ROUTE_TIMEOUT_s,
        "MAINTENANCE_INTERVAL_s": sparams.MAINTENANCE_INTERVAL_s,
    }

    for name, value in positive_params.items():
        if not _is_number(value) or value <= 0:
            raise ConfigurationError(f"Invalid {name}: {value}. It must be a positive number.")

    non_negative_params = {
        "PHY_PREAMBLE_s": sparams.PHY_PREAMBLE_s,
        "SLOT_TIME_s": sparams.SLOT_TIME_s,
        "DIFS_s": sparams.DIFS_s,
        "OFF_TIME_s": sparams.OFF_TIME_s,
        "FLOW_START_MIN_s": sparams.FLOW_START_MIN_s,
        "FLOW_STOP_s": sparams.FLOW_STOP_s,
        "ROUTES_PRINT_TIME_s": sparams.ROUTES_PRINT_TIME_s,
        "BROADCAST_JITTER_s": sparams.BROADCAST_JITTER_s,
    }

    for name, value in non_negative_params.items():
        if not _is_number(value) or value < 0:
            raise ConfigurationError(
                f"Invalid {name}: {value}. It must be a non-negative number."
            )

    non_negative_int_params = {
        "CW_MIN": sparams.CW_MIN,
        "RREQ_RETRIES": sparams.RREQ_RETRIES,
        "MAX_TX_QUEUE_SIZE_pkts": sparams.MAX_TX_QUEUE_SIZE_pkts,
        "MAX_QUEUE_LEN_pkts": sparams.MAX_QUEUE_LEN_pkts,
        "SINK_PORT": sparams.SINK_PORT,
        "TTL": sparams.TTL,
    }

    for name, value in non_negative_int_params.items():
        if not _is_int(value) or value < 0:
            raise ConfigurationError(
                f"Invalid {name}: {value}. It must be a non-negative integer."
            )

    if not _is_number(sparams.FLOW_START_MAX_s) or sparams.FLOW_START_MAX_s < sparams.FLOW_START_MIN_s:
        raise ConfigurationError(
            f"Invalid FLOW_START_MAX_s: {sparams.FLOW_START_MAX_s}. It must not be lower than FLOW_START_MIN_s ({sparams.FLOW_START_MIN_s})."
        )

    if sparams.ROUTES_PRINT_INTERVAL_s is not None and (
        not _is_number(sparams.ROUTES_PRINT_INTERVAL_s) or sparams.ROUTES_PRINT_INTERVAL_s <= 0
    ):
        raise ConfigurationError(
            f"Invalid ROUTES_PRINT_INTERVAL_s: {sparams.ROUTES_PRINT_INTERVAL_s}. It must be None or a positive number."
        )

    if sparams.LOSS_POLICY not in LOSS_POLICIES:
        raise ConfigurationError(
            f"Invalid LOSS_POLICY: {sparams.LOSS_POLICY}. It must be one of {LOSS_POLICIES}."
        )

    if sparams.COLLISION_MODEL not in COLLISION_MODELS:
        raise ConfigurationError(
            f"Invalid COLLISION_MODEL: {sparams.COLLISION_MODEL}. It must be one of {list(COLLISION_MODELS)}."
        )

    if not _is_number(sparams.PACKET_LOSS_PROBABILITY) or not (
        0 <= sparams.PACKET_LOSS_PROBABILITY <= 1
    ):
        raise ConfigurationError(
            f"Invalid PACKET_LOSS_PROBABILITY: {sparams.PACKET_LOSS_PROBABILITY}. It must be between 0 and 1."
        )

    logger.success("Simulation parameters validated.")


def validate_config(cfg: cfg, sparams: sparams, logger: logging.Logger) -> None:
    """
    Checks the user configuration.

    Raises:
        ConfigurationError: On the first invalid setting.
    """
    if not _is_int(cfg.SIZE) or cfg.SIZE < 0:
        raise ConfigurationError(f"Invalid SIZE: {cfg.SIZE}. It must be a non-negative integer.")

    if not _is_number(cfg.STEP_m) or cfg.STEP_m < 0:
        raise ConfigurationError(f"Invalid STEP_m: {cfg.STEP_m}. It must be a non-negative number.")

    if not _is_number(cfg.SIMULATION_TIME_s) or cfg.SIMULATION_TIME_s <= 0:
        raise ConfigurationError(
            f"Invalid SIMULATION_TIME_s: {cfg.SIMULATION_TIME_s}. It must be a positive number."
        )

    if cfg.GRID_WIDTH is not None and (not _is_int(cfg.GRID_WIDTH) or cfg.GRID_WIDTH < 1):
        raise ConfigurationError(
            f"Invalid GRID_WIDTH: {cfg.GRID_WIDTH}. It must be None or a positive integer."
        )

    if cfg.SEED is not None and not _is_int(cfg.SEED):
        raise ConfigurationError(f"Invalid SEED: {cfg.SEED}. It must be an integer.")

    if cfg.ROUTING_PROTOCOL not in get_routing_protocols():
        raise ConfigurationError(
            f"Invalid ROUTING_PROTOCOL: '{cfg.ROUTING_PROTOCOL}'. It must be one of {get_routing_protocols()}."
        )

    bool_settings = {
        "ENABLE_PCAP": cfg.ENABLE_PCAP,
        "PRINT_ROUTES": cfg.PRINT_ROUTES,
        "ENABLE_CONSOLE_LOGGING": cfg.ENABLE_CONSOLE_LOGGING,
        "USE_COLORS_IN_LOGS": cfg.USE_COLORS_IN_LOGS,
        "ENABLE_LOGS_RECORDING": cfg.ENABLE_LOGS_RECORDING,
        "ENABLE_TRACE": cfg.ENABLE_TRACE,
        "ENABLE_FIGS_DISPLAY": cfg.ENABLE_FIGS_DISPLAY,
        "ENABLE_FIGS_SAVING": cfg.ENABLE_FIGS_SAVING,
        "ENABLE_TRAFFIC_GEN_RECORDING": cfg.ENABLE_TRAFFIC_GEN_RECORDING,
        "ENABLE_STATS_COLLECTION": cfg.ENABLE_STATS_COLLECTION,
    }

    for name, value in bool_settings.items():
        if not isinstance(value, bool):
            raise ConfigurationError(f"Invalid {name}: '{value}'. It must be a boolean.")

    str_settings = {
        "PCAP_PREFIX": cfg.PCAP_PREFIX,
        "OUTPUT_PATH": cfg.OUTPUT_PATH,
        "LOGS_RECORDING_PATH": cfg.LOGS_RECORDING_PATH,
        "FIGS_SAVE_PATH": cfg.FIGS_SAVE_PATH,
        "TRAFFIC_GEN_RECORDING_PATH": cfg.TRAFFIC_GEN_RECORDING_PATH,
        "STATS_SAVE_PATH": cfg.STATS_SAVE_PATH,
    }
    for name, value in str_settings.items():
        if not isinstance(value, str) or not value:
            raise ConfigurationError(f"Invalid {name}: '{value}'. It must be a non-empty string.")

    valid_modules = [
        "NETWORK",
        "NODE",
        "MEDIUM",
        "DEVICE",
        "STACK",
        "ROUTING",
        "APP",
        "GEN",
        "TRACE",
        "SCHED",
        "STATS",
        "CAPTURE",
        "PLOTTER",
    ]
    valid_log_levels = ["HEADER", "DEBUG", "INFO", "WARNING", "ALL"]

    for module, levels in cfg.EXCLUDED_LOGS.items():
        if module not in valid_modules:
            logger.warning(f"Invalid module name: '{module}' in EXCLUDED_LOGS.")

        for level in levels:
            if level not in valid_log_levels:
                logger.warning(
                    f"Invalid log level: '{level}' for module: '{module}' in EXCLUDED_LOGS."
                )

    logger.success("User configuration validated.")


def warn_overwriting_enabled_paths(cfg: cfg, logger: logging.Logger):
    path_settings = {
        "routing tables": cfg.PRINT_ROUTES,
        "captures": cfg.ENABLE_PCAP,
        "logs": cfg.ENABLE_LOGS_RECORDING,
        "figures": cfg.ENABLE_FIGS_SAVING,
        "traffic generated": cfg.ENABLE_TRAFFIC_GEN_RECORDING,
        "statistics": cfg.ENABLE_STATS_COLLECTION,
    }

    enabled_settings = [name for name, enabled in path_settings.items() if enabled]

    if enabled_settings:
        logger.warning(
            f"The following data will be recorded: {', '.join(enabled_settings)}. "
            f"Existing files in the configured paths will be overwritten."
        )


def validate_settings(cfg: cfg, sparams: sparams, logger: logging.Logger):
    validate_params(sparams, logger)
    validate_config(cfg, sparams, logger)
    warn_overwriting_enabled_paths(cfg, logger)


def initialize_network(cfg: cfg, sparams: sparams, scheduler: Scheduler) -> Network:
    """
    Builds the topology, attaches one radio device per node to a shared channel,
    installs the protocol stack and opens a packet sink on every node.

    Raises:
        SetupError: If the protocol stack cannot be installed.
    """
    network = Network(cfg, sparams, scheduler)

    nodes = TopologyBuilder(cfg, sparams, network).build(
        cfg.SIZE, cfg.STEP_m, cfg.GRID_WIDTH
    )

    network.medium = Channel(cfg, sparams, network)
    for node in nodes:
        device = network.medium.attach(node)
        if cfg.ENABLE_PCAP:
            device.enable_capture(cfg.PCAP_PREFIX, cfg.OUTPUT_PATH)

    installer = ProtocolStackInstaller(cfg, sparams, network)
    network.assignment = installer.install(
        nodes, sparams.SUBNET_BASE, sparams.SUBNET_MASK, cfg.ROUTING_PROTOCOL
    )

    network.sinks = install_sinks(cfg, sparams, network)

    return network


@dataclass
class Scenario:
    """Everything built during the setup phase of a run."""

    scheduler: Scheduler
    network: Network
    generator: TrafficGenerator
    flow: Flow | None = None
    trace: TraceCollector | None = None

    @property
    def assignment(self) -> AddressAssignment:
        return self.network.assignment

    def run(self):
        """Runs the scheduler once, until the stop time, and releases the capture files."""
        try:
            self.scheduler.run()
        finally:
            self.network.medium.close()


def build_scenario(cfg: cfg, sparams: sparams, stream: TextIO = None) -> Scenario:
    """
    Sets up a complete run: network, trace collector and the measured flow from
    the first node to the last one.
    """
    scheduler = Scheduler(cfg, sparams)
    network = initialize_network(cfg, sparams, scheduler)

    trace = None
    if cfg.ENABLE_TRACE:
        trace = TraceCollector(cfg, sparams, network.bus, stream, scheduler)
        trace.attach()

    generator = TrafficGenerator(cfg, sparams, network)
    flow = generator.create_scenario_flow(network.get_nodes())

    return Scenario(
        scheduler=scheduler,
        network=network,
        generator=generator,
        flow=flow,
        trace=trace,
    )
