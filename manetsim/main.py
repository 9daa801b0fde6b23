from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.utils.errors import ConfigurationError, SetupError
from manetsim.utils.event_logger import get_logger
from manetsim.utils.plotters import NetworkPlotter
from manetsim.utils.support import build_scenario, validate_settings
from manetsim.utils.messages import (
    STARTING_EXECUTION_MSG,
    EXECUTION_TERMINATED_MSG,
    SCENARIO_SETUP_MSG,
    STARTING_SIMULATION_MSG,
    SIMULATION_TERMINATED_MSG,
    REPORT_MSG,
    CONFIGURATION_FAILED_MSG,
    PRESS_TO_EXIT_MSG,
)

import argparse
import matplotlib.pyplot as plt

TRUE_VALUES = ("true", "1", "yes", "y", "on")
FALSE_VALUES = ("false", "0", "no", "n", "off")


def str_to_bool(value: str) -> bool:
    if isinstance(value, bool):
        return value
    if value.lower() in TRUE_VALUES:
        return True
    if value.lower() in FALSE_VALUES:
        return False
    raise argparse.ArgumentTypeError(f"Boolean value expected, got '{value}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manetsim",
        description="Grid of wireless ad hoc nodes running a routing protocol, with one on/off flow from the first to the last node.",
    )
    parser.add_argument(
        "--size", type=int, default=cfg_module.SIZE, help="Number of nodes."
    )
    parser.add_argument(
        "--step", type=float, default=cfg_module.STEP_m, help="Grid step in meters."
    )
    parser.add_argument(
        "--time",
        type=float,
        default=cfg_module.SIMULATION_TIME_s,
        help="Simulation time in seconds.",
    )
    parser.add_argument(
        "--pcap",
        type=str_to_bool,
        nargs="?",
        const=True,
        default=cfg_module.ENABLE_PCAP,
        help="Write a PCAP capture file per device.",
    )
    parser.add_argument(
        "--printRoutes",
        dest="print_routes",
        type=str_to_bool,
        nargs="?",
        const=True,
        default=cfg_module.PRINT_ROUTES,
        help="Dump the routing tables to a file.",
    )
    parser.add_argument(
        "--protocol",
        default=cfg_module.ROUTING_PROTOCOL,
        help="Routing protocol name.",
    )
    parser.add_argument(
        "--seed", type=int, default=cfg_module.SEED, help="Seed of the random generator."
    )
    parser.add_argument(
        "--gridWidth",
        dest="grid_width",
        type=int,
        default=cfg_module.GRID_WIDTH,
        help="Nodes per grid row (default: all nodes on one row).",
    )
    return parser


def apply_args(cfg: cfg_module, args: argparse.Namespace) -> type:
    """Returns a configuration class derived from `cfg` with the command line values."""
    overrides = {
        "SIZE": args.size,
        "STEP_m": args.step,
        "SIMULATION_TIME_s": args.time,
        "ENABLE_PCAP": args.pcap,
        "PRINT_ROUTES": args.print_routes,
        "ROUTING_PROTOCOL": args.protocol,
        "SEED": args.seed,
        "GRID_WIDTH": args.grid_width,
    }
    return type(cfg.__name__, (cfg,), overrides)


def main(argv: list[str] = None, cfg: cfg_module = cfg_module, sparams: sparams_module = sparams_module) -> int:
    args = build_parser().parse_args(argv)

    print(STARTING_EXECUTION_MSG)

    cfg = apply_args(cfg, args)

    logger = get_logger("MAIN", cfg, sparams)

    try:
        validate_settings(cfg, sparams, logger)
    except ConfigurationError as e:
        logger.critical(f"{e}\n{CONFIGURATION_FAILED_MSG}")

    print(SCENARIO_SETUP_MSG)

    try:
        scenario = build_scenario(cfg, sparams)
    except SetupError as e:
        logger.critical(f"Setup failed: {e}")

    logger.info(
        f"Starting simulation for {cfg.SIMULATION_TIME_s} s ({len(scenario.network)} nodes, {cfg.STEP_m} m apart)"
    )

    print(STARTING_SIMULATION_MSG)

    scenario.run()

    print(SIMULATION_TERMINATED_MSG)

    print(REPORT_MSG)

    network = scenario.network
    network.stats.collect_stats()

    for flow in network.stats.flows.itertuples(index=False):
        logger.info(
            f"Flow {flow.src_address} -> {flow.dst_address}:{flow.dst_port} -> Sent: {flow.pkts_sent}, Received: {flow.pkts_received}, Delivery ratio: {flow.delivery_ratio:.2%}"
        )

    if cfg.ENABLE_STATS_COLLECTION:
        network.stats.display_stats()

    plotter = NetworkPlotter(cfg, sparams, scenario.scheduler)
    plotter.plot_network(network)

    if len(plt.get_fignums()) > 0:
        input(PRESS_TO_EXIT_MSG)

    print(EXECUTION_TERMINATED_MSG)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
