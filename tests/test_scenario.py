from tests._user_config_tests import UserConfig as cfg_module, override
from tests._sim_params_tests import SimParams as sparams_module

from manetsim.utils.event_logger import get_logger
from manetsim.utils.support import build_scenario
from manetsim.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import io
import re
import pytest

logger = get_logger("TEST", cfg_module, sparams_module)

TX_LINE = re.compile(r"^(\S+) source 10\.0\.0\.1 send to dest 10\.0\.0\.4$")
RX_LINE = re.compile(r"^(\S+) 3 received one packet from 10\.0\.0\.1$")


def run(cfg=cfg_module) -> tuple[list[str], object]:
    stream = io.StringIO()
    scenario = build_scenario(cfg, sparams_module, stream=stream)
    scenario.run()
    return stream.getvalue().splitlines(), scenario


def test_round_trip_over_four_nodes():
    lines, scenario = run()

    tx_times = [float(m.group(1)) for line in lines if (m := TX_LINE.match(line))]
    rx_times = [float(m.group(1)) for line in lines if (m := RX_LINE.match(line))]

    assert len(tx_times) + len(rx_times) == len(lines), logger.error(
        f"Unexpected trace lines: {[line for line in lines if not (TX_LINE.match(line) or RX_LINE.match(line))][:5]}"
    )
    assert tx_times and rx_times, "Expected both transmit and receive lines"

    start_s = scenario.flow.start_time_s
    assert 1.0 <= start_s < 2.0
    assert all(start_s < t <= 10.0 for t in tx_times)
    assert rx_times[0] > tx_times[0]
    assert len(rx_times) <= len(tx_times)

    # Every packet reaches the last node over the discovered route
    assert len(rx_times) >= len(tx_times) - 1

    times = [float(line.split()[0]) for line in lines]
    assert times == sorted(times), "Trace lines must follow the simulation time"

    assert scenario.trace.tx_lines == len(tx_times)
    assert scenario.trace.rx_lines == len(rx_times)
    assert scenario.assignment.get_address(3) == "10.0.0.4"


def test_each_reception_follows_its_transmission():
    lines, _ = run()

    sent, delivered = 0, 0
    for line in lines:
        if TX_LINE.match(line):
            sent += 1
        else:
            delivered += 1
            assert delivered <= sent, f"Reception before transmission at line: {line}"


def test_runs_are_reproducible():
    first, _ = run(override(cfg_module, SEED=3))
    second, _ = run(override(cfg_module, SEED=3))

    assert first == second


@pytest.mark.parametrize("size", [0, 1])
def test_degenerate_sizes(size):
    lines, scenario = run(override(cfg_module, SIZE=size))

    assert lines == []
    assert scenario.flow is None
    assert len(scenario.network) == size


def test_two_nodes_single_hop():
    lines, scenario = run(override(cfg_module, SIZE=2))

    assert any(line.endswith("1 received one packet from 10.0.0.1") for line in lines)
    assert scenario.network.get_node(1).rx_stats.pkts_rx > 0


def test_trace_disabled():
    lines, scenario = run(override(cfg_module, ENABLE_TRACE=False))

    assert lines == []
    assert scenario.trace is None
    assert scenario.network.get_node(3).rx_stats.pkts_rx > 0


def test_static_routing_scenario():
    lines, _ = run(override(cfg_module, ROUTING_PROTOCOL="static"))

    assert any(RX_LINE.match(line) for line in lines)


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_round_trip_over_four_nodes()
    test_each_reception_follows_its_transmission()
    test_runs_are_reproducible()
    test_degenerate_sizes(0)
    test_degenerate_sizes(1)
    test_two_nodes_single_hop()
    test_trace_disabled()
    test_static_routing_scenario()

    print(TEST_COMPLETED_MSG)
