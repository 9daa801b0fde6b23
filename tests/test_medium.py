from tests._user_config_tests import UserConfig as cfg_module, override
from tests._sim_params_tests import SimParams as sparams_module

from manetsim.components.scheduler import Scheduler
from manetsim.utils.data_units import BROADCAST_ADDRESS
from manetsim.utils.event_logger import get_logger
from manetsim.utils.events import PacketRxEvent
from manetsim.utils.support import initialize_network
from manetsim.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import pytest

logger = get_logger("TEST", cfg_module, sparams_module)

STATIC_CFG = override(cfg_module, ROUTING_PROTOCOL="static", SIMULATION_TIME_s=5)


def setup(size: int, step_m: float = 100, sparams=sparams_module):
    cfg = override(STATIC_CFG, SIZE=size, STEP_m=step_m)
    scheduler = Scheduler(cfg, sparams)
    network = initialize_network(cfg, sparams, scheduler)

    received = []
    network.bus.subscribe(PacketRxEvent, received.append)
    return scheduler, network, received


def send_at(scheduler, node, time_s: float, dst_address: str, size_bytes: int = 100):
    socket = node.create_socket()
    sent = []
    scheduler.schedule(
        lambda: sent.append(socket.send_to(size_bytes, dst_address, sparams_module.SINK_PORT)),
        time_s,
    )
    return sent


def test_links_follow_range():
    _, network, _ = setup(4)

    edges = {tuple(sorted(edge)) for edge in network.graph.edges}
    assert edges == {(0, 1), (1, 2), (2, 3)}, logger.error(f"Unexpected links: {edges}")

    for node in network.get_nodes():
        assert node.device is not None and node.device.channel is network.medium
        assert network.medium.get_mac(node.address) == node.device.mac


def test_delivery_delay():
    scheduler, network, received = setup(2)
    send_at(scheduler, network.get_node(0), 1.0, "10.0.0.2")

    scheduler.run()

    assert len(received) == 1
    event = received[0]
    assert event.node_id == 1 and event.src_address == "10.0.0.1"

    frame_bytes = 100 + 20 + 8 + 24 + 8 + 4
    expected_s = (
        1.0
        + sparams_module.DIFS_s
        + sparams_module.PHY_PREAMBLE_s
        + frame_bytes * 8 / sparams_module.DATA_RATE_bps
        + 100 / sparams_module.PROPAGATION_SPEED_mps
    )
    assert event.time_s == pytest.approx(expected_s), (
        f"Expected reception at {expected_s}, got {event.time_s}"
    )


def test_multi_hop_forwarding():
    scheduler, network, received = setup(3)
    send_at(scheduler, network.get_node(0), 1.0, "10.0.0.3")

    scheduler.run()

    assert [event.node_id for event in received] == [2]
    assert received[0].packet.hops == 1
    assert network.get_node(1).routing.packets_forwarded == 1
    assert network.get_node(1).rx_stats.pkts_rx == 0


def test_out_of_range_without_route():
    sparams = override(sparams_module, TX_RANGE_m=50)
    scheduler, network, received = setup(2, sparams=sparams)
    sent = send_at(scheduler, network.get_node(0), 1.0, "10.0.0.2")

    scheduler.run()

    assert network.graph.number_of_edges() == 0
    assert sent == [None], "The stack must refuse a packet without a route"
    assert network.get_node(0).tx_stats.pkts_failed == 1
    assert received == []


def test_no_loss_policy_connects_every_pair():
    sparams = override(sparams_module, LOSS_POLICY="none")
    scheduler, network, received = setup(3, step_m=1000, sparams=sparams)
    send_at(scheduler, network.get_node(0), 1.0, "10.0.0.3")

    scheduler.run()

    assert network.graph.number_of_edges() == 3
    assert len(received) == 1 and received[0].packet.hops == 0


def test_random_loss_policy():
    sparams = override(sparams_module, LOSS_POLICY="random", PACKET_LOSS_PROBABILITY=1.0)
    scheduler, network, received = setup(2, sparams=sparams)
    send_at(scheduler, network.get_node(0), 1.0, "10.0.0.2")

    scheduler.run()

    assert received == []
    assert network.medium.stats.frames_lost == 1
    assert network.medium.stats.frames_delivered == 0


def test_broadcast_reaches_neighbors():
    scheduler, network, received = setup(3)
    send_at(scheduler, network.get_node(1), 1.0, BROADCAST_ADDRESS)

    scheduler.run()

    assert sorted(event.node_id for event in received) == [0, 2]


@pytest.mark.parametrize("model, delivered", [("none", 2), ("overlap", 0)])
def test_hidden_terminal_collision(model, delivered):
    sparams = override(sparams_module, COLLISION_MODEL=model)
    scheduler, network, received = setup(3, sparams=sparams)

    # Nodes 0 and 2 cannot hear each other and both send to node 1
    send_at(scheduler, network.get_node(0), 1.0, "10.0.0.2")
    send_at(scheduler, network.get_node(2), 1.0, "10.0.0.2")

    scheduler.run()

    assert len(received) == delivered, f"{model}: expected {delivered} packets, got {len(received)}"
    assert network.medium.stats.frames_collided == 2 - delivered


def test_carrier_sense_defers_transmission():
    scheduler, network, received = setup(2)

    send_at(scheduler, network.get_node(0), 1.0, "10.0.0.2")
    send_at(scheduler, network.get_node(1), 1.0, "10.0.0.1")

    scheduler.run()

    assert sorted(event.node_id for event in received) == [0, 1]
    assert network.medium.stats.frames_collided == 0
    assert received[0].time_s < received[1].time_s


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_links_follow_range()
    test_delivery_delay()
    test_multi_hop_forwarding()
    test_out_of_range_without_route()
    test_no_loss_policy_connects_every_pair()
    test_random_loss_policy()
    test_broadcast_reaches_neighbors()
    test_hidden_terminal_collision("none", 2)
    test_hidden_terminal_collision("overlap", 0)
    test_carrier_sense_defers_transmission()

    print(TEST_COMPLETED_MSG)
