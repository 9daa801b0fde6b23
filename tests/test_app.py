from tests._user_config_tests import UserConfig as cfg_module, override
from tests._sim_params_tests import SimParams as sparams_module

from manetsim.components.app import EPHEMERAL_PORT_START, PacketSink
from manetsim.components.scheduler import Scheduler
from manetsim.utils.errors import EndpointBindError
from manetsim.utils.event_logger import get_logger
from manetsim.utils.events import PacketRxEvent
from manetsim.utils.support import initialize_network
from manetsim.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import pytest

logger = get_logger("TEST", cfg_module, sparams_module)


def setup(size: int = 2):
    cfg = override(cfg_module, SIZE=size, ROUTING_PROTOCOL="static", SIMULATION_TIME_s=3)
    scheduler = Scheduler(cfg, sparams_module)
    network = initialize_network(cfg, sparams_module, scheduler)
    return cfg, scheduler, network


def test_sinks_installed_on_every_node():
    _, _, network = setup(3)

    assert len(network.sinks) == 3
    for node in network.get_nodes():
        assert sparams_module.SINK_PORT in node.sockets


def test_duplicate_bind_raises():
    cfg, _, network = setup()
    node = network.get_node(0)

    with pytest.raises(EndpointBindError):
        PacketSink(cfg, sparams_module, node, sparams_module.SINK_PORT)

    socket = node.create_socket()
    socket.bind(5000)
    with pytest.raises(EndpointBindError):
        node.create_socket().bind(5000)

    socket.close()
    node.create_socket().bind(5000)


def test_ephemeral_ports():
    _, _, network = setup()
    node = network.get_node(0)

    first, second = node.create_socket(), node.create_socket()
    first.connect("10.0.0.2", 80)
    second.connect("10.0.0.2", 80)

    assert first.local_port == EPHEMERAL_PORT_START
    assert second.local_port == EPHEMERAL_PORT_START + 1


def test_unconnected_socket_does_not_send():
    _, _, network = setup()
    socket = network.get_node(0).create_socket()

    assert socket.send(100) is None
    assert network.get_node(0).tx_stats.pkts_tx == 0


def test_sink_receives_and_publishes():
    _, scheduler, network = setup()
    events = []
    network.bus.subscribe(PacketRxEvent, events.append)

    socket = network.get_node(0).create_socket()
    socket.connect("10.0.0.2", sparams_module.SINK_PORT)
    scheduler.schedule(socket.send, 1.0, 256)

    scheduler.run()

    sink = network.sinks[1]
    assert sink.received == 1
    assert len(events) == 1 and events[0].src_address == "10.0.0.1"
    assert events[0].packet.src_port == EPHEMERAL_PORT_START
    assert sink.socket.recv_from() is None, "The sink must drain its socket"

    node = network.get_node(1)
    assert node.rx_stats.pkts_rx == 1 and node.rx_stats.rx_app_bytes == 256
    assert network.get_node(0).tx_stats.pkts_tx == 1


def test_local_delivery():
    _, scheduler, network = setup()
    events = []
    network.bus.subscribe(PacketRxEvent, events.append)

    socket = network.get_node(0).create_socket()
    scheduler.schedule(socket.send_to, 1.0, 64, "10.0.0.1", sparams_module.SINK_PORT)

    scheduler.run()

    assert [event.node_id for event in events] == [0]
    assert events[0].time_s == 1.0
    assert network.medium.stats.frames_tx == 0


def test_no_socket_on_destination_port():
    _, scheduler, network = setup()
    events = []
    network.bus.subscribe(PacketRxEvent, events.append)

    socket = network.get_node(0).create_socket()
    scheduler.schedule(socket.send_to, 1.0, 64, "10.0.0.2", 9999)

    scheduler.run()

    assert events == []
    assert network.get_node(1).device.stats.frames_rx == 1


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_sinks_installed_on_every_node()
    test_duplicate_bind_raises()
    test_ephemeral_ports()
    test_unconnected_socket_does_not_send()
    test_sink_receives_and_publishes()
    test_local_delivery()
    test_no_socket_on_destination_port()

    print(TEST_COMPLETED_MSG)
