from tests._user_config_tests import UserConfig as cfg_module
from tests._sim_params_tests import SimParams as sparams_module

from manetsim.utils.data_units import Packet
from manetsim.utils.event_logger import get_logger
from manetsim.utils.events import EventBus, PacketRxEvent, PacketTxEvent
from manetsim.utils.trace import TraceCollector, format_rx_line, format_tx_line
from manetsim.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import io

logger = get_logger("TEST", cfg_module, sparams_module)


def make_packet() -> Packet:
    return Packet(1, 512, "10.0.0.1", "10.0.0.4", 1.5, 49153, 80)


def tx_event(time_s: float = 1.5) -> PacketTxEvent:
    return PacketTxEvent(time_s, 0, "10.0.0.1", "10.0.0.4", make_packet())


def rx_event(time_s: float = 1.52, src_address: str | None = "10.0.0.1") -> PacketRxEvent:
    return PacketRxEvent(time_s, 3, src_address, make_packet())


class BrokenStream(io.StringIO):
    def write(self, s):
        raise OSError("No space left on device")


def test_line_formats():
    assert format_tx_line(tx_event()) == "1.5 source 10.0.0.1 send to dest 10.0.0.4"
    assert format_rx_line(rx_event()) == "1.52 3 received one packet from 10.0.0.1"
    assert format_rx_line(rx_event(src_address=None)) == "1.52 3 received one packet!"
    assert format_tx_line(tx_event(2.0)).startswith("2 source")


def test_collector_writes_in_publish_order():
    bus = EventBus()
    stream = io.StringIO()
    trace = TraceCollector(cfg_module, sparams_module, bus, stream)
    trace.attach()
    trace.attach()

    bus.publish(tx_event(1.5))
    bus.publish(rx_event(1.52))
    bus.publish(tx_event(1.6))

    assert stream.getvalue().splitlines() == [
        "1.5 source 10.0.0.1 send to dest 10.0.0.4",
        "1.52 3 received one packet from 10.0.0.1",
        "1.6 source 10.0.0.1 send to dest 10.0.0.4",
    ], "A collector attached twice must still write each line once"
    assert (trace.tx_lines, trace.rx_lines) == (2, 1)

    trace.detach()
    bus.publish(tx_event(1.7))
    assert len(stream.getvalue().splitlines()) == 3


def test_write_failures_are_not_fatal():
    bus = EventBus()
    trace = TraceCollector(cfg_module, sparams_module, bus, BrokenStream())
    trace.attach()

    bus.publish(tx_event())
    bus.publish(rx_event())

    assert trace.dropped_lines == 2
    assert (trace.tx_lines, trace.rx_lines) == (0, 0)


def test_closed_stream():
    bus = EventBus()
    stream = io.StringIO()
    trace = TraceCollector(cfg_module, sparams_module, bus, stream)
    trace.attach()
    stream.close()

    bus.publish(tx_event())

    assert trace.dropped_lines == 1


def test_defaults_to_stdout(capsys):
    bus = EventBus()
    TraceCollector(cfg_module, sparams_module, bus).attach()

    bus.publish(rx_event())

    assert capsys.readouterr().out == "1.52 3 received one packet from 10.0.0.1\n"


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_line_formats()
    test_collector_writes_in_publish_order()
    test_write_failures_are_not_fatal()
    test_closed_stream()

    print(TEST_COMPLETED_MSG)
