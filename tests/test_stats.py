from tests._user_config_tests import UserConfig as cfg_module, override
from tests._sim_params_tests import SimParams as sparams_module

from manetsim.utils.event_logger import get_logger
from manetsim.utils.statistics import NetworkStats
from manetsim.utils.support import build_scenario
from manetsim.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import io
import json
import pandas as pd
import pytest

logger = get_logger("TEST", cfg_module, sparams_module)


def record(packet_id, creation_time_s, reception_time_s=None, dst_port=80):
    return {
        "packet_id": packet_id,
        "src_address": "10.0.0.1",
        "dst_address": "10.0.0.4",
        "src_port": 49153,
        "dst_port": dst_port,
        "size_bytes": 500,
        "creation_time_s": creation_time_s,
        "reception_time_s": reception_time_s,
        "hops": 2,
    }


def test_flow_report():
    tx_df = pd.DataFrame([record(1, 1.0), record(2, 1.5), record(3, 2.0), record(1, 1.0, dst_port=81)])
    rx_df = pd.DataFrame([record(1, 1.0, 1.1), record(2, 1.5, 1.7)])

    report = NetworkStats.get_flow_report(tx_df, rx_df).set_index("dst_port")

    assert report.loc[80, "pkts_sent"] == 3
    assert report.loc[80, "pkts_received"] == 2
    assert report.loc[80, "delivery_ratio"] == pytest.approx(2 / 3)
    assert report.loc[80, "mean_delay_s"] == pytest.approx(0.15)
    # 1000 bytes between 1.0 and 1.7 s
    assert report.loc[80, "goodput_kbps"] == pytest.approx(8 / 0.7)

    assert report.loc[81, "pkts_received"] == 0
    assert report.loc[81, "delivery_ratio"] == 0
    assert report.loc[81, "goodput_kbps"] == 0


def test_empty_flow_report():
    report = NetworkStats.get_flow_report(pd.DataFrame(), pd.DataFrame())

    assert report.empty
    assert "delivery_ratio" in report.columns


def test_scenario_stats(tmp_path):
    cfg = override(
        cfg_module,
        ENABLE_STATS_COLLECTION=True,
        STATS_SAVE_PATH=str(tmp_path),
    )
    scenario = build_scenario(cfg, sparams_module, stream=io.StringIO())
    scenario.run()

    stats = scenario.network.stats
    stats.collect_stats()
    stats.collect_stats()

    assert len(stats.flows) == 1
    flow = stats.flows.iloc[0]
    assert (flow.src_address, flow.dst_address, flow.dst_port) == ("10.0.0.1", "10.0.0.4", 80)
    assert flow.pkts_sent == stats.total_pkts_tx, "Collecting twice must not double the totals"
    assert flow.pkts_received == stats.total_pkts_rx > 0
    assert stats.total_pkts_forwarded >= 2 * flow.pkts_received
    assert stats.medium_stats["frames_delivered"] > 0

    with open(tmp_path / "session_stats.json") as file:
        saved = json.load(file)
    assert saved["global_stats"]["total_pkts_rx"] == stats.total_pkts_rx
    assert set(saved["per_node_stats"]) == {"0", "1", "2", "3"}
    assert pd.read_csv(tmp_path / "flows.csv").shape[0] == 1


if __name__ == "__main__":
    import tempfile
    import pathlib

    print(STARTING_TEST_MSG)

    test_flow_report()
    test_empty_flow_report()
    with tempfile.TemporaryDirectory() as folder:
        test_scenario_stats(pathlib.Path(folder))

    print(TEST_COMPLETED_MSG)
