from tests._user_config_tests import UserConfig as cfg_module, override
from tests._sim_params_tests import SimParams as sparams_module

import matplotlib

matplotlib.use("Agg")

from manetsim.utils.event_logger import get_logger
from manetsim.utils.plotters import NetworkPlotter
from manetsim.utils.support import build_scenario
from manetsim.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import io
import os
import matplotlib.pyplot as plt

logger = get_logger("TEST", cfg_module, sparams_module)


def test_network_plot_saved(tmp_path):
    cfg = override(cfg_module, ENABLE_FIGS_SAVING=True, FIGS_SAVE_PATH=str(tmp_path))
    scenario = build_scenario(cfg, sparams_module, stream=io.StringIO())

    file_path = NetworkPlotter(cfg, sparams_module).plot_network(scenario.network, save_format="png")

    assert file_path == os.path.join(str(tmp_path), "network.png")
    assert os.path.getsize(file_path) > 0
    assert plt.get_fignums() == [], "Figures must be closed when not displayed"


def test_plot_skipped_when_figures_disabled(tmp_path):
    cfg = override(cfg_module, FIGS_SAVE_PATH=str(tmp_path))
    scenario = build_scenario(cfg, sparams_module, stream=io.StringIO())

    assert NetworkPlotter(cfg, sparams_module).plot_network(scenario.network) is None
    assert os.listdir(tmp_path) == []


def test_empty_network_not_plotted(tmp_path):
    cfg = override(cfg_module, SIZE=0, ENABLE_FIGS_SAVING=True, FIGS_SAVE_PATH=str(tmp_path))
    scenario = build_scenario(cfg, sparams_module, stream=io.StringIO())

    assert NetworkPlotter(cfg, sparams_module).plot_network(scenario.network) is None


def test_empty_network_silent_when_figures_disabled(monkeypatch):
    cfg = override(cfg_module, SIZE=0)
    scenario = build_scenario(cfg, sparams_module, stream=io.StringIO())
    plotter = NetworkPlotter(cfg, sparams_module)

    errors = []
    monkeypatch.setattr(plotter.logger, "error", errors.append)

    assert plotter.plot_network(scenario.network) is None
    assert errors == []


if __name__ == "__main__":
    import tempfile
    import pathlib

    print(STARTING_TEST_MSG)

    for test in (test_network_plot_saved, test_plot_skipped_when_figures_disabled, test_empty_network_not_plotted):
        with tempfile.TemporaryDirectory() as folder:
            test(pathlib.Path(folder))

    print(TEST_COMPLETED_MSG)
