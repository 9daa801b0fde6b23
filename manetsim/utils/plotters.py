from manetsim.sim_params import SimParams as sparams_module
from manetsim.user_config import UserConfig as cfg_module

from manetsim.utils.event_logger import get_logger
from manetsim.components.network import Network

from matplotlib import rcParams

import os
import logging
import networkx as nx
import matplotlib.pyplot as plt
import matplotlib.lines as mlines


rcParams["font.family"] = "serif"
rcParams["font.serif"] = ["DejaVu Serif"]
rcParams["mathtext.fontset"] = "dejavuserif"


class BasePlotter:
    """Base class for all plotters, handling saving and displaying plots."""

    def __init__(self, cfg: cfg_module, sparams: sparams_module, scheduler=None):
        """
        Initialize a BasePlotter object.

        Args:
            cfg (cfg): The UserConfig object.
            sparams (sparams): The SimParams object.
            scheduler (Scheduler, optional): The simulation scheduler. Defaults to None.
        """
        self.cfg = cfg
        self.sparams = sparams
        self.scheduler = scheduler

        self.name: str = "PLOTTER"
        self.logger: logging.Logger = get_logger(self.name, cfg, sparams, scheduler)

    def save_plot(self, figure: plt.Figure, save_name: str, save_format: str) -> str | None:
        """
        Saves the plot in the figures folder.

        Args:
            figure (plt.Figure): The figure to save.
            save_name (str): The base name of the saved file.
            save_format (str): The format of the saved file (e.g. pdf, png).

        Returns:
            str | None: The path of the saved file, None if it was not saved.
        """
        if not save_name or not save_format:
            return None

        file_path = os.path.join(self.cfg.FIGS_SAVE_PATH, f"{save_name}.{save_format}")
        try:
            os.makedirs(self.cfg.FIGS_SAVE_PATH, exist_ok=True)
            figure.savefig(file_path)
        except OSError as e:
            self.logger.warning(f"Could not save figure {file_path}: {e}")
            return None
        return file_path


class NetworkPlotter(BasePlotter):
    """Plotter for the node grid, its radio links and the traffic flows."""

    def plot_network(
        self,
        network: Network,
        node_size: int = 120,
        label_nodes: bool = True,
        show_distances: bool = True,
        save_name: str = "network",
        save_format: str = "pdf",
    ) -> str | None:
        """
        Plots the topology using matplotlib.

        Args:
            network (Network): The network to plot.
            node_size (int, optional): The size of the nodes in the plot. Defaults to 120.
            label_nodes (bool, optional): Whether to label the nodes with their IDs. Defaults to True.
            show_distances (bool, optional): Whether to show the link distances. Defaults to True.
            save_name (str, optional): The base name of the saved file. Defaults to "network".
            save_format (str, optional): The format of the saved file (e.g. pdf, png). Defaults to "pdf".

        Returns:
            str | None: The path of the saved figure, if saved.
        """
        if not self.cfg.ENABLE_FIGS_SAVING and not self.cfg.ENABLE_FIGS_DISPLAY:
            return None

        if network is None or network.graph.number_of_nodes() == 0:
            self.logger.error("Network is empty. Nothing to plot.")
            return None

        self.logger.header("Generating network plot...")

        plt.ion()
        fig, ax = plt.subplots(figsize=(6.4, 4.8))

        positions = {
            node_id: pos[:2]
            for node_id, pos in nx.get_node_attributes(network.graph, "pos").items()
        }

        # Radio links
        for node1_id, node2_id, data in network.graph.edges(data=True):
            (x1, y1), (x2, y2) = positions[node1_id], positions[node2_id]
            ax.plot([x1, x2], [y1, y2], color="#9a9a9a", lw=1, zorder=1)

            if show_distances:
                ax.text(
                    (x1 + x2) / 2,
                    (y1 + y2) / 2,
                    f"{data['distance']:.0f}",
                    color="#272727",
                    fontsize=7,
                    ha="center",
                    va="bottom",
                    zorder=10,
                )

        # Nodes
        xs = [positions[node.id][0] for node in network.get_nodes()]
        ys = [positions[node.id][1] for node in network.get_nodes()]
        ax.scatter(xs, ys, c="tab:blue", edgecolors="black", s=node_size, zorder=2)

        if label_nodes:
            for node in network.get_nodes():
                x, y = positions[node.id]
                ax.text(
                    x,
                    y,
                    f"{node.id}",
                    fontsize=7,
                    color="white",
                    ha="center",
                    va="center",
                    zorder=50,
                    fontweight="bold",
                )

        # Traffic flows
        for node in network.get_nodes():
            for app in node.traffic_flows:
                sink = network.get_node_by_address(app.flow.dst_address)
                if sink is None:
                    continue
                ax.annotate(
                    "",
                    xy=positions[sink.id],
                    xytext=positions[node.id],
                    arrowprops=dict(
                        arrowstyle="->", color="tab:red", lw=1.5, connectionstyle="arc3,rad=0.3"
                    ),
                    zorder=5,
                )

        legend_elements = [
            mlines.Line2D([0], [0], color="#9a9a9a", lw=1, label="Radio link"),
            mlines.Line2D([0], [0], color="tab:red", lw=1.5, label="Traffic flow"),
        ]
        ax.legend(handles=legend_elements, loc="best", fontsize="small", frameon=False)

        ax.set_xlabel("X (m)")
        ax.set_ylabel("Y (m)")
        ax.set_title(f"Network ({len(network)} nodes, {network.graph.number_of_edges()} links)")
        ax.set_aspect("equal", adjustable="datalim")
        ax.set_facecolor("white")

        plt.tight_layout()

        file_path = None
        if self.cfg.ENABLE_FIGS_SAVING:
            file_path = self.save_plot(fig, save_name, save_format)
        if self.cfg.ENABLE_FIGS_DISPLAY:
            plt.show()
        else:
            plt.close(fig)

        return file_path
