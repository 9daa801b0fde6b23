from manetsim.sim_params import SimParams as sparams_module

import math


def get_distance_m(
    position_1: tuple[float, float, float], position_2: tuple[float, float, float]
) -> float:
    """Returns the Euclidean distance between two 3D points."""
    x1, y1, z1 = position_1
    x2, y2, z2 = position_2
    return math.sqrt((x2 - x1) ** 2 + (y2 - y1) ** 2 + (z2 - z1) ** 2)


def get_tx_duration_s(sparams: sparams_module, size_bytes: int) -> float:
    """
    Calculates the time (in seconds) a frame occupies the medium.

    Args:
        sparams (sparams_module): The SimParams object.
        size_bytes (int): The size of the frame in bytes.

    Returns:
        float: The transmission duration in seconds, including the PHY preamble.
    """
    return sparams.PHY_PREAMBLE_s + size_bytes * 8 / sparams.DATA_RATE_bps


def get_propagation_delay_s(sparams: sparams_module, distance_m: float) -> float:
    """
    Calculates the propagation delay (in seconds) according to a constant speed model.

    Args:
        sparams (sparams_module): The SimParams object.
        distance_m (float): The distance in meters.

    Returns:
        float: The propagation delay in seconds.
    """
    return distance_m / sparams.PROPAGATION_SPEED_mps
