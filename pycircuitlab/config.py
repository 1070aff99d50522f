"""Simulation tunables and INI-file loading."""

from __future__ import annotations

import configparser
import logging
import math
import os
from typing import NamedTuple

logger = logging.getLogger(__name__)

DEFAULT_MERGE_RADIUS = 25.0
DEFAULT_PIVOT_TOLERANCE = 1e-15
DEFAULT_GMIN = 0.0

CONFIG_SECTION = "circuit"


class LabConfig(NamedTuple):
    """
    Tunables shared by the graph and the solver.

    merge_radius: nodes closer than this (Euclidean, strict) are one point
    pivot_tolerance: smallest pivot magnitude Gaussian elimination accepts
    gmin: conductance added from every node to ground (0 disables it)
    """
    merge_radius: float = DEFAULT_MERGE_RADIUS
    pivot_tolerance: float = DEFAULT_PIVOT_TOLERANCE
    gmin: float = DEFAULT_GMIN


def load_config(path: str | os.PathLike) -> LabConfig:
    """
    Read a LabConfig from an INI file.

    The file may contain a [circuit] section with any of the keys
    merge_radius, pivot_tolerance and gmin. A missing file, section or key
    falls back to the defaults.

    Raises:
        ValueError: a key holds something that is not a number, or a
            negative or non-finite value.
    """
    parser = configparser.ConfigParser()
    if not parser.read(path):
        logger.debug("Config file %s not found, using defaults", path)
        return LabConfig()

    if CONFIG_SECTION not in parser:
        logger.warning("Config file %s has no [%s] section, using defaults", path, CONFIG_SECTION)
        return LabConfig()

    section = parser[CONFIG_SECTION]
    config = LabConfig(
        merge_radius=section.getfloat("merge_radius", DEFAULT_MERGE_RADIUS),
        pivot_tolerance=section.getfloat("pivot_tolerance", DEFAULT_PIVOT_TOLERANCE),
        gmin=section.getfloat("gmin", DEFAULT_GMIN),
    )

    for name, value in config._asdict().items():
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"{name} must be a finite, non-negative number, got {value}")

    logger.debug("Loaded %s from %s", config, path)
    return config
