"""DC operating point using MNA (Modified Nodal Analysis).

We solve:
    A * x = z
where:
    x = [node voltages (ground excluded) | battery branch currents]
    A = [[G, B], [C, D]]  (conductances, source incidence, -r_internal)
    z = [0 | battery voltages]

Node indices follow the usual convention: index 0 is ground and is left out
of the matrix, so node i lives in row/column i - 1. Ground is the first node
met while walking the components in insertion order.

Battery branch current variables flow from the positive terminal (``end``)
through the source to the negative one (``start``). Reported currents always
flow from a component's ``start`` to its ``end``, so battery currents are
negated on the way out.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Sequence

import jax.numpy as jnp
from jax import Array

from .components import BATTERY, Component, conducts, resistance
from .config import LabConfig
from .linalg import solve_linear_system

logger = logging.getLogger(__name__)

NodeKey = tuple[float, float]


class ComponentVoltage(NamedTuple):
    """Terminal voltages of a component; diff = end - start."""
    start: float
    end: float
    diff: float


class MnaSolution(NamedTuple):
    """Result of solving the circuit."""
    node_voltages: dict[NodeKey, float]
    component_currents: dict[str, float]  # start -> end convention
    component_voltages: dict[str, ComponentVoltage]
    source_currents: tuple[float, ...]  # raw MNA branch currents, one per battery
    ground: NodeKey


def solve_circuit(
    components: Sequence[Component],
    config: LabConfig = LabConfig(),
) -> MnaSolution | None:
    """
    Build and solve the MNA system for the conducting part of a circuit.

    Args:
        components: components in insertion order
        config: pivot tolerance and gmin

    Returns:
        MnaSolution, or None when there is nothing to solve or the system is
        singular.
    """
    # Distinct nodes of conducting components (batteries always take part)
    node_index: dict[NodeKey, int] = {}
    for comp in components:
        if not conducts(comp) and comp.kind != BATTERY:
            continue
        for node in (comp.start, comp.end):
            node_index.setdefault(node.key, len(node_index))

    num_nodes = len(node_index)
    if num_nodes < 1:
        return None

    sources = [comp for comp in components if comp.kind == BATTERY]
    num_voltages = num_nodes - 1  # ground excluded
    total_size = num_voltages + len(sources)
    if total_size == 0:
        return None

    A = jnp.zeros((total_size, total_size), dtype=jnp.float64)
    z = jnp.zeros(total_size, dtype=jnp.float64)

    # Conductance stamps
    for comp in components:
        if comp.kind == BATTERY or not conducts(comp):
            continue
        r = resistance(comp)
        if not math.isfinite(r) or r == 0:
            continue
        ia = node_index[comp.start.key]
        ib = node_index[comp.end.key]
        A = _stamp_conductance(A, ia, ib, 1.0 / r)

    if config.gmin > 0 and num_voltages > 0:
        diag = jnp.arange(num_voltages)
        A = A.at[diag, diag].add(config.gmin)

    # Voltage source stamps: V(pos) - V(neg) - r * i = V
    for k, source in enumerate(sources):
        idx = num_voltages + k
        n_pos = node_index[source.end.key]
        n_neg = node_index[source.start.key]
        A = _stamp_voltage_source(A, n_pos, n_neg, idx)
        A = A.at[idx, idx].add(-source.internal_resistance)
        z = z.at[idx].set(source.voltage)

    logger.debug(
        "MNA system: %d nodes, %d sources, %d unknowns",
        num_nodes, len(sources), total_size,
    )

    x = solve_linear_system(A, z, pivot_tolerance=config.pivot_tolerance)
    if x is None:
        logger.warning("MNA solve failed: singular system (%d unknowns)", total_size)
        return None

    return _extract_solution(components, sources, node_index, x, num_voltages)


def _extract_solution(
    components: Sequence[Component],
    sources: list[Component],
    node_index: dict[NodeKey, int],
    x: Array,
    num_voltages: int,
) -> MnaSolution:
    """Turn the solution vector into per-node and per-component values."""
    voltages = [0.0] + [float(v) for v in x[:num_voltages]]
    node_voltages = {key: voltages[i] for key, i in node_index.items()}
    source_currents = tuple(float(i) for i in x[num_voltages:])
    source_slot = {source.id: k for k, source in enumerate(sources)}

    component_currents = {}
    component_voltages = {}
    for comp in components:
        start_key = comp.start.key
        end_key = comp.end.key
        if start_key not in node_index or end_key not in node_index:
            continue

        v_start = node_voltages[start_key]
        v_end = node_voltages[end_key]

        if comp.kind == BATTERY:
            current = -source_currents[source_slot[comp.id]]
        else:
            r = resistance(comp)
            if not math.isfinite(r) or r == 0:
                current = 0.0
            else:
                current = (v_start - v_end) / r

        component_currents[comp.id] = current
        component_voltages[comp.id] = ComponentVoltage(v_start, v_end, v_end - v_start)

    ground = next(key for key, i in node_index.items() if i == 0)
    return MnaSolution(
        node_voltages=node_voltages,
        component_currents=component_currents,
        component_voltages=component_voltages,
        source_currents=source_currents,
        ground=ground,
    )


def _stamp_conductance(A: Array, n1: int, n2: int, g) -> Array:
    """Stamp conductance g between nodes n1 and n2 into the A matrix."""
    # MNA matrix excludes ground node (index 0)
    if n1 > 0:
        A = A.at[n1 - 1, n1 - 1].add(g)
    if n2 > 0:
        A = A.at[n2 - 1, n2 - 1].add(g)
    if n1 > 0 and n2 > 0:
        A = A.at[n1 - 1, n2 - 1].add(-g)
        A = A.at[n2 - 1, n1 - 1].add(-g)
    return A


def _stamp_voltage_source(A: Array, n_pos: int, n_neg: int, idx: int) -> Array:
    """
    Stamp the B and C entries of a voltage source.

    A[n_pos-1, idx] = A[idx, n_pos-1] = 1
    A[n_neg-1, idx] = A[idx, n_neg-1] = -1
    """
    if n_pos > 0:
        A = A.at[idx, n_pos - 1].add(1.0)
        A = A.at[n_pos - 1, idx].add(1.0)
    if n_neg > 0:
        A = A.at[idx, n_neg - 1].add(-1.0)
        A = A.at[n_neg - 1, idx].add(-1.0)
    return A
