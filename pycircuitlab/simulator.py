"""
Circuit simulation: checks, MNA solve and component state updates.

simulate() walks a fixed sequence of checks, stopping at the first one that
fails:

    1. a battery is present                 else NO_BATTERY
    2. every switch is closed               else SWITCH_OPEN
    3. a closed loop runs through battery 1 else OPEN_CIRCUIT
    4. the MNA system is non-singular       else OPEN_CIRCUIT (solve_failed)
    5. SOLVED: bulbs and meters updated from the solution

Every outcome is returned as a SimulationResult; nothing here raises for
circuit content.
"""

from __future__ import annotations

import logging
import math
from enum import IntEnum
from types import MappingProxyType
from typing import Mapping, NamedTuple, TYPE_CHECKING

from .components import AMMETER, BATTERY, BULB, SWITCH, VOLTMETER, Component
from .mna import ComponentVoltage, MnaSolution, NodeKey, solve_circuit

if TYPE_CHECKING:
    from .network import CircuitGraph

logger = logging.getLogger(__name__)

_EMPTY: Mapping = MappingProxyType({})


class Status(IntEnum):
    """Outcome of a simulation run."""
    SWITCH_OPEN = -2
    NO_BATTERY = -1
    OPEN_CIRCUIT = 0
    SOLVED = 1


class ComponentDetail(NamedTuple):
    """Per-component entry of a solved circuit, in component order."""
    id: str
    kind: str
    current: float  # start -> end, Amperes
    voltage: float  # end - start, Volts
    start_voltage: float
    end_voltage: float


class SimulationResult(NamedTuple):
    """
    Immutable snapshot of one simulate() call.

    current is the summed magnitude of all battery currents and
    total_voltage the battery voltage when there is exactly one battery.
    The maps are read-only and empty unless status is SOLVED.
    """
    status: Status
    message: str
    closed: bool
    current: float = 0.0
    total_voltage: float | None = None
    node_voltages: Mapping[NodeKey, float] = _EMPTY
    component_currents: Mapping[str, float] = _EMPTY
    component_voltages: Mapping[str, ComponentVoltage] = _EMPTY
    component_details: tuple[ComponentDetail, ...] = ()
    open_switch: str | None = None
    solve_failed: bool = False


class CircuitSummary(NamedTuple):
    """Whole-circuit figures as seen from the battery."""
    voltage: float
    current: float
    resistance: float  # equivalent resistance V / I, inf when no current flows
    power: float


def summarize(result: SimulationResult | None) -> CircuitSummary:
    """
    Equivalent resistance and power drawn for a simulation result.

    power is what the batteries deliver, summed over their terminal voltage
    times current. With several batteries there is no single source voltage,
    so voltage and resistance are nan.
    """
    if result is None or not result.closed:
        return CircuitSummary(voltage=0.0, current=0.0, resistance=math.inf, power=0.0)

    current = result.current
    power = sum(
        detail.voltage * detail.current
        for detail in result.component_details
        if detail.kind == BATTERY
    )
    voltage = result.total_voltage
    if voltage is None:
        return CircuitSummary(voltage=math.nan, current=current, resistance=math.nan, power=power)

    return CircuitSummary(
        voltage=voltage,
        current=current,
        resistance=voltage / current if current > 0 else math.inf,
        power=power,
    )


def simulate(graph: CircuitGraph) -> tuple[CircuitGraph, SimulationResult]:
    """
    Run the simulation checks and, for a closed circuit, the MNA solve.

    Returns (new_graph, result); new_graph holds the updated component
    states and caches result as last_simulation.
    """
    components = graph.components

    batteries = graph.components_of(BATTERY)
    if not batteries:
        logger.info("Battery not found")
        return _stopped(graph, SimulationResult(
            status=Status.NO_BATTERY,
            message="Battery not found",
            closed=False,
        ))

    for switch in graph.components_of(SWITCH):
        if not switch.is_on:
            logger.info("Switch %s is OPEN", switch.id)
            return _stopped(graph, SimulationResult(
                status=Status.SWITCH_OPEN,
                message=f"Switch {switch.id} is OPEN",
                closed=False,
                open_switch=switch.id,
            ))

    primary = batteries[0]
    path = graph.find_closed_loop_path(primary.start, primary.end, exclude=(primary,))
    if path is None:
        logger.info("Circuit open. Current does not flow.")
        return _stopped(graph, SimulationResult(
            status=Status.OPEN_CIRCUIT,
            message="Circuit open. Current does not flow.",
            closed=False,
        ))

    logger.debug("Closed loop through %s, solving with MNA", [comp.id for comp in path])
    solution = solve_circuit(components, graph.config)
    if solution is None:
        logger.info("Circuit solve failed")
        return _stopped(graph, SimulationResult(
            status=Status.OPEN_CIRCUIT,
            message="Circuit solve failed",
            closed=False,
            solve_failed=True,
        ))

    return _solved(graph, solution, batteries)


def _solved(
    graph: CircuitGraph,
    solution: MnaSolution,
    batteries: tuple[Component, ...],
) -> tuple[CircuitGraph, SimulationResult]:
    """Update component states from a solution and build the result."""
    for key, voltage in solution.node_voltages.items():
        logger.debug("  node %s: %.6f V", key, voltage)

    total_current = 0.0
    details = []
    updated = []
    for comp in graph.components:
        current = solution.component_currents.get(comp.id, 0.0)
        voltages = solution.component_voltages.get(comp.id)

        if comp.kind == BATTERY:
            total_current += abs(current)

        logger.debug(
            "  %s (%s): %.4f mA, %.6f V drop",
            comp.kind, comp.id, current * 1000, voltages.diff if voltages else 0.0,
        )

        if comp.kind == BULB:
            comp = comp.update(abs(current))
        elif comp.kind == AMMETER:
            comp = comp.set_connected(voltages is not None).update(current)
        elif comp.kind == VOLTMETER:
            comp = comp.set_connected(voltages is not None)
            if voltages is not None:
                comp = comp.update(voltages.diff)
        updated.append(comp)

        details.append(ComponentDetail(
            id=comp.id,
            kind=comp.kind,
            current=current,
            voltage=voltages.diff if voltages else 0.0,
            start_voltage=voltages.start if voltages else 0.0,
            end_voltage=voltages.end if voltages else 0.0,
        ))

    logger.info("Circuit solved with MNA, total current %.4f mA", total_current * 1000)

    result = SimulationResult(
        status=Status.SOLVED,
        message="Circuit solved with MNA",
        closed=True,
        current=total_current,
        total_voltage=batteries[0].voltage if len(batteries) == 1 else None,
        node_voltages=MappingProxyType(dict(solution.node_voltages)),
        component_currents=MappingProxyType(dict(solution.component_currents)),
        component_voltages=MappingProxyType(dict(solution.component_voltages)),
        component_details=tuple(details),
    )
    new_graph = graph._replace(components=tuple(updated), last_simulation=result)
    return new_graph, result


def _stopped(graph: CircuitGraph, result: SimulationResult) -> tuple[CircuitGraph, SimulationResult]:
    """Darken bulbs and disconnect meters for a circuit that does not conduct."""
    updated = []
    for comp in graph.components:
        if comp.kind == BULB:
            comp = comp.update(0.0)
        elif comp.kind in (AMMETER, VOLTMETER):
            comp = comp.set_connected(False)
        updated.append(comp)

    new_graph = graph._replace(components=tuple(updated), last_simulation=result)
    return new_graph, result
