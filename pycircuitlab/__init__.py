"""PyCircuitLab - JAX-backed DC solver for an educational circuit sandbox.

Circuits are built from two-terminal components (wires, resistors, bulbs,
switches, batteries, ammeters, voltmeters) placed between nodes on a 2D
workspace. Nodes closer than the merge radius become one electrical point.
simulate() checks for a battery, open switches and a closed loop, then solves
node voltages and branch currents with Modified Nodal Analysis.

Usage:
    from pycircuitlab import CircuitGraph, Node, Battery, Wire, Bulb

    graph = CircuitGraph()
    graph, _ = graph.add_component(Battery("bat", Node("a", 0, 0), Node("b", 100, 0)))
    graph, _ = graph.add_component(Wire("w", Node("c", 100, 0), Node("d", 100, 100)))
    graph, _ = graph.add_component(Bulb("lamp", Node("e", 100, 100), Node("f", 0, 0)))
    graph, result = graph.simulate()
"""

import jax

# Circuit currents span µA to A; solve in double precision
jax.config.update("jax_enable_x64", True)

from .config import LabConfig, load_config
from .network import CircuitGraph, Node
from .components import (
    Ammeter,
    Battery,
    Bulb,
    Component,
    Resistor,
    Switch,
    Voltmeter,
    Wire,
    conducts,
    resistance,
)
from .linalg import solve_linear_system
from .mna import ComponentVoltage, MnaSolution, solve_circuit
from .simulator import (
    CircuitSummary,
    ComponentDetail,
    SimulationResult,
    Status,
    simulate,
    summarize,
)

__version__ = "0.1.0"
__all__ = [
    # Configuration
    "LabConfig",
    "load_config",
    # Topology
    "CircuitGraph",
    "Node",
    # Components
    "Component",
    "Wire",
    "Resistor",
    "Bulb",
    "Switch",
    "Battery",
    "Ammeter",
    "Voltmeter",
    "conducts",
    "resistance",
    # Solving
    "solve_linear_system",
    "solve_circuit",
    "MnaSolution",
    "ComponentVoltage",
    # Simulation
    "simulate",
    "summarize",
    "Status",
    "SimulationResult",
    "ComponentDetail",
    "CircuitSummary",
    "__version__",
]
