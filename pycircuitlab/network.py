"""Node and CircuitGraph classes for circuit topology (immutable/functional style)."""

from __future__ import annotations

import logging
import math
from types import MappingProxyType
from typing import Mapping, NamedTuple, TYPE_CHECKING

from .components import BULB, SWITCH, Component, conducts
from .config import LabConfig

if TYPE_CHECKING:
    from .simulator import SimulationResult

logger = logging.getLogger(__name__)


class Node(NamedTuple):
    """A connection point placed on the workspace at (x, y)."""
    id: str
    x: float
    y: float

    @property
    def key(self) -> tuple[float, float]:
        """Position used to key node voltages in simulation results."""
        return (self.x, self.y)


def distance(a: Node, b: Node) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


class CircuitGraph(NamedTuple):
    """
    Immutable circuit graph.

    Nodes live in an arena keyed by id; ``adjacency`` maps every node id to
    the ids of the nodes it is wired to. Components are kept in insertion
    order, which fixes the ground node and the order of result details.

    Build using functional style:
        graph = CircuitGraph()
        graph, bat = graph.add_component(Battery("bat", Node("a", 0, 0), Node("b", 80, 0)))
        graph, bulb = graph.add_component(Bulb("bulb", Node("c", 80, 0), Node("d", 0, 0)))
        graph, result = graph.simulate()
    """
    nodes: tuple[Node, ...] = ()
    adjacency: Mapping[str, frozenset[str]] = MappingProxyType({})
    components: tuple[Component, ...] = ()
    config: LabConfig = LabConfig()
    last_simulation: SimulationResult | None = None

    def add_node(self, node: Node | None) -> tuple[CircuitGraph, Node | None]:
        """
        Add a node, merging it into any existing node closer than merge_radius.

        Returns (new_graph, node) where node is the existing node on a merge
        (the incoming one is dropped) or the incoming node otherwise.
        """
        if node is None:
            return self, None

        for existing in self.nodes:
            if distance(existing, node) < self.config.merge_radius:
                if existing.id != node.id:
                    logger.debug("Merging node %s into %s", node.id, existing.id)
                return self, existing

        if node.id in self.adjacency:
            raise ValueError(f"Node id {node.id!r} is already used at another position")

        new_graph = self._replace(
            nodes=self.nodes + (node,),
            adjacency=MappingProxyType({**self.adjacency, node.id: frozenset()}),
        )
        return new_graph, node

    def add_component(self, component: Component | None) -> tuple[CircuitGraph, Component | None]:
        """
        Add a component, routing both terminals through add_node.

        Returns (new_graph, component) where the component's start/end are
        the graph's (possibly merged) nodes. A component missing a terminal
        is ignored and (self, None) returned.
        """
        if component is None or component.start is None or component.end is None:
            logger.warning(
                "Ignoring component %s: both start and end nodes are required",
                getattr(component, "id", None),
            )
            return self, None

        if any(existing.id == component.id for existing in self.components):
            raise ValueError(f"Component id {component.id!r} is already used")

        graph, start = self.add_node(component.start)
        graph, end = graph.add_node(component.end)

        adjacency = dict(graph.adjacency)
        adjacency[start.id] = adjacency[start.id] | {end.id}
        adjacency[end.id] = adjacency[end.id] | {start.id}

        component = component._replace(start=start, end=end)
        new_graph = graph._replace(
            adjacency=MappingProxyType(adjacency),
            components=graph.components + (component,),
        )
        return new_graph, component

    def node(self, node_id: str) -> Node:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise ValueError(f"Node {node_id!r} not found")

    def neighbors(self, node: Node) -> frozenset[str]:
        """Ids of the nodes wired directly to a node."""
        return self.adjacency.get(node.id, frozenset())

    def component(self, component_id: str) -> Component:
        for comp in self.components:
            if comp.id == component_id:
                return comp
        raise ValueError(f"Component {component_id!r} not found")

    def replace_component(self, component: Component) -> CircuitGraph:
        """
        Swap in a new state for an existing component (matched by id).

        Terminals cannot be moved this way; the stored nodes are kept.
        """
        current = self.component(component.id)
        updated = component._replace(start=current.start, end=current.end)
        return self._replace(components=tuple(
            updated if comp.id == component.id else comp for comp in self.components
        ))

    def toggle_switch(self, switch_id: str) -> CircuitGraph:
        switch = self.component(switch_id)
        if switch.kind != SWITCH:
            raise ValueError(f"Component {switch_id!r} is a {switch.kind}, not a switch")
        return self.replace_component(switch.toggle())

    def reset_bulb(self, bulb_id: str) -> CircuitGraph:
        bulb = self.component(bulb_id)
        if bulb.kind != BULB:
            raise ValueError(f"Component {bulb_id!r} is a {bulb.kind}, not a bulb")
        return self.replace_component(bulb.reset())

    def components_of(self, kind: str) -> tuple[Component, ...]:
        return tuple(comp for comp in self.components if comp.kind == kind)

    def connections(self, node: Node) -> tuple[Component, ...]:
        """Components with a terminal on the given node."""
        return tuple(
            comp for comp in self.components
            if comp.start.id == node.id or comp.end.id == node.id
        )

    @staticmethod
    def other_node(component: Component, node: Node) -> Node:
        """The terminal of a component opposite to the given node."""
        if component.start.id == node.id:
            return component.end
        return component.start

    def find_closed_loop_path(
        self,
        current: Node | None,
        target: Node | None,
        *,
        exclude: tuple[Component, ...] = (),
    ) -> tuple[Component, ...] | None:
        """
        Depth-first search for a conducting path from current to target.

        Components (not nodes) are marked visited, so a node may be crossed
        more than once but no component is used twice. Stepping straight
        onto the target as the first hop is not a loop. Components listed in
        exclude are never traversed (the battery driving the loop, typically).

        Returns the components along the first path found, or None.
        """
        if current is None or target is None:
            return None
        visited = {comp.id for comp in exclude}
        return self._search_loop(current, target, visited, [])

    def _search_loop(
        self,
        current: Node,
        target: Node,
        visited: set[str],
        path: list[Component],
    ) -> tuple[Component, ...] | None:
        if current.id == target.id and path:
            return tuple(path)

        for comp in self.connections(current):
            if comp.id in visited or not conducts(comp):
                continue

            next_node = self.other_node(comp, current)
            if next_node.id == target.id and not path:
                continue

            visited.add(comp.id)
            path.append(comp)

            result = self._search_loop(next_node, target, visited, path)
            if result is not None:
                return result

            path.pop()
            visited.discard(comp.id)

        return None

    def simulate(self) -> tuple[CircuitGraph, SimulationResult]:
        """
        Check and solve the circuit.

        Returns (new_graph, result). The new graph carries the updated bulb
        and meter states and caches the result as last_simulation.
        """
        from .simulator import simulate
        return simulate(self)
