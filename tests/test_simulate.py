"""
Test: simulate() state machine and component state propagation.

Simple loop used throughout:

    a(0,0) --battery 9V--> b(100,0) --wire 1Ω--> c(100,100) --bulb 100Ω--> a
"""
import math

import pytest

V_BAT = 9.0
I_LOOP = V_BAT / 101.0


def _simple_loop(bulb_resistance=100.0):
    from pycircuitlab import Battery, Bulb, CircuitGraph, Node, Wire

    graph = CircuitGraph()
    graph, _ = graph.add_component(Battery("bat", Node("a", 0, 0), Node("b", 100, 0), voltage=V_BAT))
    graph, _ = graph.add_component(Wire("w", Node("b2", 100, 0), Node("c", 100, 100)))
    graph, _ = graph.add_component(
        Bulb("lamp", Node("c2", 100, 100), Node("a2", 0, 0), resistance=bulb_resistance)
    )
    return graph


def _switched_loop(is_on):
    """Battery a->b, switch b->c, bulb c->a."""
    from pycircuitlab import Battery, Bulb, CircuitGraph, Node, Switch

    graph = CircuitGraph()
    graph, _ = graph.add_component(Battery("bat", Node("a", 0, 0), Node("b", 100, 0), voltage=V_BAT))
    graph, _ = graph.add_component(Switch("sw", Node("b2", 100, 0), Node("c", 100, 100), is_on=is_on))
    graph, _ = graph.add_component(Bulb("lamp", Node("c2", 100, 100), Node("a2", 0, 0)))
    return graph


class TestSolved:
    """Closed single loop."""

    def test_status_and_current(self):
        from pycircuitlab import Status

        graph, result = _simple_loop().simulate()

        assert result.status == Status.SOLVED
        assert result.status == 1
        assert result.closed
        assert abs(result.current - I_LOOP) < 1e-6, f"Expected {I_LOOP:.6f}A, got {result.current:.6f}A"
        assert result.total_voltage == V_BAT

    def test_bulb_brightness(self):
        graph, result = _simple_loop().simulate()
        lamp = graph.component("lamp")

        expected = min(100.0, I_LOOP / lamp.max_current * 100.0)
        assert lamp.is_on
        assert abs(lamp.brightness - expected) < 1e-6, f"Expected {expected:.3f}%, got {lamp.brightness:.3f}%"

    def test_total_resistance(self):
        from pycircuitlab import summarize

        _, result = _simple_loop().simulate()
        summary = summarize(result)

        assert abs(summary.resistance - 101.0) < 1e-6
        assert abs(summary.power - V_BAT * I_LOOP) < 1e-9
        assert summary.voltage == V_BAT

    def test_component_details_follow_component_order(self):
        graph, result = _simple_loop().simulate()

        assert [d.id for d in result.component_details] == ["bat", "w", "lamp"]
        assert [d.kind for d in result.component_details] == ["battery", "wire", "bulb"]
        lamp = result.component_details[2]
        assert abs(lamp.current - I_LOOP) < 1e-9
        assert abs(lamp.voltage - (lamp.end_voltage - lamp.start_voltage)) < 1e-15

    def test_result_maps_are_read_only(self):
        _, result = _simple_loop().simulate()

        with pytest.raises(TypeError):
            result.component_currents["lamp"] = 0.0

    def test_result_is_cached_on_new_graph_only(self):
        graph = _simple_loop()
        new_graph, result = graph.simulate()

        assert new_graph.last_simulation is result
        assert graph.last_simulation is None
        assert not graph.component("lamp").is_on, "Original graph must keep its bulb state"

    def test_idempotent(self):
        graph, first = _simple_loop().simulate()
        graph, second = graph.simulate()

        assert first.node_voltages.keys() == second.node_voltages.keys()
        for key, v in first.node_voltages.items():
            assert abs(v - second.node_voltages[key]) < 1e-9
        for comp_id, i in first.component_currents.items():
            assert abs(i - second.component_currents[comp_id]) < 1e-9

    def test_ohms_law_round_trip(self):
        graph, result = _simple_loop().simulate()

        for comp in graph.components:
            if comp.kind == "battery":
                continue
            v_start = result.node_voltages[comp.start.key]
            v_end = result.node_voltages[comp.end.key]
            expected = (v_start - v_end) / comp.effective_resistance()
            assert abs(expected - result.component_currents[comp.id]) < 1e-12, \
                f"Ohm's law mismatch for {comp.id}"

    def test_two_batteries_have_no_total_voltage(self):
        from pycircuitlab import Battery, Bulb, CircuitGraph, Node, Status

        graph = CircuitGraph()
        graph, _ = graph.add_component(Battery("b1", Node("a", 0, 0), Node("b", 100, 0), voltage=1.5))
        graph, _ = graph.add_component(Battery("b2", Node("b2", 100, 0), Node("c", 200, 0), voltage=1.5))
        graph, _ = graph.add_component(Bulb("lamp", Node("c2", 200, 0), Node("a2", 0, 0)))

        graph, result = graph.simulate()

        assert result.status == Status.SOLVED
        assert result.total_voltage is None
        # Each battery carries 30 mA; current sums their magnitudes
        assert abs(result.current - 0.06) < 1e-9

    def test_zero_resistance_wire_uses_default(self):
        """A wire stored with 0 Ω still carries the loop current."""
        from pycircuitlab import Battery, Bulb, CircuitGraph, Node, Status, Wire

        graph = CircuitGraph()
        graph, _ = graph.add_component(Battery("bat", Node("a", 0, 0), Node("b", 100, 0), voltage=V_BAT))
        graph, _ = graph.add_component(Wire("w", Node("b2", 100, 0), Node("c", 100, 100), resistance=0.0))
        graph, _ = graph.add_component(Bulb("lamp", Node("c2", 100, 100), Node("a2", 0, 0)))

        graph, result = graph.simulate()

        assert result.status == Status.SOLVED
        assert abs(result.component_currents["w"] - I_LOOP) < 1e-9, \
            f"Expected {I_LOOP:.6f}A through the wire, got {result.component_currents['w']:.6f}A"
        assert graph.component("lamp").is_on

    def test_summary_with_several_batteries(self):
        from pycircuitlab import Battery, Bulb, CircuitGraph, Node, summarize

        graph = CircuitGraph()
        graph, _ = graph.add_component(Battery("b1", Node("a", 0, 0), Node("b", 100, 0), voltage=1.5))
        graph, _ = graph.add_component(Battery("b2", Node("b2", 100, 0), Node("c", 200, 0), voltage=1.5))
        graph, _ = graph.add_component(Bulb("lamp", Node("c2", 200, 0), Node("a2", 0, 0)))

        _, result = graph.simulate()
        summary = summarize(result)

        assert math.isnan(summary.voltage)
        assert math.isnan(summary.resistance)
        # 3 V across 100 Ω
        assert abs(summary.power - 0.09) < 1e-9, f"Expected 0.09 W, got {summary.power}"


class TestMeters:

    def _metered(self):
        """6V battery, ammeter in series, voltmeter across a 330Ω resistor."""
        from pycircuitlab import Ammeter, Battery, CircuitGraph, Node, Resistor, Voltmeter

        graph = CircuitGraph()
        graph, _ = graph.add_component(Battery("bat", Node("a", 0, 0), Node("b", 100, 0), voltage=6.0))
        graph, _ = graph.add_component(Ammeter("am", Node("b2", 100, 0), Node("c", 200, 0)))
        graph, _ = graph.add_component(Resistor("r1", Node("c2", 200, 0), Node("d", 200, 100)))
        graph, _ = graph.add_component(Resistor("r2", Node("d2", 200, 100), Node("a2", 0, 0), resistance=330.0))
        graph, _ = graph.add_component(Voltmeter("vm", Node("d3", 200, 100), Node("a3", 0, 0)))
        return graph

    def test_readings(self):
        graph, result = self._metered().simulate()
        current = 6.0 / (0.01 + 220.0 + 330.0)

        am = graph.component("am")
        vm = graph.component("vm")
        assert am.is_connected and vm.is_connected
        assert am.measurement == round(current, 3)
        assert abs(vm.measurement - round(current * 330.0, 3)) < 1e-12, f"Voltmeter read {vm.measurement}"

    def test_voltmeter_draws_no_current(self):
        _, result = self._metered().simulate()

        assert result.component_currents["vm"] == 0.0
        assert abs(result.component_currents["r1"] - result.component_currents["r2"]) < 1e-12

    def test_meters_disconnect_when_not_solved(self):
        from pycircuitlab import Node, Switch

        graph, _ = self._metered().simulate()
        assert graph.component("am").display_value() == "0.011 A"

        graph, _ = graph.add_component(Switch("sw", Node("s1", 200, 0), Node("s2", 300, 300)))
        graph, result = graph.simulate()

        assert not result.closed
        assert graph.component("am").display_value() == "-- A"
        assert graph.component("vm").measurement == 0.0


class TestFailures:

    def test_no_battery(self):
        from pycircuitlab import Bulb, CircuitGraph, Node, Status, Wire

        graph = CircuitGraph()
        graph, _ = graph.add_component(Wire("w", Node("a", 0, 0), Node("b", 100, 0)))
        graph, _ = graph.add_component(Bulb("lamp", Node("b2", 100, 0), Node("a2", 0, 0)))

        graph, result = graph.simulate()

        assert result.status == Status.NO_BATTERY
        assert result.status == -1
        assert not result.closed
        assert result.current == 0.0
        assert graph.last_simulation is result

    def test_open_switch(self):
        from pycircuitlab import Status

        graph = _switched_loop(is_on=True)
        graph, _ = graph.simulate()
        assert graph.component("lamp").is_on

        graph = graph.toggle_switch("sw")
        graph, result = graph.simulate()

        assert result.status == Status.SWITCH_OPEN
        assert result.status == -2
        assert result.open_switch == "sw"
        assert "sw" in result.message
        assert result.current == 0.0
        assert not result.component_currents
        lamp = graph.component("lamp")
        assert not lamp.is_on and lamp.brightness == 0.0

    def test_closing_switch_solves(self):
        from pycircuitlab import Status

        graph = _switched_loop(is_on=False).toggle_switch("sw")
        graph, result = graph.simulate()

        assert result.status == Status.SOLVED
        assert abs(result.current - V_BAT / 100.5) < 1e-9

    def test_open_circuit(self):
        from pycircuitlab import Battery, Bulb, CircuitGraph, Node, Status, summarize

        graph = CircuitGraph()
        graph, _ = graph.add_component(Battery("bat", Node("a", 0, 0), Node("b", 100, 0)))
        graph, _ = graph.add_component(Bulb("lamp", Node("b2", 100, 0), Node("c", 200, 0)))

        graph, result = graph.simulate()

        assert result.status == Status.OPEN_CIRCUIT
        assert result.status == 0
        assert not result.closed
        assert not result.solve_failed
        assert not graph.component("lamp").is_on
        assert math.isinf(summarize(result).resistance)

    def test_singular_system_is_reported(self):
        """Identical batteries in parallel: solve fails without raising."""
        from pycircuitlab import Battery, Node, Status

        graph = _simple_loop()
        graph, _ = graph.add_component(Battery("bat2", Node("p", 0, 0), Node("q", 100, 0), voltage=V_BAT))

        graph, result = graph.simulate()

        assert result.status == Status.OPEN_CIRCUIT
        assert result.solve_failed
        assert not result.closed
        assert not result.node_voltages
        assert not graph.component("lamp").is_on


class TestBurnout:

    def test_bulb_burns_out_and_stays_out(self):
        from pycircuitlab import Status

        # 9 / (1 + 10) ≈ 0.82 A, far above the 0.2 A limit
        graph, result = _simple_loop(bulb_resistance=10.0).simulate()

        assert result.status == Status.SOLVED
        lamp = graph.component("lamp")
        assert lamp.burned_out and not lamp.is_on

        for _ in range(3):
            graph, result = graph.simulate()
            assert result.status == Status.OPEN_CIRCUIT
            assert graph.component("lamp").burned_out

    def test_reset_restores_bulb(self):
        from pycircuitlab import Status

        graph, _ = _simple_loop(bulb_resistance=10.0).simulate()
        graph = graph.reset_bulb("lamp")
        assert not graph.component("lamp").burned_out

        # A sturdier bulb in the same spot lights normally
        graph = graph.replace_component(graph.component("lamp")._replace(resistance=100.0))
        graph, result = graph.simulate()

        assert result.status == Status.SOLVED
        assert graph.component("lamp").is_on

    def test_state_helpers_check_kind(self):
        graph = _simple_loop()

        with pytest.raises(ValueError, match="not a bulb"):
            graph.reset_bulb("w")
        with pytest.raises(ValueError, match="not a switch"):
            graph.toggle_switch("lamp")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
