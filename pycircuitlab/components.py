"""Two-terminal circuit components (closed catalogue of immutable records).

Every component is a NamedTuple carrying an ``id``, its ``start`` and ``end``
nodes and a ``kind`` tag. State changes never mutate a record; they return a
new one (``bulb = bulb.update(0.05)``), the same way the network itself is
rebuilt on every edit.

Conduction and resistance rules live in the module-level ``conducts`` and
``resistance`` functions, which dispatch on ``kind``:

    kind        conducts            resistance (Ohms)
    ---------   -----------------   -----------------------------
    wire        always              stored (default 1)
    resistor    always              stored (default 220)
    bulb        unless burned out   stored (default 100), inf burned out
    switch      when closed         stored (default 0.5), inf open
    battery     always              internal resistance (default 0)
    ammeter     always              stored (default 0.01)
    voltmeter   never               inf (reads a voltage difference only)

A stored resistance of 0 on a wire, resistor, bulb, switch or ammeter
reads as that kind's default.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .network import Node

logger = logging.getLogger(__name__)

WIRE = "wire"
RESISTOR = "resistor"
BULB = "bulb"
SWITCH = "switch"
BATTERY = "battery"
AMMETER = "ammeter"
VOLTMETER = "voltmeter"

CONDUCTING_KINDS = frozenset({WIRE, RESISTOR, BULB, SWITCH, BATTERY, AMMETER})

# Stands in for a stored resistance of 0
DEFAULT_RESISTANCE = {
    WIRE: 1.0,
    RESISTOR: 220.0,
    BULB: 100.0,
    SWITCH: 0.5,
    AMMETER: 0.01,
}

# Used for anything that is not part of the catalogue
FALLBACK_RESISTANCE = 10.0


class Wire(NamedTuple):
    """Interconnect between two points."""
    id: str
    start: Node | None
    end: Node | None
    resistance: float = 1.0
    kind: str = WIRE

    def conducts(self) -> bool:
        return conducts(self)

    def effective_resistance(self) -> float:
        return resistance(self)

    def update(self, current: float) -> Wire:
        return self

    def display_value(self) -> str:
        return ""

    def tooltip(self) -> str:
        return f"Wire\nResistance: {self.resistance} Ω"


class Resistor(NamedTuple):
    """Fixed resistor."""
    id: str
    start: Node | None
    end: Node | None
    resistance: float = 220.0
    kind: str = RESISTOR

    def conducts(self) -> bool:
        return conducts(self)

    def effective_resistance(self) -> float:
        return resistance(self)

    def update(self, current: float) -> Resistor:
        return self

    def display_value(self) -> str:
        return f"{self.resistance:g} Ω"

    def tooltip(self) -> str:
        return f"Resistor\nResistance: {self.display_value()}"


class Bulb(NamedTuple):
    """
    Incandescent bulb.

    Lights up once the current through it reaches min_current, with
    brightness (0-100 %) proportional to current / max_current. A current
    above max_current burns it out; a burned-out bulb stays dark and open
    until reset().
    """
    id: str
    start: Node | None
    end: Node | None
    resistance: float = 100.0
    is_on: bool = False
    brightness: float = 0.0
    burned_out: bool = False
    min_current: float = 0.001
    max_current: float = 0.2
    kind: str = BULB

    def conducts(self) -> bool:
        return conducts(self)

    def effective_resistance(self) -> float:
        return resistance(self)

    def update(self, current: float) -> Bulb:
        """Return the bulb as lit (or not) by a current magnitude in Amperes."""
        if self.burned_out:
            return self._replace(is_on=False, brightness=0.0)
        if current > self.max_current:
            return self.burn_out()
        if current < self.min_current:
            return self._replace(is_on=False, brightness=0.0)
        return self._replace(
            is_on=True,
            brightness=min(100.0, current / self.max_current * 100.0),
        )

    def burn_out(self) -> Bulb:
        logger.info("Bulb %s burned out", self.id)
        return self._replace(burned_out=True, is_on=False, brightness=0.0)

    def reset(self) -> Bulb:
        return self._replace(burned_out=False, is_on=False, brightness=0.0)

    def turn_on(self) -> Bulb:
        if self.burned_out:
            return self
        return self._replace(is_on=True)

    def turn_off(self) -> Bulb:
        return self._replace(is_on=False, brightness=0.0)

    def display_value(self) -> str:
        if self.burned_out:
            return "burned out"
        return f"{self.brightness:.0f} %"

    def tooltip(self) -> str:
        return (
            f"Bulb\nResistance: {self.resistance} Ω\n"
            f"Lights above {self.min_current * 1000:g} mA, "
            f"burns out above {self.max_current * 1000:g} mA\n"
            f"Brightness: {self.display_value()}"
        )


class Switch(NamedTuple):
    """Manual switch; is_on means closed (conducting)."""
    id: str
    start: Node | None
    end: Node | None
    is_on: bool = False
    resistance: float = 0.5
    kind: str = SWITCH

    def conducts(self) -> bool:
        return conducts(self)

    def effective_resistance(self) -> float:
        return resistance(self)

    def update(self, current: float) -> Switch:
        return self

    def toggle(self) -> Switch:
        toggled = self._replace(is_on=not self.is_on)
        logger.debug("Switch %s is now %s", self.id, toggled.display_value())
        return toggled

    def display_value(self) -> str:
        return "ON" if self.is_on else "OFF"

    def tooltip(self) -> str:
        return f"Switch\nState: {self.display_value()}"


class Battery(NamedTuple):
    """
    DC voltage source.

    ``end`` is the positive terminal and ``start`` the negative one. The
    internal resistance sits in series with the ideal source.
    """
    id: str
    start: Node | None
    end: Node | None
    voltage: float = 9.0
    internal_resistance: float = 0.0
    kind: str = BATTERY

    def conducts(self) -> bool:
        return conducts(self)

    def effective_resistance(self) -> float:
        return resistance(self)

    def update(self, current: float) -> Battery:
        return self

    def display_value(self) -> str:
        return f"{self.voltage:.1f} V"

    def tooltip(self) -> str:
        return f"Battery\nVoltage: {self.display_value()}"


class Ammeter(NamedTuple):
    """
    Current meter, wired in series like a near-ideal wire.

    measurement is |I| in Amperes, rounded to 1 uA below 1 mA and to
    1 mA otherwise.
    """
    id: str
    start: Node | None
    end: Node | None
    resistance: float = 0.01
    measurement: float = 0.0
    is_connected: bool = False
    kind: str = AMMETER

    def conducts(self) -> bool:
        return conducts(self)

    def effective_resistance(self) -> float:
        return resistance(self)

    def update(self, current: float) -> Ammeter:
        # Stored in Amperes at every scale; display_value() picks mA or A
        magnitude = abs(current)
        if magnitude < 0.001:
            magnitude = round(magnitude, 6)
        else:
            magnitude = round(magnitude, 3)
        return self._replace(measurement=magnitude)

    def set_connected(self, connected: bool) -> Ammeter:
        if not connected:
            return self._replace(is_connected=False, measurement=0.0)
        return self._replace(is_connected=True)

    def display_value(self) -> str:
        if not self.is_connected:
            return "-- A"
        if self.measurement < 0.001:
            return f"{self.measurement * 1000:.2f} mA"
        return f"{self.measurement:.3f} A"

    def tooltip(self) -> str:
        return (
            f"Ammeter\nMeasures current\nLow resistance: {self.resistance} Ω\n"
            f"Reading: {self.display_value()}"
        )


class Voltmeter(NamedTuple):
    """
    Voltage meter, wired in parallel.

    Treated as an ideal meter: it never conducts and reads the node-voltage
    difference across its terminals. resistance is the nominal input
    resistance shown to the user. measurement is |V| rounded to 1 mV.
    """
    id: str
    start: Node | None
    end: Node | None
    resistance: float = 1e6
    measurement: float = 0.0
    is_connected: bool = False
    kind: str = VOLTMETER

    def conducts(self) -> bool:
        return conducts(self)

    def effective_resistance(self) -> float:
        return resistance(self)

    def update(self, voltage: float) -> Voltmeter:
        return self._replace(measurement=round(abs(voltage), 3))

    def set_connected(self, connected: bool) -> Voltmeter:
        if not connected:
            return self._replace(is_connected=False, measurement=0.0)
        return self._replace(is_connected=True)

    def display_value(self) -> str:
        if not self.is_connected:
            return "-- V"
        return f"{self.measurement:.2f} V"

    def tooltip(self) -> str:
        return (
            f"Voltmeter\nMeasures voltage between two points\n"
            f"High resistance: {self.resistance:g} Ω\nReading: {self.display_value()}"
        )


Component = Union[Wire, Resistor, Bulb, Switch, Battery, Ammeter, Voltmeter]


def conducts(component) -> bool:
    """Whether current can currently flow through a component."""
    if component is None:
        return False
    kind = component.kind
    if kind == SWITCH:
        return component.is_on
    if kind == BULB:
        return not component.burned_out
    return kind in CONDUCTING_KINDS


def resistance(component) -> float:
    """Resistance a component contributes to the network, inf when it does not conduct."""
    if component is None:
        return math.inf

    kind = component.kind
    if kind == SWITCH and not component.is_on:
        return math.inf
    if kind == BULB and component.burned_out:
        return math.inf
    if kind == VOLTMETER:
        return math.inf

    if kind in DEFAULT_RESISTANCE:
        return component.resistance or DEFAULT_RESISTANCE[kind]
    elif kind == BATTERY:
        return component.internal_resistance
    else:
        return FALLBACK_RESISTANCE
