"""A single split-flap character module driven through a PCF8575 I/O expander."""

from __future__ import annotations

import time
from typing import Callable, Protocol

CHARS = " ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
"""Characters on the drum, in order; the first sits at the magnet."""

STOP_STATE = 0b1111111111100001
"""Output word with every motor coil released and the sensor pin as input."""

STEP_STATES = (
    0b1111111111100111,
    0b1111111111110011,
    0b1111111111111001,
    0b1111111111101101,
)
"""Output words energising the coils for each of the four stepping phases."""

SENSOR_MASK = 0x8000
"""Bit of the input word carrying the (active-low) Hall effect sensor."""

INIT_DELAY = 0.1


class I2CBus(Protocol):
    """The I2C bus the modules talk over."""

    def write(self, address: int, data: bytes) -> None:
        """Send ``data`` to the device at ``address``; raise OSError on failure."""

    def read(self, address: int, count: int) -> bytes:
        """Request ``count`` bytes from the device at ``address``."""


class BusError(Exception):
    """Raised when a transfer to a module fails."""

    def __init__(self, address: int, message: str) -> None:
        super().__init__(f"I2C device 0x{address:02x}: {message}")
        self.address = address


def build_char_positions(steps_per_rotation: int, count: int) -> list[int]:
    """Return the drum step position of each of ``count`` evenly spaced flaps."""
    if count <= 0:
        raise ValueError("count must be positive")
    return [i * steps_per_rotation // count for i in range(count)]


class SplitFlapModule:
    """One character drum with its stepper motor and Hall effect sensor."""

    def __init__(
        self,
        bus: I2CBus,
        address: int = 0,
        steps_per_rotation: int = 2048,
        step_offset: int = 0,
        magnet_position: int = 710,
    ) -> None:
        self.bus = bus
        self.address = address
        self.steps_per_rotation = steps_per_rotation
        self.magnet_position = magnet_position + step_offset
        self.position = 0
        self.step_number = 0
        self.sleep: Callable[[float], None] = time.sleep
        self._char_positions = dict(
            zip(CHARS, build_char_positions(steps_per_rotation, len(CHARS)))
        )

    def _write_io(self, data: int) -> None:
        payload = bytes((data & 0xFF, (data >> 8) & 0xFF))
        try:
            self.bus.write(self.address, payload)
        except OSError as exc:
            raise BusError(self.address, f"write failed: {exc}") from exc

    def init(self) -> None:
        """Configure the I/O board and nudge the motor through one full phase cycle."""
        self._write_io(STOP_STATE)
        self.stop()
        self.sleep(INIT_DELAY)
        for _ in range(4):
            self.step()
            self.sleep(INIT_DELAY)
        self.stop()

    def char_position(self, char: str) -> int:
        """Return the drum position showing ``char``; unknown characters map to blank."""
        return self._char_positions.get(char.upper(), 0)

    def stop(self) -> None:
        """Release all motor coils."""
        self._write_io(STOP_STATE)

    def start(self) -> None:
        """Re-energise the coils at the last phase without moving the drum."""
        self.step_number = (self.step_number + 3) % 4
        self.step(False)

    def step(self, update_position: bool = True) -> None:
        """Drive the current phase and, if asked, advance one step."""
        self._write_io(STEP_STATES[self.step_number])
        if update_position:
            self.position = (self.position + 1) % self.steps_per_rotation
            self.step_number = (self.step_number + 1) % 4

    def read_hall_effect_sensor(self) -> bool:
        """Return True when the magnet is over the sensor."""
        try:
            data = self.bus.read(self.address, 2)
        except OSError as exc:
            raise BusError(self.address, f"read failed: {exc}") from exc
        if len(data) < 2:
            return False
        state = data[0] | (data[1] << 8)
        return not state & SENSOR_MASK

    def magnet_detected(self) -> None:
        """Resynchronise the position to the magnet's position."""
        self.position = self.magnet_position