"""Several character drums driven from one PCF8575 board by a tick scheduler."""

from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

from splitflap.module import CHARS, BusError, I2CBus, build_char_positions

log = logging.getLogger(__name__)

MAX_DIGITS = 3
MAX_RPM = 15.0
DIGIT_CHARS = "0123456789"

ALL_STOP_STATE = 0b0000000011100001
"""Output word with every coil released and the three sensor pins as inputs."""

MOTOR_STATES = (0b0011, 0b1001, 0b1100, 0b0110)
"""Coil patterns for the four stepping phases."""

MOTOR_SHIFTS = (8, 12, 1)
"""Bit position of each digit's four coil outputs in the output word."""

SENSOR_BITS = (7, 6, 5)
"""Input bit carrying each digit's (active-low) Hall effect sensor."""

INIT_DELAY = 0.1


def _step_interval(steps_per_rotation: int, ticks_per_second: float) -> int:
    """Number of ticks between steps at the maximum speed, rounded up."""
    steps_per_second = MAX_RPM / 60.0 * steps_per_rotation
    return int((ticks_per_second + steps_per_second - 1.0) / steps_per_second)


class MultiModule:
    """Up to three character drums sharing one I/O expander.

    Call :meth:`tick` at a fixed rate; it steps running drums every
    ``step_interval`` ticks and polls the sensors every ``check_interval`` ticks.
    """

    def __init__(
        self,
        bus: I2CBus,
        address: int = 0,
        steps_per_rotation: int = 2048,
        step_offsets: Sequence[int] | None = None,
        magnet_position: int = 710,
        num_digits: int = MAX_DIGITS,
        chars: str = CHARS,
        step_interval: int | None = None,
        check_interval: int = 20,
        correct_on_magnet: bool = True,
    ) -> None:
        if not 1 <= num_digits <= MAX_DIGITS:
            raise ValueError(f"num_digits must be between 1 and {MAX_DIGITS}")
        if steps_per_rotation <= 0:
            raise ValueError("steps_per_rotation must be positive")
        offsets = list(step_offsets) if step_offsets is not None else [0] * num_digits
        if len(offsets) < num_digits:
            raise ValueError(f"expected {num_digits} step offsets, got {len(offsets)}")
        if step_interval is None:
            step_interval = _step_interval(steps_per_rotation, 1000.0)
        if step_interval < 1 or check_interval < 1:
            raise ValueError("intervals must be at least one tick")

        self.bus = bus
        self.address = address
        self.steps_per_rotation = steps_per_rotation
        self.num_digits = num_digits
        self.chars = chars
        self.step_interval = step_interval
        self.check_interval = check_interval
        self.correct_on_magnet = correct_on_magnet
        self.sleep: Callable[[float], None] = time.sleep

        self._magnet_positions = [magnet_position + offsets[i] for i in range(num_digits)]
        self._positions = [0] * num_digits
        self._targets = [0] * num_digits
        self._step_numbers = [0] * num_digits
        self._stopped = [True] * num_digits
        self._magnet_seen = [False] * num_digits
        self._last_write: int | None = None
        self._step_timer = 0
        self._check_timer = 0
        self._char_positions = dict(
            zip(chars, build_char_positions(steps_per_rotation, len(chars)))
        )
        log.debug("step interval %d ticks", step_interval)

    def _check_digit(self, digit: int) -> None:
        if not 0 <= digit < self.num_digits:
            raise IndexError(f"digit {digit} out of range 0..{self.num_digits - 1}")

    def _write_io(self, data: int) -> None:
        if data != self._last_write:
            payload = bytes((data & 0xFF, (data >> 8) & 0xFF))
            try:
                self.bus.write(self.address, payload)
            except OSError as exc:
                raise BusError(self.address, f"write failed: {exc}") from exc
        self._last_write = data

    def write_states(self) -> None:
        """Build the output word from the motor states and send it if it changed."""
        data = ALL_STOP_STATE
        for digit in range(self.num_digits):
            if not self._stopped[digit]:
                data |= MOTOR_STATES[self._step_numbers[digit]] << MOTOR_SHIFTS[digit]
        self._write_io(data)

    def init(self) -> None:
        """Set up the I/O board and nudge each motor through its phases."""
        self._write_io(ALL_STOP_STATE)
        self.sleep(INIT_DELAY)
        for _ in range(self.num_digits):
            for digit in range(self.num_digits):
                self.step(digit)
            self.write_states()
            self.sleep(INIT_DELAY)
        for digit in range(self.num_digits):
            self.stop(digit)
        self.write_states()

    def tick(self) -> None:
        """Advance the scheduler by one tick."""
        if self._step_timer:
            self._step_timer -= 1
        else:
            for digit in range(self.num_digits):
                if self._positions[digit] == self._targets[digit]:
                    self.stop(digit)
                else:
                    self.step(digit)
            self.write_states()
            self._step_timer = self.step_interval - 1

        if self._check_timer:
            self._check_timer -= 1
        else:
            sense = self.read_sensors()
            for digit in range(self.num_digits):
                active = bool((sense >> digit) & 1)
                if active and not self._magnet_seen[digit]:
                    log.info("Magnet %d seen at %d", digit, self._positions[digit])
                    if self.correct_on_magnet:
                        self.magnet_detected(digit)
                self._magnet_seen[digit] = active
            self._check_timer = self.check_interval - 1

    def char_position(self, char: str) -> int:
        """Return the drum position showing ``char``; unknown characters map to 0."""
        return self._char_positions.get(char.upper(), 0)

    def set_target(self, digit: int, char: str) -> None:
        """Make ``digit`` turn to show ``char``."""
        self._check_digit(digit)
        target = min(max(self.char_position(char), 0), self.steps_per_rotation - 1)
        self._targets[digit] = target
        log.debug("Target[%d] to %d", digit, target)
        self.start(digit)

    def stop(self, digit: int) -> None:
        """Mark ``digit``'s motor as released."""
        self._check_digit(digit)
        self._stopped[digit] = True

    def start(self, digit: int) -> None:
        """Re-energise ``digit`` at its previous phase without moving it."""
        self._check_digit(digit)
        self._step_numbers[digit] = (self._step_numbers[digit] + 3) % 4
        self._stopped[digit] = False

    def step(self, digit: int) -> None:
        """Advance ``digit`` by one step, starting its motor if needed."""
        self._check_digit(digit)
        if self._stopped[digit]:
            self.start(digit)
        self._positions[digit] = (self._positions[digit] + 1) % self.steps_per_rotation
        self._step_numbers[digit] = (self._step_numbers[digit] + 1) % 4

    def position(self, digit: int) -> int:
        """Current drum position of ``digit``."""
        self._check_digit(digit)
        return self._positions[digit]

    def magnet_position(self, digit: int) -> int:
        """Drum position of ``digit`` when its magnet is over the sensor."""
        self._check_digit(digit)
        return self._magnet_positions[digit]

    def magnet_detected(self, digit: int) -> None:
        """Resynchronise ``digit``'s position to its magnet position."""
        self._check_digit(digit)
        self._positions[digit] = self._magnet_positions[digit]

    def read_sensors(self) -> int:
        """Return one active-high flag per digit, bit ``i`` for digit ``i``."""
        try:
            data = self.bus.read(self.address, 2)
        except OSError as exc:
            raise BusError(self.address, f"read failed: {exc}") from exc
        if len(data) != 2:
            return 0
        state = ~(data[0] | (data[1] << 8)) & 0xFFFF
        flags = 0
        for digit, bit in enumerate(SENSOR_BITS):
            flags |= ((state >> bit) & 1) << digit
        return flags


def alphanumeric_module(
    bus: I2CBus,
    address: int = 0,
    steps_per_rotation: int = 2048,
    step_offsets: Sequence[int] | None = None,
    magnet_position: int = 710,
    num_digits: int = MAX_DIGITS,
) -> MultiModule:
    """A module of letter-and-digit drums ticked once a millisecond."""
    return MultiModule(
        bus,
        address,
        steps_per_rotation,
        step_offsets,
        magnet_position,
        num_digits,
        chars=CHARS,
        step_interval=_step_interval(steps_per_rotation, 1000.0),
        check_interval=20,
        correct_on_magnet=True,
    )


def score_counter_module(
    bus: I2CBus,
    address: int = 0,
    steps_per_rotation: int = 2048,
    step_offsets: Sequence[int] | None = None,
    magnet_position: int = 710,
    num_digits: int = MAX_DIGITS,
) -> MultiModule:
    """A module of digit-only drums ticked once a microsecond; magnets are only reported."""
    return MultiModule(
        bus,
        address,
        steps_per_rotation,
        step_offsets,
        magnet_position,
        num_digits,
        chars=DIGIT_CHARS,
        step_interval=_step_interval(steps_per_rotation, 1_000_000.0),
        check_interval=20000,
        correct_on_magnet=False,
    )