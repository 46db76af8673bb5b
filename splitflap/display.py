"""A row of split-flap modules moved together."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Sequence

from splitflap.module import CHARS, I2CBus, SplitFlapModule

log = logging.getLogger(__name__)

MAX_MODULES = 8
MODULE_ADDRESSES = (0x20, 0x21, 0x22, 0x23, 0x24, 0x25, 0x26, 0x27)
MODULE_OFFSETS = (0, -31, -5, 10, 5, 0, 0, -15)
MAGNET_POSITION = 650
STEPS_PER_ROTATION = 2048
MAX_RPM = 15.0
MIN_RPM = 2.0
CHECK_INTERVAL = 0.02
START_STOP_DELAY = 0.2


def pad_text(text: str, width: int, centering: bool = True) -> str:
    """Cut ``text`` to ``width`` and pad it with blanks, centred or to the right."""
    shown = text[:width]
    if centering:
        total = width - len(shown)
        left = total // 2
        return " " * left + shown + " " * (total - left)
    return shown.ljust(width)


class SplitFlapDisplay:
    """Several split-flap modules sharing one I2C bus."""

    def __init__(
        self,
        bus: I2CBus,
        num_modules: int = 6,
        sleep: Callable[[float], None] | None = None,
        now: Callable[[], float] | None = None,
    ) -> None:
        if not 1 <= num_modules <= MAX_MODULES:
            raise ValueError(f"num_modules must be between 1 and {MAX_MODULES}")
        self.num_modules = num_modules
        self.sleep = sleep or time.sleep
        self.now = now or time.monotonic
        self.modules = [
            SplitFlapModule(bus, address, STEPS_PER_ROTATION, offset, MAGNET_POSITION)
            for address, offset in zip(MODULE_ADDRESSES[:num_modules], MODULE_OFFSETS)
        ]
        for module in self.modules:
            module.sleep = self.sleep

    def init(self) -> None:
        """Initialise every module."""
        for index, module in enumerate(self.modules):
            module.init()
            log.info("Done init module %d", index)

    def _char_targets(self, text: str) -> list[int]:
        return [module.char_position(c) for module, c in zip(self.modules, text)]

    def _back_one_step(self) -> list[int]:
        return [
            (m.position - 1 + STEPS_PER_ROTATION) % STEPS_PER_ROTATION
            for m in self.modules
        ]

    def write_string(self, text: str, speed: float = MAX_RPM, centering: bool = True) -> None:
        """Show ``text`` across the modules."""
        self.move_to(self._char_targets(pad_text(text, self.num_modules, centering)), speed)

    def write_char(self, char: str, speed: float = MAX_RPM) -> None:
        """Show the same character on every module."""
        self.move_to(self._char_targets(char * self.num_modules), speed)

    def move_to(
        self,
        target_positions: Sequence[int],
        speed: float = MAX_RPM,
        release_motors: bool = True,
    ) -> None:
        """Step all modules to the given drum positions, resynchronising on the magnet."""
        if len(target_positions) != self.num_modules:
            raise ValueError(
                f"expected {self.num_modules} target positions, got {len(target_positions)}"
            )
        speed = min(max(speed, MIN_RPM), MAX_RPM)
        time_per_step = 1.0 / (speed / 60.0 * STEPS_PER_ROTATION)

        targets = [min(max(t, 0), STEPS_PER_ROTATION - 1) for t in target_positions]
        current = self.now()
        # Latches start set so a magnet already under the sensor is not taken as a pass.
        latches = [True] * self.num_modules
        last_steps = [current] * self.num_modules
        last_check = current
        needs_stepping = [m.position != t for m, t in zip(self.modules, targets)]

        self._start_motors()
        self.sleep(START_STOP_DELAY)

        finished = not any(needs_stepping)
        while not finished:
            current = self.now()
            for i, module in enumerate(self.modules):
                if needs_stepping[i] and current - last_steps[i] > time_per_step:
                    module.step()
                    last_steps[i] = self.now()
                    if module.position == targets[i]:
                        needs_stepping[i] = False

            if current - last_check > CHECK_INTERVAL:
                for i, module in enumerate(self.modules):
                    if needs_stepping[i] and module.read_hall_effect_sensor():
                        if not latches[i]:
                            log.debug(
                                "Module %d: M/A= %d/%d",
                                i,
                                module.magnet_position,
                                module.position,
                            )
                            module.magnet_detected()
                            latches[i] = True
                    elif latches[i]:
                        latches[i] = False
                finished = not any(needs_stepping)
                last_check = current

        if release_motors:
            self.sleep(START_STOP_DELAY)
            self._stop_motors()

    def home(self, speed: float = MAX_RPM) -> None:
        """Turn every drum a full rotation and settle on blank."""
        log.info("Homing")
        targets = self._back_one_step()
        self._start_motors()
        self.move_to(targets, speed, False)
        self.move_to(self._char_targets(" " * self.num_modules), speed)

    def home_to_string(self, text: str, speed: float = MAX_RPM, centering: bool = True) -> None:
        """Turn every drum a full rotation, then show ``text``."""
        log.info("Homing")
        targets = self._back_one_step()
        self._start_motors()
        self.move_to(targets, speed, False)
        self.write_string(text, speed, centering)

    def home_to_char(self, char: str, speed: float = MAX_RPM) -> None:
        """Turn every drum a full rotation, then show ``char`` on each."""
        log.info("Home to char")
        targets = self._back_one_step()
        self._start_motors()
        self.move_to(targets, speed, False)
        self.move_to(self._char_targets(char * self.num_modules), speed)

    def test_all(self) -> None:
        """Cycle every module through every character."""
        for char in CHARS:
            self.move_to(self._char_targets(char * self.num_modules))
            self.sleep(0.5)

    def test_count(self) -> None:
        """Count from zero up to the largest number the display can show."""
        for value in range(10**self.num_modules):
            digits = str(value).zfill(self.num_modules)
            targets = [0] * self.num_modules
            for j, module in enumerate(self.modules):
                targets[self.num_modules - j - 1] = module.char_position(digits[-1 - j])
            self.move_to(targets)
            self.sleep(0.25)

    def test_random(self, speed: float = MAX_RPM, rng: random.Random | None = None) -> str:
        """Show random characters and return them."""
        rng = rng or random.Random()
        text = "".join(rng.choice(CHARS) for _ in range(self.num_modules))
        log.info("Target: %s", text)
        self.move_to(self._char_targets(text), speed)
        return text

    def _start_motors(self) -> None:
        for module in self.modules:
            module.start()

    def _stop_motors(self) -> None:
        for module in self.modules:
            module.stop()