# splitflap

A package for driving split-flap character displays. A stepper motor turns
each character drum. The motor sits behind a PCF8575 16-bit I2C port
expander. A Hall effect sensor detects a magnet on the drum and is used to
correct the drum's position.

The package contains no hardware access of its own. You supply an object
with two methods:

- `write(address, data)` sends bytes to the device at an I2C address.
- `read(address, count)` returns bytes from that device.

The `I2CBus` protocol in `splitflap.module` describes this object. If either
method raises `OSError`, the package raises `BusError` in its place.
`BusError` carries the device address as `address`.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## One module per drum

`SplitFlapModule` (in `splitflap.module`) drives one drum on its own
expander. The drum holds a blank, the letters A to Z and the digits 0 to 9,
spaced evenly around it.

```python
from splitflap.module import SplitFlapModule

module = SplitFlapModule(bus, 0x20, 2048, 0, 650)
module.init()                      # release the coils, step through four phases, release again
target = module.char_position("A")
while module.position != target:
    module.step(True)
    if module.read_hall_effect_sensor():
        module.magnet_detected()   # set position to the magnet position
module.stop()
```

How the methods behave:

- `char_position` is case-insensitive. It returns 0, which is the blank, for
  any character not on the drum.
- `start()` energises the coils at the previous phase and does not move the
  drum.
- `step(False)` drives the current phase and does not advance the position.
- `magnet_position` is the magnet position passed to the constructor plus the
  step offset.

`build_char_positions(steps_per_rotation, count)` returns the step position
of each of `count` characters spaced evenly over one rotation. It raises
`ValueError` if `count` is not positive.

## A whole display

`SplitFlapDisplay` (in `splitflap.display`) drives between 1 and 8 modules.
Their addresses run from 0x20 upwards. Each module has its own fixed tuning
offset. A drum measures 2048 steps per rotation, and its magnet sits at
position 650.

`move_to` steps all the modules together. While they move, it polls the Hall
sensors every 20 ms. When a drum's magnet comes over its sensor, that drum's
position is set to its magnet position.

```python
import time
from splitflap.display import SplitFlapDisplay, pad_text

display = SplitFlapDisplay(bus, 6, time.sleep, time.monotonic)
display.init()
display.home_to_string("HELLO", 15.0, True)
display.write_string("WORLD", 10.0, False)
display.write_char("7", 15.0)
```

Speeds are in drum rotations per minute, and are clamped to between 2 and
15.

`move_to(targets, speed, release_motors)` needs exactly one target for each
module; otherwise it raises `ValueError`. Each target is clamped to a valid
drum position.

`pad_text(text, width, centering)` is the padding that `write_string`
applies. It cuts the text to the display width, then pads it with blanks:
centred, or on the right when centering is off. For example,
`pad_text("AB", 6, True)` gives `"  AB  "`.

The homing methods turn every drum one full rotation before showing their
result:

- `home` shows blank.
- `home_to_string` shows the given text.
- `home_to_char` shows the given character on every drum.

Three demonstration sequences are included:

- `test_all()` cycles every drum through every character.
- `test_count()` counts from 0 up to the largest number the display can show.
- `test_random(speed, rng)` shows random characters and returns them as a
  string.

## Several drums on one expander

`MultiModule` (in `splitflap.multimodule`) drives up to three drums from a
single PCF8575. It does not move the drums as part of each call. Instead,
you call `tick()` from a loop that runs at a fixed rate. On each call:

- Every `step_interval` ticks, each drum steps towards its target, or is
  released once it has arrived.
- Every `check_interval` ticks, the sensors are read.
- The output word is written only when it changes.

```python
from splitflap.multimodule import alphanumeric_module, score_counter_module

counter = score_counter_module(bus, 0x20, 2048, [0, 0, 0], 650, 3)
counter.init()
counter.set_target(0, "4")
counter.set_target(1, "2")
while True:
    counter.tick()
```

Two factory functions set up a `MultiModule` for common cases:

- `alphanumeric_module` is for drums that show the blank, A to Z and 0 to 9.
  It expects one tick per millisecond. It checks the sensors every 20 ticks,
  and sets a drum's position to its magnet position when the magnet appears.
- `score_counter_module` is for drums that show only the digits 0 to 9. It
  expects one tick per microsecond. It checks the sensors every 20000 ticks,
  and only logs when a magnet appears; it does not correct the position.

Other accessors:

- `position(digit)` returns a drum's current position.
- `magnet_position(digit)` returns the drum's magnet position.
- `read_sensors()` returns one active-high flag per drum.

A digit index outside the configured drums raises `IndexError`.

## What the package does not do

- There is no command-line program.
- There is no I2C driver. You must provide the bus object.
- There is no loop that calls `MultiModule.tick()` at a fixed rate. Your own
  code must call it.