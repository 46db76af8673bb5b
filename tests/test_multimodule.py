import pytest

from splitflap.module import CHARS, BusError
from splitflap.multimodule import (
    MultiModule,
    alphanumeric_module,
    score_counter_module,
)

INACTIVE = bytes((0xFF, 0xFF))
DIGIT0_ACTIVE = bytes((0x7F, 0xFF))


class FakeBus:
    def __init__(self, reply=INACTIVE):
        self.writes = []
        self.reply = reply

    def write(self, address, data):
        self.writes.append((address, bytes(data)))

    def read(self, address, count):
        return self.reply


class FailingBus(FakeBus):
    def write(self, address, data):
        raise OSError("nack")

    def read(self, address, count):
        raise OSError("nack")


def small_module(bus, **kwargs):
    options = dict(
        address=0x20,
        steps_per_rotation=100,
        step_offsets=[5, 0, 0],
        magnet_position=50,
        num_digits=1,
        chars="0123456789",
        step_interval=1,
        check_interval=1000,
        correct_on_magnet=True,
    )
    options.update(kwargs)
    return MultiModule(bus, **options)


def test_char_positions_increase_and_unknown_maps_to_zero():
    m = alphanumeric_module(FakeBus(), 0x20, 2048, [0, 0, 0], 650, 3)
    positions = [m.char_position(c) for c in CHARS]
    assert positions == sorted(positions)
    assert len(set(positions)) == len(CHARS)
    assert m.char_position(" ") == 0
    assert m.char_position("?") == 0
    assert m.char_position("q") == m.char_position("Q")


def test_score_counter_only_knows_digits():
    m = score_counter_module(FakeBus(), 0x20, 2048, [0, 0, 0], 650, 3)
    assert m.char_position("0") == 0
    assert m.char_position("A") == 0
    digits = [m.char_position(c) for c in "0123456789"]
    assert digits == sorted(digits)
    assert m.check_interval == 20000


def test_alphanumeric_check_interval():
    m = alphanumeric_module(FakeBus(), 0x20, 2048, [0, 0, 0], 650, 3)
    assert m.check_interval == 20


def test_magnet_position_includes_offset():
    m = MultiModule(FakeBus(), 0x20, 2048, [0, -31, 10], 650, 3)
    assert [m.magnet_position(d) for d in range(3)] == [650, 619, 660]


def test_set_target_then_ticks_reach_target_and_stop():
    bus = FakeBus()
    m = small_module(bus)
    m.set_target(0, "3")
    target = m.char_position("3")
    for _ in range(target):
        m.tick()
    assert m.position(0) == target
    for _ in range(10):
        m.tick()
    assert m.position(0) == target
    assert bus.writes[-1] == (0x20, bytes((0xE1, 0x00)))


def test_steps_happen_every_step_interval_ticks():
    for factory in (alphanumeric_module, score_counter_module):
        m = factory(FakeBus(), 0x20, 2048, [0, 0, 0], 650, 1)
        m.set_target(0, "9")
        changes = []
        last = m.position(0)
        for tick in range(m.step_interval * 4 + 1):
            m.tick()
            if m.position(0) != last:
                changes.append(tick)
                last = m.position(0)
        gaps = {b - a for a, b in zip(changes, changes[1:])}
        assert gaps == {m.step_interval}


def test_init_ends_with_all_stop_word():
    bus = FakeBus()
    m = MultiModule(bus, 0x21, 2048, [0, 0, 0], 650, 3)
    m.sleep = lambda seconds: None
    m.init()
    assert bus.writes[0] == (0x21, bytes((0xE1, 0x00)))
    assert bus.writes[-1] == (0x21, bytes((0xE1, 0x00)))
    assert [m.position(d) for d in range(3)] == [3, 3, 3]


def test_write_states_skips_unchanged_word():
    bus = FakeBus()
    m = small_module(bus)
    m.write_states()
    m.write_states()
    assert len(bus.writes) == 1


def test_running_digit_sets_its_coil_bits_only():
    bus = FakeBus()
    m = MultiModule(bus, 0x20, 2048, [0, 0, 0], 650, 3)
    m.start(1)
    m.write_states()
    low, high = bus.writes[-1][1]
    assert low == 0xE1
    assert high & 0x0F == 0
    assert high & 0xF0 != 0


def test_read_sensors_maps_active_low_bits():
    bus = FakeBus()
    m = MultiModule(bus, 0x20, 2048, [0, 0, 0], 650, 3)
    bus.reply = INACTIVE
    assert m.read_sensors() == 0
    bus.reply = DIGIT0_ACTIVE
    assert m.read_sensors() == 0b001
    bus.reply = bytes((0x1F, 0xFF))
    assert m.read_sensors() == 0b111
    bus.reply = b"\x00"
    assert m.read_sensors() == 0


def test_magnet_corrects_position_on_rising_edge_only():
    bus = FakeBus(DIGIT0_ACTIVE)
    m = small_module(bus, check_interval=1)
    m.tick()
    assert m.position(0) == m.magnet_position(0)
    m.tick()
    assert m.position(0) == m.magnet_position(0) + 1
    bus.reply = INACTIVE
    m.tick()
    assert m.position(0) == m.magnet_position(0) + 2
    bus.reply = DIGIT0_ACTIVE
    m.tick()
    assert m.position(0) == m.magnet_position(0)


def test_score_counter_only_reports_magnet():
    bus = FakeBus(DIGIT0_ACTIVE)
    m = score_counter_module(bus, 0x20, 100, [0], 50, 1)
    m.tick()
    assert m.position(0) == 0


def test_magnet_detected_sets_position():
    m = small_module(FakeBus())
    m.step(0)
    m.magnet_detected(0)
    assert m.position(0) == m.magnet_position(0)


def test_step_wraps_around():
    m = small_module(FakeBus(), steps_per_rotation=4, chars="01")
    for _ in range(5):
        m.step(0)
    assert m.position(0) == 1


def test_invalid_num_digits():
    with pytest.raises(ValueError):
        MultiModule(FakeBus(), num_digits=4)
    with pytest.raises(ValueError):
        MultiModule(FakeBus(), num_digits=0)


def test_too_few_offsets():
    with pytest.raises(ValueError):
        MultiModule(FakeBus(), step_offsets=[0], num_digits=2)


def test_digit_out_of_range():
    m = small_module(FakeBus())
    with pytest.raises(IndexError):
        m.step(1)
    with pytest.raises(IndexError):
        m.set_target(-1, "1")


def test_bus_failures_raise_bus_error():
    m = small_module(FailingBus())
    with pytest.raises(BusError) as info:
        m.write_states()
    assert info.value.address == 0x20
    with pytest.raises(BusError):
        m.read_sensors()