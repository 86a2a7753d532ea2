import numpy as np
import pytest

from conftest import create_sample
from pointwatch.calibration import CalibrationStore
from pointwatch.models import ShotType, Sport, SwingPhase
from pointwatch.motion_processor import MotionProcessor
from pointwatch.rally_coordinator import RallyCoordinator

ROLL = (0.0, 0.5, 0.0)


@pytest.fixture
def coordinator(config, clock):
    return RallyCoordinator(config, clock)


@pytest.fixture
def processor(config, clock, coordinator):
    processor = MotionProcessor(config, CalibrationStore(config), coordinator, clock=clock)
    processor.start()
    return processor


def swing(processor, peak, start=1000.0, accel_axis=0, rotation=ROLL):
    """Feed a rising sample followed by the peak 80ms later."""
    rising = [0.0, 0.0, 0.0]
    rising[accel_axis] = 1.0
    impact = [0.0, 0.0, 0.0]
    impact[accel_axis] = peak

    processor.process_sample(create_sample(rising, rotation, timestamp=start))
    return processor.process_sample(create_sample(impact, rotation, timestamp=start + 0.08))


def test_ignores_samples_when_stopped(config, clock, coordinator):
    processor = MotionProcessor(config, CalibrationStore(config), coordinator, clock=clock)
    assert processor.process_sample(create_sample((5.0, 0.0, 0.0), ROLL, timestamp=1000.0)) is None
    assert processor.current_window is None


def test_detects_volley_from_quick_swing(processor):
    shot = swing(processor, 3.0)

    assert shot.type == ShotType.VOLLEY
    assert shot.timestamp == pytest.approx(1000.08)
    assert shot.swing_duration == pytest.approx(0.08)
    assert shot.gyro_angle == 0.0
    assert shot.rally_reaction_time is None
    assert processor.last_shot is shot
    assert processor.current_phase == SwingPhase.IDLE


def test_rising_sample_opens_window(processor):
    processor.process_sample(create_sample((1.0, 0.0, 0.0), ROLL, timestamp=1000.0))

    assert processor.current_phase == SwingPhase.SWINGING
    assert processor.current_window.start_time == 1000.0


def test_debounce_suppresses_rapid_peaks(processor):
    swing(processor, 3.0)

    assert processor.process_sample(create_sample((3.0, 0.0, 0.0), ROLL, timestamp=1000.2)) is None

    shot = processor.process_sample(create_sample((3.0, 0.0, 0.0), ROLL, timestamp=1000.5))
    assert shot is not None
    assert shot.rally_reaction_time == pytest.approx(0.42)
    assert len(processor.recent_shots) == 2


def test_swing_window_times_out(processor):
    processor.process_sample(create_sample((1.0, 0.0, 0.0), ROLL, timestamp=1000.0))
    processor.process_sample(create_sample((1.0, 0.0, 0.0), ROLL, timestamp=1000.6))

    assert processor.current_window is None
    assert processor.current_phase == SwingPhase.IDLE


def test_sustained_motion_above_threshold_times_out(processor):
    swing(processor, 3.0)

    # Debounced spike leaves a window whose peak later samples never reach
    assert processor.process_sample(create_sample((5.0, 0.0, 0.0), ROLL, timestamp=1000.18)) is None
    for timestamp in (1000.3, 1000.5):
        assert processor.process_sample(create_sample((3.0, 0.0, 0.0), ROLL, timestamp=timestamp)) is None
        assert processor.current_window.start_time == pytest.approx(1000.18)

    assert processor.process_sample(create_sample((3.0, 0.0, 0.0), ROLL, timestamp=1000.7)) is None
    assert processor.current_window is None
    assert processor.current_phase == SwingPhase.IDLE

    shot = processor.process_sample(create_sample((3.0, 0.0, 0.0), ROLL, timestamp=1000.78))
    assert shot is not None
    assert shot.absolute_magnitude == pytest.approx(3.0)
    assert shot.swing_duration == 0.0


def test_peak_must_be_near_window_maximum(processor):
    swing(processor, 3.0)

    # Debounced, but opens a window with a 5.0 peak
    assert processor.process_sample(create_sample((5.0, 0.0, 0.0), ROLL, timestamp=1000.18)) is None
    assert processor.process_sample(create_sample((3.0, 0.0, 0.0), ROLL, timestamp=1000.48)) is None

    shot = processor.process_sample(create_sample((4.5, 0.0, 0.0), ROLL, timestamp=1000.56))
    assert shot is not None
    assert shot.absolute_magnitude == pytest.approx(4.5)


@pytest.mark.parametrize("rotation,expected", [
    ((1.0, 0.0, 0.0), 90.0),
    ((1.0, 1.0, 0.0), 45.0),
    ((0.0, 1.0, 0.0), 0.0),
])
def test_gyro_angle(rotation, expected):
    angle = MotionProcessor._calculate_gyro_angle([np.array(rotation)])
    assert angle == pytest.approx(expected)


def test_gyro_angle_without_samples():
    assert MotionProcessor._calculate_gyro_angle([]) == 0.0


def test_serve_consumes_serve_window_and_is_buffered(processor, coordinator):
    coordinator.arm_serve_window(now=1000.0)

    shot = swing(processor, 2.0, start=1000.5, accel_axis=1)

    assert shot.type == ShotType.SERVE
    assert not shot.is_backhand
    assert coordinator.buffered_shot is shot
    assert coordinator.serve_window.deadline is None


def test_volley_opens_context_without_buffering(processor, coordinator):
    swing(processor, 3.0)

    assert coordinator.buffered_shot is None
    assert coordinator.pending_point_window.is_active(1001.0)


def test_records_magnitude_for_calibration(processor):
    swing(processor, 3.0)

    assert processor.calibration.get(Sport.PICKLEBALL).magnitude.history == (3.0,)


def test_shot_callback(processor):
    detected = []
    processor.set_shot_callback(detected.append)

    shot = swing(processor, 3.0)
    assert detected == [shot]


def test_stop_and_set_sport_flush_window(processor):
    processor.process_sample(create_sample((1.0, 0.0, 0.0), ROLL, timestamp=1000.0))
    processor.set_sport(Sport.TENNIS)

    assert processor.current_window is None
    assert processor.swing_threshold == pytest.approx(2.2)

    processor.process_sample(create_sample((1.5, 0.0, 0.0), ROLL, timestamp=1000.1))
    processor.stop()
    assert processor.current_window is None
    assert processor.process_sample(create_sample((5.0, 0.0, 0.0), ROLL, timestamp=1000.2)) is None


def test_mark_last_shot_as_point_winner(processor):
    shot = swing(processor, 3.0)

    marked = processor.mark_last_shot_as_point_winner(now=1002.0)
    assert marked.id == shot.id
    assert marked.associated_with_point
    assert processor.last_shot.associated_with_point


def test_mark_winner_ignores_stale_shot(processor):
    swing(processor, 3.0)

    assert processor.mark_last_shot_as_point_winner(now=1003.5) is None
    assert not processor.last_shot.associated_with_point


def test_mark_winner_without_shots(processor):
    assert processor.mark_last_shot_as_point_winner() is None


def test_point_candidates(processor, coordinator):
    coordinator.arm_serve_window(now=1000.0)
    serve = swing(processor, 2.0, start=1000.0, accel_axis=1)
    swing(processor, 3.0, start=1001.0)

    assert processor.point_candidates(now=1002.0) == [serve]
    assert processor.point_candidates(now=1006.0) == []


def test_reset_clears_recent_shots(processor):
    swing(processor, 3.0)
    processor.reset()

    assert processor.last_shot is None
    assert processor.last_shot_time is None
