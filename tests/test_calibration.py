import pytest

from pointwatch.calibration import (
    BackhandCalibration,
    CalibrationStore,
    MagnitudeCalibration,
    record_magnitude,
    record_rotation,
)
from pointwatch.models import DominantHand, Sport


@pytest.fixture
def store(config):
    return CalibrationStore(config)


def learn(calibration, readings, is_backhand, confidence=0.9, **kwargs):
    for rotation_y in readings:
        calibration = record_rotation(calibration, rotation_y, is_backhand, confidence, **kwargs)
    return calibration


def test_magnitude_defaults_to_sport_range():
    tennis = MagnitudeCalibration.for_sport(Sport.TENNIS)
    assert (tennis.min_value, tennis.max_value) == (2.0, 7.0)

    pickleball = MagnitudeCalibration.for_sport(Sport.PICKLEBALL)
    assert pickleball.normalize(3.3) == pytest.approx(0.5)


def test_normalize_clamps():
    calibration = MagnitudeCalibration(min_value=2.0, max_value=4.0)
    assert calibration.normalize(1.0) == 0.0
    assert calibration.normalize(9.0) == 1.0
    assert MagnitudeCalibration(min_value=3.0, max_value=3.0).normalize(5.0) == 0.0


def test_magnitude_keeps_defaults_until_min_samples():
    calibration = MagnitudeCalibration.for_sport(Sport.PADEL)
    for _ in range(19):
        calibration = record_magnitude(calibration, 10.0, Sport.PADEL)

    assert len(calibration.history) == 19
    assert (calibration.min_value, calibration.max_value) == (1.8, 6.0)


def test_magnitude_percentiles():
    calibration = MagnitudeCalibration.for_sport(Sport.PICKLEBALL)
    for i in range(100, 0, -1):
        calibration = record_magnitude(calibration, i / 10, Sport.PICKLEBALL)

    assert calibration.min_value == pytest.approx(1.1)
    assert calibration.max_value == pytest.approx(9.1)


def test_magnitude_window_is_bounded():
    calibration = MagnitudeCalibration.for_sport(Sport.PICKLEBALL)
    for i in range(250):
        calibration = record_magnitude(calibration, float(i), Sport.PICKLEBALL, max_history=200)

    assert len(calibration.history) == 200
    assert calibration.history[0] == 50.0


def test_low_confidence_never_updates():
    calibration = BackhandCalibration()
    assert record_rotation(calibration, -2.0, True, confidence=0.7) is calibration
    assert record_rotation(calibration, -2.0, True, confidence=0.3) is calibration


def test_adaptive_threshold_after_calibration():
    calibration = learn(BackhandCalibration(), [1.0] * 10, is_backhand=False)
    calibration = learn(calibration, [-3.0] * 9, is_backhand=True)
    assert not calibration.is_calibrated
    assert calibration.adaptive_threshold == -0.5

    calibration = learn(calibration, [-3.0], is_backhand=True)
    assert calibration.is_calibrated
    assert calibration.adaptive_threshold == pytest.approx(-1.0)
    assert calibration.average_forehand_rotation == pytest.approx(1.0)
    assert calibration.average_backhand_rotation == pytest.approx(-3.0)


@pytest.mark.parametrize("forehand,backhand,expected", [
    (3.0, -8.0, -2.0),
    (4.0, -2.0, 0.0),
])
def test_adaptive_threshold_is_clamped(forehand, backhand, expected):
    calibration = learn(BackhandCalibration(), [forehand] * 10, is_backhand=False)
    calibration = learn(calibration, [backhand] * 10, is_backhand=True)
    assert calibration.adaptive_threshold == expected


def test_two_handed_preference_needs_twenty_backhands():
    calibration = learn(BackhandCalibration(), [-1.0] * 19, is_backhand=True,
                        magnitude=3.0, rotation_magnitude=0.5)
    assert calibration.two_handed_count == 19
    assert not calibration.uses_two_handed_backhand

    calibration = learn(calibration, [-1.0], is_backhand=True,
                        magnitude=3.0, rotation_magnitude=0.5)
    assert calibration.uses_two_handed_backhand


def test_backhand_style_shown_after_ten_backhands():
    calibration = learn(BackhandCalibration(), [-1.0] * 9, is_backhand=True,
                        magnitude=3.0, rotation_magnitude=0.5)
    assert not calibration.shows_two_handed_status
    assert calibration.backhand_style is None

    calibration = learn(calibration, [-1.0], is_backhand=True,
                        magnitude=3.0, rotation_magnitude=0.5)
    assert calibration.shows_two_handed_status
    # Preference itself still needs twenty backhands
    assert calibration.backhand_style == "one-handed"

    calibration = learn(calibration, [-1.0] * 10, is_backhand=True,
                        magnitude=3.0, rotation_magnitude=0.5)
    assert calibration.backhand_style == "two-handed"


def test_one_handed_backhands_keep_preference_off():
    calibration = learn(BackhandCalibration(), [-1.0] * 25, is_backhand=True,
                        magnitude=3.0, rotation_magnitude=2.5)
    assert calibration.one_handed_count == 25
    assert not calibration.uses_two_handed_backhand


def test_dominant_hand_detected_after_polarity_window_overflows():
    calibration = learn(BackhandCalibration(), [-1.5] * 50, is_backhand=False)
    assert calibration.dominant_hand == DominantHand.RIGHT

    calibration = learn(calibration, [-1.5], is_backhand=False)
    assert len(calibration.rotation_polarity) == 50
    assert calibration.dominant_hand == DominantHand.LEFT


def test_confidence_formula():
    calibration = BackhandCalibration()
    assert calibration.confidence(-2.0, 2.0) == pytest.approx(0.75)
    assert calibration.confidence(2.0, 8.0) == pytest.approx(1.0)


def test_store_gates_learning(store):
    assert not store.record_rotation(Sport.PICKLEBALL, -0.5, True, magnitude=1.0, rotation_magnitude=1.0)
    assert store.backhand(Sport.PICKLEBALL).backhand_rotations == ()

    assert store.record_rotation(Sport.PICKLEBALL, 2.0, False, magnitude=4.0, rotation_magnitude=2.0)
    assert store.backhand(Sport.PICKLEBALL).forehand_rotations == (2.0,)


def test_store_keeps_sports_separate_and_resets(store):
    store.record_magnitude(4.0, Sport.TENNIS)
    assert len(store.get(Sport.TENNIS).magnitude.history) == 1
    assert store.get(Sport.PADEL).magnitude.history == ()

    store.reset()
    assert store.get(Sport.TENNIS).magnitude.history == ()
    assert store.normalize(4.5, Sport.TENNIS) == pytest.approx(0.5)
