"""
Rule-Based Racket Shot Classification

Classifies a single swing peak into a shot type using the wrist IMU reading
at the peak, the swing duration and the mean gyro angle of the swing:
- serve, overhead, power_shot, touch_shot, volley, or unknown

Rules are evaluated as a cascade and the first match wins:
1. Too weak to be a swing (and no rally context) -> unknown
2. Serve: upward acceleration, relaxed while a serve or point window is open
3. Touch shot: impact at or under the sport's touch threshold
4. Overhead (steep angle or strong downward force with rotation) or
   power shot (flat angle, strong, long swing)
5. Volley: moderate force, little rotation, short swing
6. Fallback power shot for strong swings, otherwise unknown

Every threshold comes from the sport's SportHeuristics and is scaled down
when the watch is worn on the non-swinging hand.

Forehand/backhand is decided separately from the forearm roll (rotation y):
pronation reads positive (forehand), supination negative (backhand).
Serves and overheads never carry a backhand flag.
"""

from typing import Optional, Tuple

from pointwatch.calibration import DEFAULT_BACKHAND_THRESHOLD, BackhandCalibration
from pointwatch.heuristics import SportHeuristics
from pointwatch.models import MotionSample, ShotType, Sport

QUICK_SWING = 0.15  # seconds
FULL_SWING = 0.25


def _trace(debug_info: Optional[dict], message: str):
    if debug_info is not None:
        debug_info.setdefault('rule_matches', []).append(message)


def detect_backhand(rotation_y: float, rotation_magnitude: float, magnitude: float,
                    swing_duration: float, calibration: BackhandCalibration) -> bool:
    """
    Decide forehand (False) or backhand (True) from the forearm roll.

    The threshold starts at the learned adaptive threshold (or the default
    when calibration is incomplete) and is tightened or relaxed by swing
    duration and impact strength before rotation y is compared against it.
    """
    base_threshold = (calibration.adaptive_threshold if calibration.is_calibrated
                      else DEFAULT_BACKHAND_THRESHOLD)

    # Soft impacts give noisier roll readings, so demand a stronger signal
    if magnitude > 3.0:
        confidence_multiplier = 1.0
    elif magnitude > 2.0:
        confidence_multiplier = 1.2
    else:
        confidence_multiplier = 1.5

    if swing_duration < QUICK_SWING:
        duration_threshold = base_threshold * 0.7
    elif swing_duration > FULL_SWING:
        duration_threshold = base_threshold * 1.3
    else:
        duration_threshold = base_threshold

    rotation_floor = 0.2 if calibration.uses_two_handed_backhand else 0.3
    if rotation_magnitude < rotation_floor:
        return False

    if rotation_y > 1.0:
        return False

    return rotation_y < duration_threshold * confidence_multiplier


def classify_shot(sample: MotionSample, swing_duration: float, gyro_angle: float,
                  sport: Sport, wear_on_swinging_hand: bool,
                  calibration: BackhandCalibration, context_active: bool,
                  debug_info: Optional[dict] = None) -> Tuple[ShotType, bool]:
    """
    Classify the swing peak described by ``sample``.

    Args:
        sample: Motion sample at the swing peak
        swing_duration: Seconds since the swing window opened
        gyro_angle: Mean rotation angle of the swing in degrees
        sport: Sport whose thresholds apply
        wear_on_swinging_hand: False when the watch is on the other wrist
        calibration: The user's backhand calibration for this sport
        context_active: True while a serve or pending-point window is open
        debug_info: Optional dict; rule traces are appended under 'rule_matches'

    Returns:
        Tuple of (shot type, is_backhand)
    """
    heuristics = SportHeuristics(sport)
    hand_multiplier = heuristics.hand_multiplier(wear_on_swinging_hand)

    magnitude = sample.magnitude
    rotation_magnitude = sample.rotation_magnitude
    accel_y = float(sample.acceleration[1])
    accel_z = float(sample.acceleration[2])

    is_backhand = detect_backhand(
        float(sample.rotation_rate[1]), rotation_magnitude, magnitude,
        swing_duration, calibration,
    )

    touch_threshold = heuristics.touch_shot_threshold * hand_multiplier
    serve_threshold = heuristics.serve_threshold * hand_multiplier
    minimum_swing = heuristics.minimum_swing_threshold * hand_multiplier
    overhead_angle = heuristics.overhead_angle_threshold

    if debug_info is not None:
        debug_info.update({
            'sport': sport.value,
            'magnitude': magnitude,
            'rotation_magnitude': rotation_magnitude,
            'gyro_angle': gyro_angle,
            'swing_duration': swing_duration,
            'context_active': context_active,
            'is_backhand': is_backhand,
        })

    # Rule 1: Below the swing floor only counts inside rally context
    if magnitude < minimum_swing and not context_active:
        _trace(debug_info, f"Rule 1: magnitude {magnitude:.2f} < {minimum_swing:.2f} without context -> unknown")
        return ShotType.UNKNOWN, is_backhand

    # Rule 2: Serve
    if context_active and magnitude > serve_threshold * 0.8 and accel_y > 0.8:
        _trace(debug_info, f"Rule 2a: context serve (accel y {accel_y:.2f}) -> serve")
        return ShotType.SERVE, False
    if accel_y > serve_threshold and rotation_magnitude > 1.0:
        _trace(debug_info, f"Rule 2b: accel y {accel_y:.2f} > {serve_threshold:.2f} with rotation -> serve")
        return ShotType.SERVE, False

    # Rule 3: Touch shot
    if magnitude <= touch_threshold:
        _trace(debug_info, f"Rule 3: magnitude {magnitude:.2f} <= {touch_threshold:.2f} -> touch_shot")
        return ShotType.TOUCH_SHOT, is_backhand

    # Rule 4: Overhead vs power shot
    if gyro_angle > overhead_angle and rotation_magnitude > 2.0:
        _trace(debug_info, f"Rule 4a: angle {gyro_angle:.1f} > {overhead_angle:.1f} -> overhead")
        return ShotType.OVERHEAD, False

    downward_rotation = 2.0 if wear_on_swinging_hand else 1.6
    if accel_z < -1.0 and rotation_magnitude > downward_rotation:
        _trace(debug_info, f"Rule 4b: downward force (accel z {accel_z:.2f}) -> overhead")
        return ShotType.OVERHEAD, False

    if (gyro_angle < overhead_angle and
            magnitude > heuristics.minimum_swing_threshold * 1.3 and
            swing_duration > QUICK_SWING):
        _trace(debug_info, f"Rule 4c: flat angle {gyro_angle:.1f}, long swing -> power_shot")
        return ShotType.POWER_SHOT, is_backhand

    # Rule 5: Volley
    volley_low, volley_high = heuristics.volley_range
    if (volley_low <= magnitude <= volley_high and rotation_magnitude < 1.0 and
            swing_duration < QUICK_SWING):
        _trace(debug_info, f"Rule 5: quick moderate swing ({swing_duration:.2f}s) -> volley")
        return ShotType.VOLLEY, is_backhand

    # Rule 6: Fallback
    if magnitude > heuristics.minimum_swing_threshold * 1.5:
        _trace(debug_info, f"Rule 6: strong swing {magnitude:.2f} -> power_shot")
        return ShotType.POWER_SHOT, is_backhand

    _trace(debug_info, "No rule matched -> unknown")
    return ShotType.UNKNOWN, is_backhand
