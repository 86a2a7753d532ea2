import sys
from pathlib import Path

import numpy as np
import pytest

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pointwatch.config import default_config
from pointwatch.models import MotionSample


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def config():
    return default_config()


@pytest.fixture
def clock():
    return FakeClock()


def create_sample(accel, rotation=(0.0, 0.0, 0.0), timestamp=0.0):
    """Helper to build a motion sample from plain tuples"""
    return MotionSample(
        acceleration=np.array(accel, dtype=float),
        rotation_rate=np.array(rotation, dtype=float),
        timestamp=timestamp,
    )
