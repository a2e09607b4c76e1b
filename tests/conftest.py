"""
Shared test fixtures for the joinery engine tests.

Beams are 100 wide by 200 high unless stated, with the default z-up hint.
"""
import math
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from beams import Beam
from joint_conditions import JointCondition, detect_conditions
from joint_parts import make_part

SEARCH_RADIUS = 100.0
END_TOLERANCE = 10.0
MERGE_DISTANCE = 50.0


def beam(start, end, width=100.0, height=200.0):
    return Beam.from_points(start, end, width, height)


@pytest.fixture
def detect():
    """Detection with the default solver tolerances."""
    def _detect(beams):
        return detect_conditions(beams, SEARCH_RADIUS, END_TOLERANCE, MERGE_DISTANCE)
    return _detect


@pytest.fixture
def single_condition(detect):
    """The one condition detected between some beams."""
    def _single(beams) -> JointCondition:
        conditions = detect(beams)
        assert len(conditions) == 1
        return conditions[0]
    return _single


@pytest.fixture
def crossing_beams():
    """Two beams crossing mid-span at the origin, x over y."""
    return [
        beam((-1000, 0, 0), (1000, 0, 0)),
        beam((0, -1000, 0), (0, 1000, 0)),
    ]


@pytest.fixture
def tee_beams():
    """Beam 1 ends against the middle of beam 0 (T)."""
    return [
        beam((-1000, 0, 0), (1000, 0, 0)),
        beam((0, -1000, 0), (0, 0, 0)),
    ]


@pytest.fixture
def collinear_beams():
    """Two beams continuing each other along x, meeting at the origin."""
    return [
        beam((-1000, 0, 0), (0, 0, 0)),
        beam((0, 0, 0), (1000, 0, 0)),
    ]


@pytest.fixture
def corner_beams():
    """Beam 0 ends at the origin along +x, beam 1 comes down from +y."""
    return [
        beam((-1000, 0, 0), (0, 0, 0)),
        beam((0, 1000, 0), (0, 0, 0)),
    ]


@pytest.fixture
def branch_beams():
    """Beam 1 joins the end of beam 0 at 20 degrees."""
    a = math.radians(20.0)
    return [
        beam((-1000, 0, 0), (0, 0, 0)),
        beam((-1000 * math.cos(a), 1000 * math.sin(a), 0), (0, 0, 0)),
    ]


@pytest.fixture
def star_beams():
    """Factory: n beams radiating in the xy plane, all ending at the origin."""
    def _make(count, length=1000.0):
        beams = []
        for k in range(count):
            a = 2.0 * math.pi * k / count
            beams.append(beam((length * math.cos(a), length * math.sin(a), 0), (0, 0, 0)))
        return beams
    return _make


@pytest.fixture
def floor_v_beams():
    """A floor beam running through the origin with two legs ending on it."""
    return [
        beam((-1000, 0, 0), (1000, 0, 0)),
        beam((-500, 800, 0), (0, 0, 0)),
        beam((500, 800, 0), (0, 0, 0)),
    ]


@pytest.fixture
def part_at():
    """Factory: JointPart for beams[index] at parameter t."""
    def _make(beams, index, t):
        return make_part(beams[index], index, t, END_TOLERANCE)
    return _make

