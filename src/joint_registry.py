"""
Joint type registry.

Maps type names to joint factories and holds the default type for each joint
category. The module-level REGISTRY is filled with every built-in joint at
import; callers may copy it and register their own factories.
"""
import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from beams import Beam
from branch_joints import BranchJoint
from corner_joints import BlindCornerJoint, CornerJoint, FullLapCornerJoint
from cross_joints import (
    CrossLapDoubleBackcutJoint,
    CrossLapJoint,
    CrossLapSingleBackcutJoint,
    TaperedCrossLapJoint,
)
from joint_conditions import JointCondition
from joint_errors import UnknownJointTypeError
from joints import Joint, JointCategory, classify_condition
from junction_joints import FourWayJoint, VBeamJoint
from splice_joints import (
    BirdsMouthSpliceJoint,
    BlindTenonSpliceJoint,
    LappedSpliceJoint,
    SpliceJoint,
    SteppedScarfSpliceJoint,
)
from tenon_joints import ButtJoint, DovetailTenonJoint, TenonJoint

logger = logging.getLogger(__name__)

JointFactory = Callable[[Sequence[Beam], JointCondition], Joint]

BUILTIN_JOINTS = [
    TenonJoint,
    DovetailTenonJoint,
    ButtJoint,
    CrossLapJoint,
    CrossLapSingleBackcutJoint,
    CrossLapDoubleBackcutJoint,
    TaperedCrossLapJoint,
    CornerJoint,
    FullLapCornerJoint,
    BlindCornerJoint,
    SpliceJoint,
    BirdsMouthSpliceJoint,
    LappedSpliceJoint,
    SteppedScarfSpliceJoint,
    BlindTenonSpliceJoint,
    BranchJoint,
    VBeamJoint,
    FourWayJoint,
]

DEFAULT_TYPES = {
    JointCategory.TENON: "TenonJoint",
    JointCategory.CROSS: "CrossLapJoint",
    JointCategory.SPLICE: "SpliceJoint",
    JointCategory.CORNER: "CornerJoint",
    JointCategory.BRANCH: "BranchJoint",
    JointCategory.VBEAM: "VBeamJoint",
    JointCategory.FOUR_WAY: "FourWayJoint",
}


def as_category(value: Union[JointCategory, str]) -> JointCategory:
    """Accept a JointCategory, its value ("tenon") or its name ("TENON")."""
    if isinstance(value, JointCategory):
        return value
    try:
        return JointCategory(value)
    except ValueError:
        try:
            return JointCategory[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown joint category {value!r}") from None


class JointRegistry:
    """Name -> (factory, category) table plus per-category defaults."""

    def __init__(self):
        self._entries: Dict[str, Tuple[JointFactory, JointCategory]] = {}
        self._defaults: Dict[JointCategory, str] = {}

    def register(self, name: str, factory: JointFactory, category: JointCategory,
                 default: bool = False) -> None:
        """Add or replace a factory. The first type of a category becomes its
        default unless another is marked default later."""
        if name in self._entries:
            logger.debug("Replacing joint factory %r", name)
        self._entries[name] = (factory, category)
        if default or category not in self._defaults:
            self._defaults[category] = name

    def register_joint(self, joint_class, default: bool = False) -> None:
        self.register(joint_class.name, joint_class.from_condition,
                      joint_class.category, default=default)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def names(self, category: Optional[JointCategory] = None) -> List[str]:
        return [name for name, (_, cat) in self._entries.items()
                if category is None or cat == category]

    def category_of(self, name: str) -> JointCategory:
        return self._lookup(name)[1]

    def create(self, name: str, beams: Sequence[Beam],
               condition: JointCondition) -> Joint:
        """Build a joint of the named type from a condition.

        Raises:
            UnknownJointTypeError: nothing is registered under name.
            InvalidTopologyError: the condition's parts do not suit the type.
        """
        factory, _ = self._lookup(name)
        return factory(beams, condition)

    def default_type(self, category: JointCategory) -> str:
        category = as_category(category)
        if category not in self._defaults:
            raise UnknownJointTypeError(f"No joint type registered for {category.value}")
        return self._defaults[category]

    def set_default(self, category: JointCategory, name: str) -> None:
        category = as_category(category)
        registered = self.category_of(name)
        if registered != category:
            raise ValueError(
                f"{name} is a {registered.value} joint, not {category.value}"
            )
        self._defaults[category] = name

    def type_for(self, category: JointCategory,
                 overrides: Optional[Mapping[str, str]] = None) -> str:
        """Type name for a category, honouring {category: name} overrides."""
        for key, name in (overrides or {}).items():
            if as_category(key) == category:
                return name
        return self.default_type(category)

    def create_for_condition(
        self,
        beams: Sequence[Beam],
        condition: JointCondition,
        splice_threshold_deg: Optional[float] = None,
        branch_threshold_deg: Optional[float] = None,
        joint_types: Optional[Mapping[str, str]] = None,
    ) -> Joint:
        """Classify a condition and build its joint with the chosen type."""
        category = classify_condition(condition, splice_threshold_deg, branch_threshold_deg)
        return self.create(self.type_for(category, joint_types), beams, condition)

    def copy(self) -> "JointRegistry":
        other = JointRegistry()
        other._entries = dict(self._entries)
        other._defaults = dict(self._defaults)
        return other

    def _lookup(self, name: str) -> Tuple[JointFactory, JointCategory]:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownJointTypeError(f"No joint type registered as {name!r}") from None


def build_default_registry() -> JointRegistry:
    registry = JointRegistry()
    for joint_class in BUILTIN_JOINTS:
        registry.register_joint(joint_class)
    for category, name in DEFAULT_TYPES.items():
        registry.set_default(category, name)
    return registry


REGISTRY = build_default_registry()


def create_joint(name: str, beams: Sequence[Beam], condition: JointCondition,
                 registry: Optional[JointRegistry] = None) -> Joint:
    return (registry if registry is not None else REGISTRY).create(name, beams, condition)
