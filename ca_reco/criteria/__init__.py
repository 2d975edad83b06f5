from ca_reco.criteria.base import (
    CRITERIA,
    CriteriaRegistry,
    Criterion,
    make_criterion,
    register_criterion,
)
from ca_reco.criteria.two_hit import (
    Crit2DeltaPhi,
    Crit2DeltaRho,
    Crit2RZRatio,
    Crit2StraightTrackRatio,
)
from ca_reco.criteria.three_hit import Crit32DAngle, Crit33DAngle, Crit3ChangeRZRatio
from ca_reco.criteria.four_hit import Crit42DAngleChange, Crit43DAngleChange, Crit4NoZigZag

__all__ = [
    "CRITERIA", "CriteriaRegistry", "Criterion", "make_criterion", "register_criterion",
    "Crit2DeltaPhi", "Crit2DeltaRho", "Crit2RZRatio", "Crit2StraightTrackRatio",
    "Crit32DAngle", "Crit33DAngle", "Crit3ChangeRZRatio",
    "Crit42DAngleChange", "Crit43DAngleChange", "Crit4NoZigZag",
]
