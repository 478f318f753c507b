"""Attitude, gravity and pose estimators driven by sensor callbacks.

Modules:
    statistics: Running mean/variance and sampling interval accumulators
    filters: Accelerometer averaging filters (low-pass, mean, median)
    gravity: Gravity vector and gravity-norm estimators
    leveling: Roll/pitch from gravity (standard and accurate)
    relative: Relative attitude from gyroscope integration
    leveled: Gyroscope attitude with roll and pitch corrected by leveling
    geomagnetic: Absolute attitude from leveling and magnetometer heading
    fused: Geomagnetic attitude smoothed with gyroscope integration
    pose: ECEF pose from fused attitude and strapdown navigation
"""

from inertial.estimators.base import AttitudeEstimator
from inertial.estimators.filters import (
    AveragingFilter,
    LowPassAveragingFilter,
    MeanAveragingFilter,
    MedianAveragingFilter,
)
from inertial.estimators.fused import (
    FusedGeomagneticAttitudeEstimator,
    FusionParameters,
    GyroscopeFusionEstimator,
)
from inertial.estimators.geomagnetic import GeomagneticAttitudeEstimator
from inertial.estimators.gravity import GravityEstimator, GravityNormEstimator, StopMode
from inertial.estimators.leveling import (
    AccurateLevelingEstimator,
    LevelingEstimator,
    leveling_pitch,
    leveling_roll,
)
from inertial.estimators.leveled import LeveledRelativeAttitudeEstimator
from inertial.estimators.pose import EuclideanTransformation, PoseEstimator, compute_transformation
from inertial.estimators.relative import RelativeGyroscopeAttitudeEstimator
from inertial.estimators.statistics import RunningStatistics, TimeIntervalEstimator

__all__ = [
    # Accumulators
    "RunningStatistics",
    "TimeIntervalEstimator",
    # Filters
    "AveragingFilter",
    "LowPassAveragingFilter",
    "MeanAveragingFilter",
    "MedianAveragingFilter",
    # Gravity
    "GravityEstimator",
    "GravityNormEstimator",
    "StopMode",
    # Attitude
    "AttitudeEstimator",
    "LevelingEstimator",
    "AccurateLevelingEstimator",
    "leveling_roll",
    "leveling_pitch",
    "RelativeGyroscopeAttitudeEstimator",
    "GeomagneticAttitudeEstimator",
    "FusionParameters",
    "GyroscopeFusionEstimator",
    "LeveledRelativeAttitudeEstimator",
    "FusedGeomagneticAttitudeEstimator",
    # Pose
    "EuclideanTransformation",
    "PoseEstimator",
    "compute_transformation",
]
