"""Exception types raised by the inertial package.

The hierarchy separates misuse of an estimator's lifecycle from invalid
geometric input:

- EstimatorStateError: a configuration change or ``start()`` call that is
  not allowed in the estimator's current state (e.g. while running).
- InvalidFrameTransformationError: a coordinate transformation whose
  source/destination frame types do not match what an operation expects.
- InvalidRotationMatrixError: a 3x3 matrix that is not a proper rotation
  (orthonormal with determinant +1).

Plain argument errors (negative sample counts, wrong array shapes) are
reported with the built-in ``ValueError``.
"""


class InertialError(Exception):
    """Base class for all errors raised by this package."""


class EstimatorStateError(InertialError, RuntimeError):
    """Operation not permitted in the estimator's current state."""


class InvalidFrameTransformationError(InertialError, ValueError):
    """Coordinate transformation has unexpected source/destination frames."""


class InvalidRotationMatrixError(InertialError, ValueError):
    """Matrix is not a valid rotation matrix."""
