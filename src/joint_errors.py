"""
Error taxonomy for joint detection, classification and construction.

Geometry failures are recovered per joint; topology and lookup failures are
fatal for the joint that raised them but never for the whole structure solve.
"""


class JoineryError(Exception):
    """Base class for all joinery engine errors."""


class DegenerateGeometryError(JoineryError):
    """A plane intersection or solid build failed.

    Raised for nearly parallel planes, zero-area faces and shells that do not
    close. Joint construction catches it and reports a failure status.
    """


class InvalidTopologyError(JoineryError):
    """A joint variant was given a part count or case combination it cannot build."""


class UnknownJointTypeError(JoineryError, KeyError):
    """No joint factory is registered under the requested name."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class UnresolvedConditionWarning(UserWarning):
    """A detected joint condition has a part count outside {2, 3, 4}."""
