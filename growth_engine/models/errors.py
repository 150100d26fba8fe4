"""
Error taxonomy for the growth standards engine.

Every error carries a ``kind`` string so collaborators (HTTP handlers,
the dashboard) can pick their own user-facing message without parsing text.
"""


class GrowthStandardsError(Exception):
    kind = "growth_standards_error"

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": str(self)}


class InvalidMeasurement(GrowthStandardsError, ValueError):
    """Measured value is non-positive, non-finite or outside the sanity range."""
    kind = "invalid_measurement"


class OutOfDomain(GrowthStandardsError, ValueError):
    """Requested age/length lies outside the published table coverage."""
    kind = "out_of_domain"

    def __init__(self, indicator: str, requested, domain: tuple):
        self.indicator = indicator
        self.requested = requested
        self.domain = domain
        lo, hi = domain
        super().__init__(
            f"{indicator}: {requested} outside covered range [{lo:g}, {hi:g}]"
        )


class UnknownIndicatorOrSex(GrowthStandardsError, KeyError):
    """Caller passed an indicator or sex code the engine does not know."""
    kind = "unknown_indicator_or_sex"

    def __str__(self):
        # KeyError.__str__ would repr() the message
        return str(self.args[0]) if self.args else ""


class InvalidCurveRequest(GrowthStandardsError, ValueError):
    kind = "invalid_curve_request"
