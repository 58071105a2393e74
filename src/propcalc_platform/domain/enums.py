"""Domain enumerations for the PropCalc platform.

String enums use the (str, Enum) pattern to keep JSON serialization simple.
"""

from enum import Enum, IntEnum


class DealStatus(str, Enum):
    """Lifecycle status of a deal.

    Only DRAFT and COMPLETE are produced by the wizard. The finance states
    are set by the lender review process outside this service.
    """

    DRAFT = "draft"
    COMPLETE = "complete"
    FINANCE_SUBMITTED = "finance_submitted"
    FINANCE_APPROVED = "finance_approved"


class DealStep(IntEnum):
    """Wizard steps, in the order they are walked."""

    PD = 1
    GDV = 2
    BUILD_COST = 3
    FINANCE = 4

    @property
    def field_name(self) -> str:
        """Deal column holding this step's sub-record."""
        return _STEP_FIELDS[self]


_STEP_FIELDS = {
    DealStep.PD: "pd_data",
    DealStep.GDV: "gdv_data",
    DealStep.BUILD_COST: "build_cost_data",
    DealStep.FINANCE: "finance_data",
}


class UserRole(str, Enum):
    """Platform role of a provisioned user."""

    USER = "user"
    ADMIN = "admin"


class FollowUpStatus(str, Enum):
    """Well-known follow-up states for a calculator submission.

    The column is free-form; these are the values the admin dashboard uses.
    """

    PENDING = "pending"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    CLOSED = "closed"


class LenderAppetite(str, Enum):
    """Indicative lender appetite for a development finance structure."""

    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class InsightVerdict(str, Enum):
    """Overall verdict of an AI insight payload."""

    STRONG = "strong"
    GOOD = "good"
    MARGINAL = "marginal"
    WEAK = "weak"
    POOR = "poor"


class InsightType(str, Enum):
    """Tone of a single insight line."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    WARNING = "warning"


class BuildType(str, Enum):
    NEW_BUILD = "new_build"
    CONVERSION = "conversion"
    REFURBISHMENT = "refurbishment"
    EXTENSION = "extension"


class SpecLevel(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"


class Region(str, Enum):
    LONDON = "london"
    SOUTH_EAST = "south_east"
    SOUTH_WEST = "south_west"
    MIDLANDS = "midlands"
    NORTH = "north"
    SCOTLAND = "scotland"
