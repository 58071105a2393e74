"""Pydantic v2 schemas for API request/response validation."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from propcalc_platform.domain.enums import DealStatus, DealStep, InsightType, InsightVerdict


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Schema for user API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    token_identifier: str
    name: str
    email: str
    role: str
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Deal wizard step payloads
# ---------------------------------------------------------------------------


class StepData(BaseModel):
    """Fields every step sub-record carries."""

    reasoning: str = ""
    completed: bool


class PdStepData(StepData):
    """Step 1: permitted development assessment."""

    existing_use: str
    proposed_use: str
    gia: float
    storeys: int
    target_units: int
    article_four: bool
    heritage: bool
    pd_route: str


class GdvStepData(StepData):
    """Step 2: gross development value assessment."""

    postcode: str
    property_type: str
    bedrooms: int
    total_units: int
    avg_sqft: float
    new_build_premium: float
    total_gdv: float
    gdv_per_unit: float
    gdv_per_sqft: float


class BuildCostStepData(StepData):
    """Step 3: build cost assessment."""

    total_gia: float
    build_type: str
    spec_level: str
    region: str
    storeys: int
    contingency: float
    professional_fees: float
    total_cost: float
    cost_per_sqm: float


class FinanceStepData(StepData):
    """Step 4: development finance assessment."""

    purchase_price: float
    build_cost: float
    gdv: float
    term_months: int
    target_ltc: float
    require_mezzanine: bool
    senior_debt_amount: float
    equity_required: float
    total_ltc: float
    profit_on_cost: float
    lender_appetite: str


STEP_PAYLOAD_MODELS: dict[DealStep, type[StepData]] = {
    DealStep.PD: PdStepData,
    DealStep.GDV: GdvStepData,
    DealStep.BUILD_COST: BuildCostStepData,
    DealStep.FINANCE: FinanceStepData,
}


# ---------------------------------------------------------------------------
# Deals
# ---------------------------------------------------------------------------


class DealCreate(BaseModel):
    """Schema for starting a new deal."""

    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    local_authority: str | None = None
    lat: float | None = None
    lng: float | None = None


class DealResponse(BaseModel):
    """Full deal record as returned to the owner."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    address: str
    local_authority: str | None = None
    lat: float | None = None
    lng: float | None = None
    status: str
    current_step: int
    pd_data: PdStepData | None = None
    gdv_data: GdvStepData | None = None
    build_cost_data: BuildCostStepData | None = None
    finance_data: FinanceStepData | None = None
    ai_summary: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DealCreatedResponse(BaseModel):
    id: str


class DealStatusUpdate(BaseModel):
    """Admin override used by the lender review process."""

    status: DealStatus


# ---------------------------------------------------------------------------
# AI insights
# ---------------------------------------------------------------------------


class Insight(BaseModel):
    type: InsightType = InsightType.NEUTRAL
    title: str
    message: str


class InsightPayload(BaseModel):
    """Structured analysis returned by the text-generation endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str
    verdict: InsightVerdict
    score: float | None = Field(default=None, ge=0, le=100)
    insights: list[Insight] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    market_context: str | None = Field(
        default=None,
        validation_alias=AliasChoices("market_context", "marketContext"),
    )
    fallback: bool = False


class AnalyzeRequest(BaseModel):
    """Free-form calculator analysis request."""

    system_prompt: str = ""
    user_prompt: str = ""
    calculator_id: str | None = None


class StepSubmitResponse(BaseModel):
    deal_id: str
    step: int
    current_step: int
    status: str
    insight: InsightPayload | None = None


# ---------------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------------


class PdMetricsRequest(BaseModel):
    gia: float = Field(ge=0, description="Gross internal area in sqm")
    market_psf: float = Field(ge=0, description="Market value in GBP per sqft")
    article_four: bool = False
    target_units: int = Field(default=0, ge=0)
    heritage: bool = False


class GdvUnitInput(BaseModel):
    bedrooms: int = Field(default=2, ge=0)
    quantity: int = Field(default=1, ge=0)
    avg_sqft: float = Field(ge=0)
    price_per_sqft: float = Field(ge=0)


class GdvMetricsRequest(BaseModel):
    units: list[GdvUnitInput]
    new_build_premium: float = Field(default=15.0, description="Percent uplift on comparables")


class BuildCostMetricsRequest(BaseModel):
    total_gia: float = Field(ge=0)
    build_type: str = "conversion"
    spec_level: str = "standard"
    region: str = "london"
    contingency: float = Field(default=10.0, ge=0, description="Percent of base cost")
    professional_fees: float = Field(default=12.0, ge=0, description="Percent of base + contingency")


class FinanceMetricsRequest(BaseModel):
    purchase_price: float = Field(ge=0)
    build_cost: float = Field(ge=0)
    gdv: float = Field(ge=0)
    term_months: int = Field(default=18, ge=0)
    target_ltc_pct: float = Field(default=65.0, ge=0, le=100)
    require_mezzanine: bool = False


# ---------------------------------------------------------------------------
# Calculator submissions (lead capture)
# ---------------------------------------------------------------------------


class SubmissionCreate(BaseModel):
    calculator_type: str
    calculator_slug: str
    form_data: str
    source: str | None = None


class SubmissionUser(BaseModel):
    name: str
    email: str


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str | None = None
    user_email: str | None = None
    calculator_type: str
    calculator_slug: str
    form_data: str
    source: str | None = None
    follow_up_status: str
    follow_up_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    user: SubmissionUser | None = None


class SubmissionCreatedResponse(BaseModel):
    id: str


class FollowUpUpdate(BaseModel):
    status: str = Field(min_length=1)
    notes: str | None = None


class SubmissionStats(BaseModel):
    total: int
    by_calculator: dict[str, int]
    by_status: dict[str, int]
    recent_count: int
