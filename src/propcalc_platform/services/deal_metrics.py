"""Deal metric derivation - the arithmetic behind the four wizard calculators.

Pure functions, no I/O. The thresholds below are lending policy, not
physics: keep the breakpoints and the order of comparisons exactly as they
are (the first matching condition wins) or quoted figures will drift from
what the calculators have already shown users.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from propcalc_platform.domain.enums import BuildType, LenderAppetite, Region, SpecLevel

logger = logging.getLogger(__name__)

SQFT_PER_SQM = 10.764

# PD route
PD_COST_PER_SQM_ARTICLE_FOUR = 1950
PD_COST_PER_SQM_DEFAULT = 1780
PD_LEVERAGE_BASE_ARTICLE_FOUR = 60
PD_LEVERAGE_BASE_DEFAULT = 68
PD_LEVERAGE_CAP = 72
PD_LARGE_SCHEME_UNITS = 12

PD_ROUTE_ARTICLE_FOUR = "Full planning – PD impacted by Article 4"
PD_ROUTE_CLASS_MA = "Class MA permitted"

# Build cost: base GBP/sqm by build type and spec level (BCIS-style benchmarks)
BUILD_COST_BASE_RATES: dict[BuildType, dict[SpecLevel, float]] = {
    BuildType.NEW_BUILD: {SpecLevel.BASIC: 1650, SpecLevel.STANDARD: 2100, SpecLevel.PREMIUM: 2850},
    BuildType.CONVERSION: {SpecLevel.BASIC: 1450, SpecLevel.STANDARD: 1780, SpecLevel.PREMIUM: 2350},
    BuildType.REFURBISHMENT: {SpecLevel.BASIC: 1200, SpecLevel.STANDARD: 1550, SpecLevel.PREMIUM: 2100},
    BuildType.EXTENSION: {SpecLevel.BASIC: 1800, SpecLevel.STANDARD: 2250, SpecLevel.PREMIUM: 3000},
}
BUILD_COST_DEFAULT_RATE = 1780

# str-valued enum keys also match the plain strings the calculators send
REGION_MULTIPLIERS: dict[Region, float] = {
    Region.LONDON: 1.25,
    Region.SOUTH_EAST: 1.10,
    Region.SOUTH_WEST: 1.05,
    Region.MIDLANDS: 1.00,
    Region.NORTH: 0.95,
    Region.SCOTLAND: 0.98,
}

# Finance structuring
MEZZANINE_MAX_ADDITIONAL_LTC = 0.15
MEZZANINE_LTC_CEILING = 0.85
MEZZANINE_BASE_RATE = 15.0
MEZZANINE_HIGH_LEVERAGE_PREMIUM = 3.0
MEZZANINE_HIGH_LEVERAGE_THRESHOLD = 0.10


def _ratio(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 when the denominator is zero."""
    if not denominator:
        return 0.0
    return numerator / denominator


# ---------------------------------------------------------------------------
# Step 1: Permitted development
# ---------------------------------------------------------------------------


@dataclass
class PdMetrics:
    total_sqft: float
    gdv: float
    build_cost: float
    cost_per_sqm: float
    leverage: float
    pd_route: str


def derive_pd_metrics(
    gia_sqm: float,
    market_psf: float,
    article_four: bool,
    target_units: int = 0,
    heritage: bool = False,
) -> PdMetrics:
    """Headline PD numbers: GDV, baseline build cost and achievable LTC %.

    Article 4 removes PD rights, so the scheme runs through full planning:
    a higher cost rate and a lower leverage base.
    """
    total_sqft = gia_sqm * SQFT_PER_SQM
    gdv = total_sqft * market_psf

    cost_per_sqm = PD_COST_PER_SQM_ARTICLE_FOUR if article_four else PD_COST_PER_SQM_DEFAULT
    build_cost = gia_sqm * cost_per_sqm

    leverage_base = PD_LEVERAGE_BASE_ARTICLE_FOUR if article_four else PD_LEVERAGE_BASE_DEFAULT
    leverage = min(
        PD_LEVERAGE_CAP,
        leverage_base
        + (4 if target_units > PD_LARGE_SCHEME_UNITS else 0)
        - (2 if heritage else 0),
    )

    return PdMetrics(
        total_sqft=total_sqft,
        gdv=gdv,
        build_cost=build_cost,
        cost_per_sqm=cost_per_sqm,
        leverage=leverage,
        pd_route=PD_ROUTE_ARTICLE_FOUR if article_four else PD_ROUTE_CLASS_MA,
    )


# ---------------------------------------------------------------------------
# Step 2: GDV
# ---------------------------------------------------------------------------


@dataclass
class UnitMix:
    """One line of the unit mix: N units of a bedroom count."""

    bedrooms: int
    quantity: int
    avg_sqft: float
    price_per_sqft: float


@dataclass
class GdvMetrics:
    total_gdv: float
    total_units: int
    total_sqft: float
    gdv_per_unit: float
    gdv_per_sqft: float
    bedrooms: int
    avg_sqft: float


def derive_gdv_metrics(units: Iterable[UnitMix], new_build_premium_pct: float) -> GdvMetrics:
    """Blend a unit mix of comparables into total GDV.

    ``new_build_premium_pct`` is a percentage uplift applied to every
    comparable £/sqft before valuing the unit.
    """
    premium = new_build_premium_pct / 100

    total_gdv = 0.0
    total_units = 0
    total_sqft = 0.0
    bedroom_units = 0

    for unit in units:
        adjusted_psf = unit.price_per_sqft * (1 + premium)
        total_gdv += unit.avg_sqft * adjusted_psf * unit.quantity
        total_units += unit.quantity
        total_sqft += unit.avg_sqft * unit.quantity
        bedroom_units += unit.bedrooms * unit.quantity

    return GdvMetrics(
        total_gdv=total_gdv,
        total_units=total_units,
        total_sqft=total_sqft,
        gdv_per_unit=_ratio(total_gdv, total_units),
        gdv_per_sqft=_ratio(total_gdv, total_sqft),
        bedrooms=round(bedroom_units / total_units) if total_units else 2,
        avg_sqft=total_sqft / total_units if total_units else 750.0,
    )


# ---------------------------------------------------------------------------
# Step 3: Build cost
# ---------------------------------------------------------------------------


@dataclass
class BuildCostMetrics:
    base_build_cost: float
    contingency_amount: float
    professional_fees_amount: float
    total_cost: float
    cost_per_sqm: float
    cost_per_sqft: float


def derive_build_cost_metrics(
    total_gia: float,
    build_type: str,
    spec_level: str,
    region: str,
    contingency_pct: float,
    professional_fees_pct: float,
) -> BuildCostMetrics:
    """Total build cost from GIA, a regional unit rate, contingency and fees.

    Professional fees are charged on base cost plus contingency. Unknown
    build type/spec combinations fall back to the standard conversion rate
    and unknown regions to a neutral multiplier.
    """
    base_rate = BUILD_COST_BASE_RATES.get(build_type, {}).get(spec_level)
    if base_rate is None:
        logger.debug(
            "No base rate for %s/%s, using %s", build_type, spec_level, BUILD_COST_DEFAULT_RATE
        )
        base_rate = BUILD_COST_DEFAULT_RATE
    adjusted_rate = base_rate * REGION_MULTIPLIERS.get(region, 1.0)

    base_build_cost = total_gia * adjusted_rate
    contingency_amount = base_build_cost * (contingency_pct / 100)
    fees_amount = (base_build_cost + contingency_amount) * (professional_fees_pct / 100)
    total_cost = base_build_cost + contingency_amount + fees_amount

    cost_per_sqm = _ratio(total_cost, total_gia)
    return BuildCostMetrics(
        base_build_cost=base_build_cost,
        contingency_amount=contingency_amount,
        professional_fees_amount=fees_amount,
        total_cost=total_cost,
        cost_per_sqm=cost_per_sqm,
        cost_per_sqft=cost_per_sqm / SQFT_PER_SQM,
    )


# ---------------------------------------------------------------------------
# Step 4: Development finance
# ---------------------------------------------------------------------------


@dataclass
class FinanceMetrics:
    total_cost: float
    senior_debt_amount: float
    senior_rate: float
    arrangement_fee: float
    senior_ltgdv: float
    mezzanine_amount: float
    mezzanine_rate: float
    equity_required: float
    total_ltc: float
    total_ltgdv: float
    profit: float
    profit_on_cost: float
    profit_on_gdv: float
    lender_appetite: LenderAppetite
    term_months: int


def senior_rate_for(senior_ltgdv: float) -> float:
    if senior_ltgdv > 65:
        return 12.5
    if senior_ltgdv > 60:
        return 11.5
    return 10.5


def arrangement_fee_for(senior_ltgdv: float) -> float:
    return 2.0 if senior_ltgdv > 65 else 1.5


def classify_lender_appetite(profit_on_cost: float, senior_ltgdv: float) -> LenderAppetite:
    """Strong needs >25% profit on cost under 65% LTGDV; moderate >18% under 70%."""
    if profit_on_cost > 25 and senior_ltgdv < 65:
        return LenderAppetite.STRONG
    if profit_on_cost > 18 and senior_ltgdv < 70:
        return LenderAppetite.MODERATE
    return LenderAppetite.WEAK


def derive_finance_metrics(
    purchase_price: float,
    build_cost: float,
    gdv: float,
    target_ltc: float,
    term_months: int = 18,
    require_mezzanine: bool = False,
) -> FinanceMetrics:
    """Size senior and mezzanine debt and score the deal for lenders.

    Args:
        purchase_price: Site acquisition cost.
        build_cost: Total construction budget.
        gdv: Projected gross development value.
        target_ltc: Senior loan-to-cost as a fraction (0.65 = 65%).
        term_months: Facility term, carried through for display.
        require_mezzanine: Layer mezzanine on top of senior debt, up to
            15% extra LTC and never past an 85% total.

    Returns:
        FinanceMetrics with percentages expressed 0-100.
    """
    total_cost = purchase_price + build_cost
    senior_debt_amount = total_cost * target_ltc
    senior_ltgdv = _ratio(senior_debt_amount, gdv) * 100

    mezzanine_amount = 0.0
    mezzanine_rate = 0.0
    if require_mezzanine:
        additional_ltc = min(MEZZANINE_MAX_ADDITIONAL_LTC, MEZZANINE_LTC_CEILING - target_ltc)
        mezzanine_amount = total_cost * additional_ltc
        mezzanine_rate = MEZZANINE_BASE_RATE + (
            MEZZANINE_HIGH_LEVERAGE_PREMIUM if additional_ltc > MEZZANINE_HIGH_LEVERAGE_THRESHOLD else 0
        )

    total_debt = senior_debt_amount + mezzanine_amount
    equity_required = total_cost - total_debt

    profit = gdv - total_cost
    profit_on_cost = _ratio(profit, total_cost) * 100

    return FinanceMetrics(
        total_cost=total_cost,
        senior_debt_amount=senior_debt_amount,
        senior_rate=senior_rate_for(senior_ltgdv),
        arrangement_fee=arrangement_fee_for(senior_ltgdv),
        senior_ltgdv=senior_ltgdv,
        mezzanine_amount=mezzanine_amount,
        mezzanine_rate=mezzanine_rate,
        equity_required=equity_required,
        total_ltc=_ratio(total_debt, total_cost) * 100,
        total_ltgdv=_ratio(total_debt, gdv) * 100,
        profit=profit,
        profit_on_cost=profit_on_cost,
        profit_on_gdv=_ratio(profit, gdv) * 100,
        lender_appetite=classify_lender_appetite(profit_on_cost, senior_ltgdv),
        term_months=term_months,
    )


def finance_summary(metrics: FinanceMetrics, target_ltc_pct: Optional[float] = None) -> str:
    """Plain-English structure summary used as the step's default reasoning."""
    ltc = target_ltc_pct if target_ltc_pct is not None else _ratio(metrics.senior_debt_amount, metrics.total_cost) * 100
    summary = (
        f"Recommended structure: Senior debt of £{metrics.senior_debt_amount:,.0f} at "
        f"{metrics.senior_rate}% with {metrics.arrangement_fee}% arrangement fee "
        f"({ltc:g}% LTC, {metrics.senior_ltgdv:.1f}% LTGDV). "
    )
    if metrics.mezzanine_amount > 0:
        summary += (
            f"Mezzanine layer of £{metrics.mezzanine_amount:,.0f} at {metrics.mezzanine_rate:g}% "
            f"to boost total leverage to {metrics.total_ltc:.1f}% LTC. "
        )
    summary += f"Equity requirement: £{metrics.equity_required:,.0f}. "
    summary += f"Project shows {metrics.profit_on_cost:.1f}% profit on cost over {metrics.term_months} months. "
    summary += {
        LenderAppetite.STRONG: "Lender appetite is STRONG: expect competitive terms from multiple lenders.",
        LenderAppetite.MODERATE: "Lender appetite is MODERATE: solid deal but may need to shop around.",
        LenderAppetite.WEAK: "Lender appetite is WEAK: margins are tight. Consider value engineering or more equity.",
    }[metrics.lender_appetite]
    return summary
