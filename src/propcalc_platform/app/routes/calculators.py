"""Stateless calculator endpoints backing the four wizard steps."""

from dataclasses import asdict

from fastapi import APIRouter

from propcalc_platform.domain.schemas import (
    BuildCostMetricsRequest,
    FinanceMetricsRequest,
    GdvMetricsRequest,
    PdMetricsRequest,
)
from propcalc_platform.services.deal_metrics import (
    UnitMix,
    derive_build_cost_metrics,
    derive_finance_metrics,
    derive_gdv_metrics,
    derive_pd_metrics,
    finance_summary,
)

router = APIRouter(prefix="/api/calculators", tags=["calculators"])


@router.post("/pd")
async def pd_metrics(data: PdMetricsRequest):
    return asdict(
        derive_pd_metrics(
            gia_sqm=data.gia,
            market_psf=data.market_psf,
            article_four=data.article_four,
            target_units=data.target_units,
            heritage=data.heritage,
        )
    )


@router.post("/gdv")
async def gdv_metrics(data: GdvMetricsRequest):
    units = [
        UnitMix(
            bedrooms=u.bedrooms,
            quantity=u.quantity,
            avg_sqft=u.avg_sqft,
            price_per_sqft=u.price_per_sqft,
        )
        for u in data.units
    ]
    return asdict(derive_gdv_metrics(units, data.new_build_premium))


@router.post("/build-cost")
async def build_cost_metrics(data: BuildCostMetricsRequest):
    return asdict(
        derive_build_cost_metrics(
            total_gia=data.total_gia,
            build_type=data.build_type,
            spec_level=data.spec_level,
            region=data.region,
            contingency_pct=data.contingency,
            professional_fees_pct=data.professional_fees,
        )
    )


@router.post("/finance")
async def finance_metrics(data: FinanceMetricsRequest):
    """Senior/mezzanine sizing plus a plain-English structure summary.

    Mezzanine fills the gap up to an 85% total LTC. A senior target above
    85% with mezzanine requested yields a negative mezzanine amount, the
    same figure the calculators have always quoted.
    """
    metrics = derive_finance_metrics(
        purchase_price=data.purchase_price,
        build_cost=data.build_cost,
        gdv=data.gdv,
        target_ltc=data.target_ltc_pct / 100,
        term_months=data.term_months,
        require_mezzanine=data.require_mezzanine,
    )
    result = asdict(metrics)
    result["lender_appetite"] = metrics.lender_appetite.value
    result["summary"] = finance_summary(metrics, data.target_ltc_pct)
    return result
