"""
Pricing API Endpoints.

Vehicle pricing lookups and pricing-rule administration.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from api.models import (
    PriceRequest,
    PriceResponse,
    PricingRuleCreateRequest,
    PricingRuleResponse,
    PricingRuleUpdateRequest,
    QuotationValuesResponse,
)
from domain.errors import InvalidConfigurationError
from domain.pricing import VehicleCategory
from services import pricing_service

router = APIRouter()


@router.post(
    "/pricing/quote",
    response_model=PriceResponse,
    summary="Price a Vehicle",
    description="Find the pricing rule for a category and FIPE value and derive the quotation values. Nothing is stored."
)
def price_vehicle(request: PriceRequest):
    """
    Price a vehicle.

    **Outcomes:**
    - `PRICED`: a rule matched; `values` holds mensalidade, adesao, adesao_desconto and cota_participacao
    - `OVER_LIMIT`: the FIPE value is above the category ceiling (`limite`)
    - `NO_RULE`: no active rule covers the FIPE value
    """
    try:
        outcome = pricing_service.quote_vehicle(request.categoria, request.valor_fipe)
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=500, detail=f"Pricing rules are misconfigured: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to price vehicle: {str(e)}")

    return PriceResponse(
        status=outcome.status.value,
        categoria=outcome.category,
        valor_fipe=outcome.fipe_value,
        limite=outcome.limit,
        pricing_rule_id=outcome.rule.rule_id if outcome.rule else None,
        values=QuotationValuesResponse.from_domain(outcome.values) if outcome.values else None,
    )


@router.get(
    "/pricing/rules",
    response_model=List[PricingRuleResponse],
    summary="List Pricing Rules",
)
def list_pricing_rules(
    categoria: Optional[VehicleCategory] = Query(None, description="Filter by vehicle category"),
    active_only: bool = Query(True, description="Only active rules"),
):
    try:
        rules = pricing_service.list_rules(categoria, active_only=active_only)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to list pricing rules: {str(e)}")
    return [PricingRuleResponse.from_domain(rule) for rule in rules]


@router.post(
    "/pricing/rules",
    response_model=PricingRuleResponse,
    status_code=201,
    summary="Create Pricing Rule",
    description="Create an active pricing rule. Ranges may not overlap active rules of the same category."
)
def create_pricing_rule(request: PricingRuleCreateRequest):
    try:
        rule = pricing_service.create_pricing_rule(
            category=request.categoria,
            range_min=request.faixa_min,
            range_max=request.faixa_max,
            monthly_fee=request.mensalidade,
            participation_quota=request.cota_participacao,
        )
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create pricing rule: {str(e)}")
    return PricingRuleResponse.from_domain(rule)


@router.patch(
    "/pricing/rules/{rule_id}",
    response_model=PricingRuleResponse,
    summary="Update Pricing Rule",
)
def update_pricing_rule(rule_id: str, request: PricingRuleUpdateRequest):
    try:
        rule = pricing_service.update_pricing_rule(rule_id, request.to_changes())
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update pricing rule: {str(e)}")

    if rule is None:
        raise HTTPException(status_code=404, detail=f"Pricing rule {rule_id} not found")
    return PricingRuleResponse.from_domain(rule)


@router.delete(
    "/pricing/rules/{rule_id}",
    response_model=PricingRuleResponse,
    summary="Deactivate Pricing Rule",
    description="Soft delete: the rule is kept but no longer used for pricing."
)
def delete_pricing_rule(rule_id: str):
    try:
        rule = pricing_service.delete_pricing_rule(rule_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete pricing rule: {str(e)}")

    if rule is None:
        raise HTTPException(status_code=404, detail=f"Pricing rule {rule_id} not found")
    return PricingRuleResponse.from_domain(rule)
