"""
Quotations API Endpoints.

Quote submission (pricing + storage + round-robin assignment) and status changes.
"""

from fastapi import APIRouter, HTTPException

from api.models import (
    ExpireResponse,
    QuotationRequest,
    QuotationResponse,
    StatusChangeRequest,
    SubmissionResponse,
)
from domain.errors import InvalidConfigurationError, InvalidStatusTransitionError
from services import quotation_service
from services.quotation_service import QuotationSubmission

router = APIRouter()


@router.post(
    "/quotations",
    response_model=SubmissionResponse,
    status_code=201,
    summary="Submit Quotation",
    description="Price the vehicle, store the quotation and assign a seller by round-robin."
)
def submit_quotation(request: QuotationRequest):
    """
    Submit a quote request.

    **How it works:**
    1. Resolves the vehicle category (given, or derived from `tipo_veiculo`)
    2. Prices it against the active pricing rules
    3. Stores the quotation; vehicles over the category ceiling or without a
       matching rule are stored as REJECTED leads with zero values
    4. Assigns the next seller by round-robin (priced quotations only)
    """
    if request.categoria is None and request.tipo_veiculo is None:
        raise HTTPException(status_code=422, detail="Either categoria or tipo_veiculo is required")

    submission = QuotationSubmission(
        fipe_value=request.valor_fipe,
        category=request.categoria,
        vehicle_type=request.tipo_veiculo,
        client_category=request.categoria_cliente,
        usage_type=request.tipo_uso,
        is_rejected=request.is_rejected,
        rejection_reason=request.rejection_reason,
    )

    try:
        result = quotation_service.submit_quotation(submission)
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=500, detail=f"Pricing rules are misconfigured: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create quotation: {str(e)}")

    return SubmissionResponse(
        quotation=QuotationResponse.from_domain(result.quotation),
        pricing_status=result.pricing.status.value if result.pricing else None,
        assignment_reason=result.assignment.reason.value if result.assignment else None,
    )


@router.patch(
    "/quotations/{quotation_id}/status",
    response_model=QuotationResponse,
    summary="Change Quotation Status",
    description="Allowed: PENDING -> CONTACTED | CANCELLED, CONTACTED -> ACCEPTED | CANCELLED."
)
def change_quotation_status(quotation_id: str, request: StatusChangeRequest):
    try:
        quotation = quotation_service.change_status(quotation_id, request.status, seller_id=request.seller_id)
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update quotation: {str(e)}")

    if quotation is None:
        raise HTTPException(status_code=404, detail=f"Quotation {quotation_id} not found")
    return QuotationResponse.from_domain(quotation)


@router.post(
    "/quotations/expire",
    response_model=ExpireResponse,
    summary="Expire Overdue Quotations",
)
def expire_quotations():
    try:
        return ExpireResponse(expired=quotation_service.expire_quotations())
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to expire quotations: {str(e)}")
