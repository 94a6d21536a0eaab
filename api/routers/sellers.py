"""
Round-Robin API Endpoints.

Distribution configuration, the manually orderable seller queue, seller
status changes and lead reassignment.
"""

from fastapi import APIRouter, HTTPException

from api.models import (
    QueueItemResponse,
    QueueOrderRequest,
    QueuePositionsResponse,
    QueueResponse,
    ReassignRequest,
    ReassignResponse,
    RoundRobinConfigModel,
    SellerStatusRequest,
    SellerStatusResponse,
)
from domain.errors import InvalidConfigurationError, InvalidQueueOrderError, InvalidReassignmentError
from services import assignment_service, reassignment_service
from services.assignment_service import AssignmentConflictError

router = APIRouter()


@router.get(
    "/sellers/queue",
    response_model=QueueResponse,
    summary="Round-Robin Queue",
    description="Current distribution configuration and seller order; `is_next` marks the seller who gets the next lead."
)
def get_queue():
    try:
        config, queue = assignment_service.get_queue()
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=500, detail=f"Stored round-robin config is invalid: {e}")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load queue: {str(e)}")

    return QueueResponse(
        config=RoundRobinConfigModel.from_domain(config),
        queue=[QueueItemResponse.from_domain(item) for item in queue],
    )


@router.get(
    "/round-robin/config",
    response_model=RoundRobinConfigModel,
    summary="Get Round-Robin Config",
)
def get_round_robin_config():
    try:
        config, _ = assignment_service.get_queue()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load config: {str(e)}")
    return RoundRobinConfigModel.from_domain(config)


@router.put(
    "/round-robin/config",
    response_model=RoundRobinConfigModel,
    summary="Update Round-Robin Config",
)
def update_round_robin_config(request: RoundRobinConfigModel):
    try:
        config = assignment_service.update_round_robin_config(request.model_dump(mode="json"))
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update config: {str(e)}")
    return RoundRobinConfigModel.from_domain(config)


@router.put(
    "/sellers/queue",
    response_model=QueuePositionsResponse,
    summary="Reorder Queue",
    description="Persist a manual order. Must list every active seller taking part in round-robin exactly once."
)
def reorder_queue(request: QueueOrderRequest):
    try:
        positions = assignment_service.reorder_seller_queue(request.seller_ids)
    except InvalidQueueOrderError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to reorder queue: {str(e)}")
    return QueuePositionsResponse(positions=positions)


@router.post(
    "/sellers/queue/reset",
    response_model=QueuePositionsResponse,
    summary="Reset Queue Alphabetically",
)
def reset_queue():
    try:
        positions = assignment_service.reset_seller_queue()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to reset queue: {str(e)}")
    return QueuePositionsResponse(positions=positions)


@router.post(
    "/sellers/{seller_id}/reassign",
    response_model=ReassignResponse,
    summary="Reassign Leads",
    description="Move PENDING leads off a seller, spread by round-robin (`equal`) or to one seller (`specific`)."
)
def reassign_leads(seller_id: str, request: ReassignRequest):
    """
    Reassign a seller's leads.

    Leads that are no longer PENDING with this seller are returned in
    `skipped`; leads nobody else could take stay put and are returned in
    `unassigned`.
    """
    try:
        result = reassignment_service.reassign_leads(
            seller_id,
            request.quotation_ids,
            request.distribution,
            to_seller_id=request.to_seller_id,
        )
    except InvalidReassignmentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AssignmentConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to reassign leads: {str(e)}")
    return ReassignResponse.from_domain(result)


@router.patch(
    "/sellers/{seller_id}/status",
    response_model=SellerStatusResponse,
    summary="Change Seller Status",
    description="Set ACTIVE, INACTIVE or VACATION; pending leads can be kept, redistributed or handed to one seller first."
)
def change_seller_status(seller_id: str, request: SellerStatusRequest):
    try:
        change = reassignment_service.change_seller_status(
            seller_id,
            request.status,
            pending_leads_action=request.pending_leads_action,
            to_seller_id=request.to_seller_id,
        )
    except InvalidReassignmentError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AssignmentConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to change seller status: {str(e)}")

    if change is None:
        raise HTTPException(status_code=404, detail=f"Seller {seller_id} not found")
    return SellerStatusResponse.from_domain(change)
