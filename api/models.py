"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.pricing import PricingRule, QuotationValues, VehicleCategory
from domain.quotation import Quotation, QuotationStatus
from domain.round_robin import DistributionMethod, RoundRobinConfig
from domain.seller import SellerStatus
from domain.seller_queue import QueueItem
from domain.vehicle import ClientCategory, UsageType, VehicleType
from services.reassignment_service import (
    LeadDistribution,
    PendingLeadsAction,
    ReassignmentResult,
    SellerStatusChange,
)


# ============================================================================
# Pricing Models
# ============================================================================

class QuotationValuesResponse(BaseModel):
    """Derived monetary fields of a quotation."""
    mensalidade: Decimal
    adesao: Decimal
    adesao_desconto: Decimal
    cota_participacao: Optional[Decimal] = None

    @staticmethod
    def from_domain(values: QuotationValues) -> "QuotationValuesResponse":
        return QuotationValuesResponse(
            mensalidade=values.monthly_fee,
            adesao=values.enrollment_fee,
            adesao_desconto=values.discounted_enrollment_fee,
            cota_participacao=values.participation_quota,
        )


class PriceRequest(BaseModel):
    """Request to price a vehicle without storing a quotation."""
    categoria: VehicleCategory
    valor_fipe: Decimal = Field(..., ge=0, description="FIPE table value of the vehicle")

    class Config:
        json_schema_extra = {
            "example": {"categoria": "NORMAL", "valor_fipe": "45000.00"}
        }


class PriceResponse(BaseModel):
    status: str  # PRICED, OVER_LIMIT, NO_RULE
    categoria: VehicleCategory
    valor_fipe: Decimal
    limite: Decimal
    pricing_rule_id: Optional[str] = None
    values: Optional[QuotationValuesResponse] = None


class PricingRuleResponse(BaseModel):
    id: str
    categoria: VehicleCategory
    faixa_min: Decimal
    faixa_max: Decimal
    mensalidade: Decimal
    cota_participacao: Optional[Decimal] = None
    is_active: bool
    created_at: Optional[datetime] = None

    @staticmethod
    def from_domain(rule: PricingRule) -> "PricingRuleResponse":
        return PricingRuleResponse(
            id=rule.rule_id,
            categoria=rule.category,
            faixa_min=rule.range_min,
            faixa_max=rule.range_max,
            mensalidade=rule.monthly_fee,
            cota_participacao=rule.participation_quota,
            is_active=rule.is_active,
            created_at=rule.created_at,
        )


class PricingRuleCreateRequest(BaseModel):
    categoria: VehicleCategory
    faixa_min: Decimal = Field(..., ge=0)
    faixa_max: Decimal = Field(..., ge=0)
    mensalidade: Decimal = Field(..., ge=0)
    cota_participacao: Optional[Decimal] = Field(None, ge=0)

    class Config:
        json_schema_extra = {
            "example": {
                "categoria": "UTILITARIO",
                "faixa_min": "500000.01",
                "faixa_max": "600000.00",
                "mensalidade": "1500.00",
                "cota_participacao": "5000.00",
            }
        }


class PricingRuleUpdateRequest(BaseModel):
    """Partial update; only fields present in the body are changed."""
    faixa_min: Optional[Decimal] = Field(None, ge=0)
    faixa_max: Optional[Decimal] = Field(None, ge=0)
    mensalidade: Optional[Decimal] = Field(None, ge=0)
    cota_participacao: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None

    def to_changes(self) -> dict:
        names = {
            "faixa_min": "range_min",
            "faixa_max": "range_max",
            "mensalidade": "monthly_fee",
            "cota_participacao": "participation_quota",
            "is_active": "is_active",
        }
        return {names[key]: value for key, value in self.model_dump(exclude_unset=True).items()}


# ============================================================================
# Quotation Models
# ============================================================================

class QuotationRequest(BaseModel):
    """Quote submission from the public wizard."""
    valor_fipe: Decimal = Field(..., ge=0)
    categoria: Optional[VehicleCategory] = Field(
        None, description="Vehicle category; derived from tipo_veiculo when omitted"
    )
    tipo_veiculo: Optional[VehicleType] = None
    categoria_cliente: ClientCategory = ClientCategory.LEVE
    tipo_uso: UsageType = UsageType.PARTICULAR
    is_rejected: bool = False
    rejection_reason: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "valor_fipe": "45000.00",
                "tipo_veiculo": "AUTOMOVEL",
                "categoria_cliente": "LEVE",
                "tipo_uso": "PARTICULAR",
            }
        }


class QuotationResponse(BaseModel):
    id: str
    status: QuotationStatus
    categoria: VehicleCategory
    valor_fipe: Decimal
    values: QuotationValuesResponse
    seller_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    expires_at: datetime

    @staticmethod
    def from_domain(quotation: Quotation) -> "QuotationResponse":
        return QuotationResponse(
            id=quotation.quotation_id,
            status=quotation.status,
            categoria=quotation.category,
            valor_fipe=quotation.fipe_value,
            values=QuotationValuesResponse.from_domain(quotation.values),
            seller_id=quotation.seller_id,
            rejection_reason=quotation.rejection_reason,
            created_at=quotation.created_at,
            expires_at=quotation.expires_at,
        )


class SubmissionResponse(BaseModel):
    quotation: QuotationResponse
    pricing_status: Optional[str] = None
    assignment_reason: Optional[str] = None


class StatusChangeRequest(BaseModel):
    status: QuotationStatus
    seller_id: Optional[str] = Field(None, description="Restrict the change to this seller's quotations")


class ExpireResponse(BaseModel):
    expired: int


# ============================================================================
# Round-Robin Models
# ============================================================================

class RoundRobinConfigModel(BaseModel):
    method: DistributionMethod = DistributionMethod.SEQUENTIAL
    pending_lead_limit: Optional[int] = Field(None, ge=0, le=100)
    skip_overloaded: bool = True
    notify_when_all_overloaded: bool = True

    @staticmethod
    def from_domain(config: RoundRobinConfig) -> "RoundRobinConfigModel":
        return RoundRobinConfigModel(**config.to_mapping())


class QueueItemResponse(BaseModel):
    seller_id: str
    name: str
    position: int
    is_next: bool
    pending_count: int
    overloaded: bool
    last_assignment_at: Optional[datetime] = None
    assignment_count: int

    @staticmethod
    def from_domain(item: QueueItem) -> "QueueItemResponse":
        return QueueItemResponse(
            seller_id=item.seller.seller_id,
            name=item.seller.name,
            position=item.position,
            is_next=item.is_next,
            pending_count=item.pending_count,
            overloaded=item.overloaded,
            last_assignment_at=item.seller.last_assignment_at,
            assignment_count=item.seller.assignment_count,
        )


class QueueResponse(BaseModel):
    config: RoundRobinConfigModel
    queue: List[QueueItemResponse]


class QueueOrderRequest(BaseModel):
    seller_ids: List[str] = Field(..., min_length=1)


class QueuePositionsResponse(BaseModel):
    positions: dict[str, int]


# ============================================================================
# Seller Models
# ============================================================================

class ReassignRequest(BaseModel):
    """Move PENDING leads away from a seller."""
    quotation_ids: List[str] = Field(..., min_length=1)
    distribution: LeadDistribution = LeadDistribution.EQUAL
    to_seller_id: Optional[str] = Field(None, description="Target seller; required for `specific`")

    class Config:
        json_schema_extra = {
            "example": {"quotation_ids": ["q-1", "q-2"], "distribution": "equal"}
        }


class ReassignResponse(BaseModel):
    reassigned_count: int
    reassigned: dict[str, str]
    to_sellers: List[str]
    skipped: List[str]
    unassigned: List[str]

    @staticmethod
    def from_domain(result: ReassignmentResult) -> "ReassignResponse":
        return ReassignResponse(
            reassigned_count=result.reassigned_count,
            reassigned=result.reassigned,
            to_sellers=result.to_sellers,
            skipped=result.skipped,
            unassigned=result.unassigned,
        )


class SellerStatusRequest(BaseModel):
    status: SellerStatus
    pending_leads_action: PendingLeadsAction = PendingLeadsAction.KEEP
    to_seller_id: Optional[str] = Field(None, description="Target seller; required for `assign`")

    class Config:
        json_schema_extra = {
            "example": {"status": "VACATION", "pending_leads_action": "redistribute"}
        }


class SellerStatusResponse(BaseModel):
    seller_id: str
    name: str
    status: SellerStatus
    reassignment: Optional[ReassignResponse] = None

    @staticmethod
    def from_domain(change: SellerStatusChange) -> "SellerStatusResponse":
        return SellerStatusResponse(
            seller_id=change.seller.seller_id,
            name=change.seller.name,
            status=change.seller.status,
            reassignment=(
                ReassignResponse.from_domain(change.reassignment)
                if change.reassignment is not None else None
            ),
        )


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
