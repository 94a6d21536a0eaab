"""
Tests for the HTTP layer (`api/main.py` and routers).

Services are replaced with stubs; these tests cover request validation,
response shape and error-to-status mapping.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api.main import app
from domain.errors import (
    InvalidConfigurationError,
    InvalidQueueOrderError,
    InvalidReassignmentError,
    InvalidStatusTransitionError,
)
from domain.pricing import PricingRule, VehicleCategory, calculate_quotation_values
from domain.quotation import Quotation, QuotationStatus, expiry_for
from domain.round_robin import AssignmentDecision, AssignmentReason, RoundRobinConfig
from domain.seller import Seller, SellerStatus
from domain.seller_queue import build_queue
from services import assignment_service, pricing_service, quotation_service, reassignment_service
from services.assignment_service import AssignmentConflictError
from services.pricing_service import PricingOutcome, PricingStatus
from services.quotation_service import SubmissionResult
from services.reassignment_service import (
    LeadDistribution,
    PendingLeadsAction,
    ReassignmentResult,
    SellerStatusChange,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
RULE = PricingRule.create(rule_id="r1", category="NORMAL", range_min="0", range_max="50000", monthly_fee="200")


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _quotation(**overrides) -> Quotation:
    fields = dict(
        quotation_id="q1",
        category=VehicleCategory.NORMAL,
        fipe_value=Decimal("45000.00"),
        values=calculate_quotation_values("200"),
        status=QuotationStatus.PENDING,
        created_at=NOW,
        expires_at=expiry_for(NOW),
        seller_id="s1",
        pricing_rule_id="r1",
    )
    fields.update(overrides)
    return Quotation(**fields)


def test_health(client: TestClient) -> None:
    """Verify the health endpoint responds."""

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_price_quote(client: TestClient, monkeypatch) -> None:
    """Verify a priced vehicle returns the derived values."""

    outcome = PricingOutcome(
        status=PricingStatus.PRICED,
        category=VehicleCategory.NORMAL,
        fipe_value=Decimal("45000.00"),
        limit=Decimal("180000.00"),
        values=calculate_quotation_values("200"),
        rule=RULE,
    )
    monkeypatch.setattr(pricing_service, "quote_vehicle", lambda category, value: outcome)

    response = client.post("/api/v1/pricing/quote", json={"categoria": "NORMAL", "valor_fipe": "45000"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "PRICED"
    assert body["pricing_rule_id"] == "r1"
    assert Decimal(body["values"]["adesao_desconto"]) == Decimal("320.00")


def test_price_quote_validation(client: TestClient) -> None:
    """Verify unknown categories and negative values are rejected."""

    assert client.post("/api/v1/pricing/quote", json={"categoria": "CARRO", "valor_fipe": "1"}).status_code == 422
    assert client.post("/api/v1/pricing/quote", json={"categoria": "NORMAL", "valor_fipe": "-1"}).status_code == 422


def test_create_rule_overlap_is_400(client: TestClient, monkeypatch) -> None:
    """Verify rule authoring errors map to 400."""

    def overlap(**kwargs):
        raise InvalidConfigurationError("Overlapping NORMAL pricing rules")

    monkeypatch.setattr(pricing_service, "create_pricing_rule", overlap)

    response = client.post(
        "/api/v1/pricing/rules",
        json={"categoria": "NORMAL", "faixa_min": "0", "faixa_max": "10", "mensalidade": "5"},
    )

    assert response.status_code == 400
    assert "Overlapping" in response.json()["detail"]


def test_update_rule_passes_only_sent_fields(client: TestClient, monkeypatch) -> None:
    """Verify PATCH forwards only the fields present in the body."""

    seen = {}

    def update(rule_id, changes):
        seen.update(changes)
        return RULE

    monkeypatch.setattr(pricing_service, "update_pricing_rule", update)

    response = client.patch("/api/v1/pricing/rules/r1", json={"mensalidade": "210", "cota_participacao": None})

    assert response.status_code == 200
    assert seen == {"monthly_fee": Decimal("210"), "participation_quota": None}


def test_delete_missing_rule_is_404(client: TestClient, monkeypatch) -> None:
    """Verify deleting an unknown rule returns 404."""

    monkeypatch.setattr(pricing_service, "delete_pricing_rule", lambda rule_id: None)

    assert client.delete("/api/v1/pricing/rules/nope").status_code == 404


def test_submit_quotation(client: TestClient, monkeypatch) -> None:
    """Verify a submission returns the stored quotation and assignment."""

    seller = Seller(seller_id="s1", name="Ana", status=SellerStatus.ACTIVE, created_at=NOW - timedelta(days=1))
    result = SubmissionResult(
        quotation=_quotation(),
        pricing=None,
        assignment=AssignmentDecision(seller=seller, reason=AssignmentReason.ASSIGNED),
    )
    monkeypatch.setattr(quotation_service, "submit_quotation", lambda submission: result)

    response = client.post("/api/v1/quotations", json={"valor_fipe": "45000", "tipo_veiculo": "AUTOMOVEL"})

    assert response.status_code == 201
    body = response.json()
    assert body["quotation"]["seller_id"] == "s1"
    assert body["quotation"]["status"] == "PENDING"
    assert body["assignment_reason"] == "ASSIGNED"


def test_submit_quotation_requires_category_or_type(client: TestClient) -> None:
    """Verify a body without categoria or tipo_veiculo is rejected."""

    assert client.post("/api/v1/quotations", json={"valor_fipe": "45000"}).status_code == 422


@pytest.mark.parametrize(
    "error,status_code",
    [
        (InvalidStatusTransitionError("PENDING", "ACCEPTED"), 409),
        (PermissionError("not yours"), 403),
        (RuntimeError("db down"), 500),
    ],
)
def test_status_change_errors(client: TestClient, monkeypatch, error: Exception, status_code: int) -> None:
    """Verify status change errors map to HTTP codes."""

    def change(quotation_id, status, seller_id=None):
        raise error

    monkeypatch.setattr(quotation_service, "change_status", change)

    response = client.patch("/api/v1/quotations/q1/status", json={"status": "ACCEPTED"})

    assert response.status_code == status_code


def test_status_change_unknown_quotation_is_404(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(quotation_service, "change_status", lambda quotation_id, status, seller_id=None: None)

    assert client.patch("/api/v1/quotations/q9/status", json={"status": "CONTACTED"}).status_code == 404


def test_get_queue(client: TestClient, monkeypatch) -> None:
    """Verify the queue lists sellers with the next one flagged."""

    sellers = [
        Seller(seller_id="a", name="Ana", status=SellerStatus.ACTIVE, created_at=NOW),
        Seller(seller_id="b", name="Bruno", status=SellerStatus.ACTIVE, created_at=NOW, last_assignment_at=NOW),
    ]
    config = RoundRobinConfig()
    monkeypatch.setattr(assignment_service, "get_queue", lambda: (config, build_queue(sellers, config)))

    response = client.get("/api/v1/sellers/queue")

    assert response.status_code == 200
    body = response.json()
    assert body["config"]["method"] == "SEQUENTIAL"
    assert [item["seller_id"] for item in body["queue"]] == ["a", "b"]
    assert body["queue"][0]["is_next"] is True


def test_reorder_queue_invalid_is_400(client: TestClient, monkeypatch) -> None:
    """Verify an incomplete manual order maps to 400."""

    def reorder(seller_ids):
        raise InvalidQueueOrderError("Queue order is missing sellers: ['b']")

    monkeypatch.setattr(assignment_service, "reorder_seller_queue", reorder)

    response = client.put("/api/v1/sellers/queue", json={"seller_ids": ["a"]})

    assert response.status_code == 400
    assert client.put("/api/v1/sellers/queue", json={"seller_ids": []}).status_code == 422


def test_update_config(client: TestClient, monkeypatch) -> None:
    """Verify config updates round-trip and out-of-range limits are rejected."""

    monkeypatch.setattr(
        assignment_service, "update_round_robin_config", lambda data: RoundRobinConfig.from_mapping(data)
    )

    response = client.put("/api/v1/round-robin/config", json={"method": "LOAD_BALANCE", "pending_lead_limit": 5})

    assert response.status_code == 200
    assert response.json()["method"] == "LOAD_BALANCE"
    assert client.put("/api/v1/round-robin/config", json={"pending_lead_limit": 101}).status_code == 422


def test_expire(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(quotation_service, "expire_quotations", lambda: 3)

    assert client.post("/api/v1/quotations/expire").json() == {"expired": 3}


def test_reassign_leads(client: TestClient, monkeypatch) -> None:
    """Verify a reassignment reports where each lead went."""

    seen = []

    def reassign(from_seller_id, quotation_ids, distribution, to_seller_id=None):
        seen.append((from_seller_id, quotation_ids, distribution, to_seller_id))
        return ReassignmentResult(reassigned={"q1": "b", "q2": "c"}, skipped=["q3"])

    monkeypatch.setattr(reassignment_service, "reassign_leads", reassign)

    response = client.post("/api/v1/sellers/a/reassign", json={"quotation_ids": ["q1", "q2", "q3"]})

    assert response.status_code == 200
    body = response.json()
    assert body["reassigned_count"] == 2
    assert body["to_sellers"] == ["b", "c"]
    assert body["skipped"] == ["q3"]
    assert seen == [("a", ["q1", "q2", "q3"], LeadDistribution.EQUAL, None)]
    assert client.post("/api/v1/sellers/a/reassign", json={"quotation_ids": []}).status_code == 422


@pytest.mark.parametrize(
    "error,status_code",
    [
        (InvalidReassignmentError("A target seller is required for specific distribution"), 400),
        (AssignmentConflictError(3), 409),
        (RuntimeError("db down"), 500),
    ],
)
def test_reassign_leads_errors(client: TestClient, monkeypatch, error: Exception, status_code: int) -> None:
    """Verify reassignment errors map to HTTP codes."""

    def reassign(from_seller_id, quotation_ids, distribution, to_seller_id=None):
        raise error

    monkeypatch.setattr(reassignment_service, "reassign_leads", reassign)

    response = client.post(
        "/api/v1/sellers/a/reassign", json={"quotation_ids": ["q1"], "distribution": "specific"},
    )

    assert response.status_code == status_code


def test_change_seller_status(client: TestClient, monkeypatch) -> None:
    """Verify a status change returns the seller and any moved leads."""

    seen = []

    def change(seller_id, status, pending_leads_action=PendingLeadsAction.KEEP, to_seller_id=None):
        seen.append((seller_id, status, pending_leads_action, to_seller_id))
        seller = Seller(seller_id=seller_id, name="Ana", status=status, created_at=NOW)
        return SellerStatusChange(seller=seller, reassignment=ReassignmentResult(reassigned={"q1": "c"}))

    monkeypatch.setattr(reassignment_service, "change_seller_status", change)

    response = client.patch(
        "/api/v1/sellers/a/status",
        json={"status": "VACATION", "pending_leads_action": "assign", "to_seller_id": "c"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "VACATION"
    assert body["reassignment"]["reassigned"] == {"q1": "c"}
    assert seen == [("a", SellerStatus.VACATION, PendingLeadsAction.ASSIGN, "c")]


def test_change_seller_status_errors(client: TestClient, monkeypatch) -> None:
    """Verify unknown sellers are 404 and unusable targets are 400."""

    monkeypatch.setattr(reassignment_service, "change_seller_status", lambda *args, **kwargs: None)
    assert client.patch("/api/v1/sellers/x/status", json={"status": "INACTIVE"}).status_code == 404

    def reject(*args, **kwargs):
        raise InvalidReassignmentError("Seller c is VACATION")

    monkeypatch.setattr(reassignment_service, "change_seller_status", reject)
    response = client.patch(
        "/api/v1/sellers/a/status", json={"status": "INACTIVE", "pending_leads_action": "assign"},
    )
    assert response.status_code == 400
    assert client.patch("/api/v1/sellers/a/status", json={"status": "RETIRED"}).status_code == 422
