"""
Domain: Vehicle classification for pricing.

Category rules, in order:
- motorcycles are MOTO,
- trucks are UTILITARIO,
- a client who declares a utility vehicle gets UTILITARIO,
- commercial use is ESPECIAL,
- everything else (cars and unknown types) is NORMAL.

Each category has a FIPE ceiling; vehicles above it are captured as leads
instead of being priced.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Mapping

from .money import MoneyInput, to_decimal
from .pricing import VehicleCategory


class VehicleType(str, Enum):
    AUTOMOVEL = "AUTOMOVEL"
    MOTOCICLETA = "MOTOCICLETA"
    CAMINHAO = "CAMINHAO"
    INEXISTENTE = "INEXISTENTE"  # plate lookup returned no type


class ClientCategory(str, Enum):
    LEVE = "LEVE"
    UTILITARIO = "UTILITARIO"


class UsageType(str, Enum):
    PARTICULAR = "PARTICULAR"
    COMERCIAL = "COMERCIAL"


FIPE_LIMITS: Mapping[VehicleCategory, Decimal] = {
    VehicleCategory.NORMAL: Decimal("180000.00"),
    VehicleCategory.ESPECIAL: Decimal("190000.00"),
    VehicleCategory.UTILITARIO: Decimal("450000.00"),
    VehicleCategory.MOTO: Decimal("90000.00"),
}


@dataclass(frozen=True, slots=True)
class FipeLimitCheck:
    allowed: bool
    limit: Decimal


def determine_category(
    vehicle_type: VehicleType,
    client_category: ClientCategory,
    usage_type: UsageType,
) -> VehicleCategory:
    if vehicle_type == VehicleType.MOTOCICLETA:
        return VehicleCategory.MOTO
    if vehicle_type == VehicleType.CAMINHAO:
        return VehicleCategory.UTILITARIO
    if client_category == ClientCategory.UTILITARIO:
        return VehicleCategory.UTILITARIO
    if usage_type == UsageType.COMERCIAL:
        return VehicleCategory.ESPECIAL
    return VehicleCategory.NORMAL


def check_fipe_limit(category: VehicleCategory, fipe_value: MoneyInput) -> FipeLimitCheck:
    """The ceiling itself is still allowed."""

    limit = FIPE_LIMITS[VehicleCategory(category)]
    return FipeLimitCheck(allowed=to_decimal(fipe_value) <= limit, limit=limit)


__all__ = [
    "VehicleType",
    "ClientCategory",
    "UsageType",
    "FIPE_LIMITS",
    "FipeLimitCheck",
    "determine_category",
    "check_fipe_limit",
]
