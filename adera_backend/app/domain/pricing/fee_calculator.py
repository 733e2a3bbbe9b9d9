"""
Delivery Fee Calculator.

Flat base fee by package size plus a per-kilometre charge (ETB).
"""

from typing import Optional

from adera_backend.app.core.config import settings
from adera_backend.app.core.exceptions import ValidationError
from adera_backend.app.models.parcel_enums import PackageSize
from adera_backend.app.schemas.parcel import DeliveryFeeQuote

BASE_FEES = {
    PackageSize.DOCUMENT: 80.0,
    PackageSize.SMALL: 120.0,
    PackageSize.MEDIUM: 180.0,
    PackageSize.LARGE: 250.0,
}


class FeeCalculator:

    @staticmethod
    def quote(package_size: PackageSize, distance_km: Optional[float] = None) -> DeliveryFeeQuote:
        """
        Quote the delivery fee for a package.

        Args:
            package_size: Size class of the package
            distance_km: Trip distance; settings.default_distance_km when None

        Raises:
            ValidationError: If the distance is negative
        """
        distance = settings.default_distance_km if distance_km is None else distance_km
        if distance < 0:
            raise ValidationError("Distance must not be negative", details={"distance_km": distance})

        base_fee = BASE_FEES[PackageSize(package_size)]
        distance_fee = round(distance * settings.fee_per_km, 2)

        return DeliveryFeeQuote(
            package_size=package_size,
            distance_km=distance,
            base_fee=base_fee,
            distance_fee=distance_fee,
            total=round(base_fee + distance_fee, 2),
        )

    @staticmethod
    def calculate(package_size: PackageSize, distance_km: Optional[float] = None) -> float:
        return FeeCalculator.quote(package_size, distance_km).total
