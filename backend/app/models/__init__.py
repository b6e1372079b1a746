from app.models.user import User
from app.models.destination import (
    CabInventory,
    Destination,
    DestinationDistance,
    DestinationPricingBucket,
    Poi,
    PoiPricing,
    Restaurant,
)
from app.models.weather import WeatherSnapshot
from app.models.package import (
    Package,
    PackageDay,
    PackageDayActivity,
    PackageDayRestaurant,
    PackageLeg,
)

__all__ = [
    "CabInventory",
    "Destination",
    "DestinationDistance",
    "DestinationPricingBucket",
    "Package",
    "PackageDay",
    "PackageDayActivity",
    "PackageDayRestaurant",
    "PackageLeg",
    "Poi",
    "PoiPricing",
    "Restaurant",
    "User",
    "WeatherSnapshot",
]
