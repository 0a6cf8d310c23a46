# storefront/api/routers/shipping.py
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import get_shipping_client
from storefront.domain.schemas import ShippingRate
from storefront.services.shipping_client import ShippingClient
from storefront.utils.settings import WAREHOUSE_LOCATION_ID

router = APIRouter(prefix="/shipping", tags=["shipping"])

GRAMS_PER_KG = Decimal(1000)


@router.get("/options", response_model=List[ShippingRate])
def get_shipping_options(
    destination_id: str = Query(..., alias="destinationId", pattern=r"^\d+$"),
    weight: Decimal = Query(..., gt=0, description="Waga w gramach"),
    item_value: Decimal = Query(Decimal("0"), alias="itemValue", ge=0),
    cod: bool = Query(False),
    shipping_client: ShippingClient = Depends(get_shipping_client),
):
    # gramy na wejsciu, kilogramy w calym systemie
    return shipping_client.get_rates(
        WAREHOUSE_LOCATION_ID,
        destination_id,
        weight / GRAMS_PER_KG,
        item_value,
        cod,
    )


@router.get("/destinations")
def search_destinations(
    keyword: str = Query(...),
    shipping_client: ShippingClient = Depends(get_shipping_client),
):
    results = shipping_client.search_destinations(keyword)
    return {"data": results, "meta": {"searchedKeyword": keyword, "resultCount": len(results)}}
