# automart/api/routers/catalog.py
from typing import List

from fastapi import APIRouter, HTTPException, Query

from automart.data.catalog import LOCATIONS, PRODUCTS_BY_ID, filter_products
from automart.domain.schemas import Location, Product, ProductPage

router = APIRouter(tags=["catalog"])


@router.get("/products", response_model=ProductPage)
def list_products(
    category: str = Query("all"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    products = filter_products(category)
    start = (page - 1) * limit
    end = start + limit
    return ProductPage(
        products=products[start:end],
        total=len(products),
        page=page,
        limit=limit,
        has_more=end < len(products),
    )


@router.get("/products/{product_id}", response_model=Product)
def get_product(product_id: str):
    product = PRODUCTS_BY_ID.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/locations", response_model=List[Location])
def list_locations():
    return list(LOCATIONS.values())
