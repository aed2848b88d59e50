from fastapi import APIRouter, Depends
from sqlmodel import Session

from pos_api.database import get_session
from pos_api.schemas import ProductCreateIn, ProductUpdateIn
from pos_api.services import inventory as inventory_service
from pos_api.utils import parse_id

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/products")
def list_products(db: Session = Depends(get_session)):
    return {"ok": True, "products": inventory_service.list_products(db)}


@router.get("/categories")
def list_categories(db: Session = Depends(get_session)):
    return {"ok": True, "categories": inventory_service.list_categories(db)}


@router.get("/products/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_session)):
    pid = parse_id(product_id)
    return {"ok": True, "product": inventory_service.get_product(db, pid)}


@router.post("/products")
def create_product(payload: ProductCreateIn, db: Session = Depends(get_session)):
    return {"ok": True, "product": inventory_service.create_product(db, payload)}


@router.patch("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdateIn, db: Session = Depends(get_session)):
    pid = parse_id(product_id)
    return {"ok": True, "product": inventory_service.update_product(db, pid, payload)}


@router.delete("/products/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_session)):
    pid = parse_id(product_id)
    inventory_service.delete_product(db, pid)
    return {"ok": True}
