from fastapi import APIRouter, Depends
from sqlmodel import Session

from pos_api.database import get_session
from pos_api.schemas import PlatilloCreateIn, PlatilloUpdateIn
from pos_api.services import platillos as platillos_service
from pos_api.utils import parse_id

router = APIRouter(prefix="/platillos", tags=["platillos"])


@router.get("")
def list_platillos(db: Session = Depends(get_session)):
    return {"ok": True, "platillos": platillos_service.list_platillos(db)}


@router.get("/{platillo_id}")
def get_platillo(platillo_id: str, db: Session = Depends(get_session)):
    pid = parse_id(platillo_id)
    return {"ok": True, "platillo": platillos_service.get_platillo(db, pid)}


@router.post("")
def create_platillo(payload: PlatilloCreateIn, db: Session = Depends(get_session)):
    return {"ok": True, "platillo": platillos_service.create_platillo(db, payload)}


@router.patch("/{platillo_id}")
def update_platillo(platillo_id: str, payload: PlatilloUpdateIn, db: Session = Depends(get_session)):
    pid = parse_id(platillo_id)
    return {"ok": True, "platillo": platillos_service.update_platillo(db, pid, payload)}


@router.delete("/{platillo_id}")
def delete_platillo(platillo_id: str, db: Session = Depends(get_session)):
    pid = parse_id(platillo_id)
    platillos_service.delete_platillo(db, pid)
    return {"ok": True}
