from fastapi import APIRouter, Depends
from sqlmodel import Session

from pos_api.database import get_session
from pos_api.schemas import CajaCloseIn, CajaOpenIn, TransaccionIn
from pos_api.services import caja as caja_service
from pos_api.utils import parse_id

router = APIRouter(prefix="/caja", tags=["caja"])


@router.get("/current")
def get_current_caja(db: Session = Depends(get_session)):
    return {"ok": True, "caja": caja_service.get_current_caja(db)}


@router.get("/last-closing")
def get_last_closing(db: Session = Depends(get_session)):
    return {"ok": True, "monto": caja_service.get_last_closing_amount(db)}


@router.get("")
def list_cajas(db: Session = Depends(get_session)):
    return {"ok": True, "cajas": caja_service.list_cajas(db)}


@router.get("/{caja_id}")
def get_caja(caja_id: str, db: Session = Depends(get_session)):
    cid = parse_id(caja_id)
    return {"ok": True, "caja": caja_service.get_caja(db, cid)}


@router.post("")
def open_caja(payload: CajaOpenIn, db: Session = Depends(get_session)):
    return {"ok": True, "caja": caja_service.open_caja(db, payload)}


@router.patch("/{caja_id}/close")
def close_caja(caja_id: str, payload: CajaCloseIn, db: Session = Depends(get_session)):
    cid = parse_id(caja_id)
    return {"ok": True, "caja": caja_service.close_caja(db, cid, payload)}


@router.post("/{caja_id}/transactions")
def add_transaction(caja_id: str, payload: TransaccionIn, db: Session = Depends(get_session)):
    cid = parse_id(caja_id)
    return {"ok": True, "caja": caja_service.add_transaction(db, cid, payload)}
