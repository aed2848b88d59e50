from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from pos_api.database import get_session
from pos_api.services import mesas as mesas_service

router = APIRouter(prefix="/mesas", tags=["mesas"])


@router.get("")
def list_mesas(show_all: Optional[str] = Query(None, alias="all"), db: Session = Depends(get_session)):
    include_inactive = show_all == "true"
    return {"ok": True, "mesas": mesas_service.list_mesas(db, include_inactive)}
