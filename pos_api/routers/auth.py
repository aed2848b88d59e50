from fastapi import APIRouter, Depends
from sqlmodel import Session

from pos_api.database import get_session
from pos_api.schemas import LoginIn, RegisterIn, UserUpdateIn
from pos_api.services import auth as auth_service
from pos_api.utils import parse_id

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_session)):
    return {"ok": True, **auth_service.login(db, payload)}


@router.post("/register")
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    return {"ok": True, **auth_service.register(db, payload)}


@router.get("")
def list_users(db: Session = Depends(get_session)):
    return {"ok": True, "users": auth_service.list_users(db)}


@router.patch("/{user_id}")
def update_user(user_id: str, payload: UserUpdateIn, db: Session = Depends(get_session)):
    uid = parse_id(user_id)
    return {"ok": True, "user": auth_service.update_user(db, uid, payload)}


@router.delete("/{user_id}")
def deactivate_user(user_id: str, db: Session = Depends(get_session)):
    """Los usuarios no se borran: se marcan inactivos."""
    uid = parse_id(user_id)
    return {"ok": True, "user": auth_service.set_active(db, uid, False)}


@router.patch("/{user_id}/restore")
def restore_user(user_id: str, db: Session = Depends(get_session)):
    uid = parse_id(user_id)
    return {"ok": True, "user": auth_service.set_active(db, uid, True)}
