import logging
from typing import Dict, List

from email_validator import EmailNotValidError, validate_email
from sqlmodel import Session, select

from pos_api.database import transaction
from pos_api.errors import (
    EmailTaken,
    InvalidCredentials,
    NoChanges,
    UserDeactivated,
    UserNotFound,
    ValidationError,
)
from pos_api.models import Usuario
from pos_api.schemas import LoginIn, RegisterIn, UserUpdateIn
from pos_api.security import MIN_PASSWORD_LENGTH, get_password_hash, verify_password
from pos_api.utils import clean_text

logger = logging.getLogger("pos-api.auth")


def _to_out(user: Usuario) -> Dict:
    return {
        "userId": user.id,
        "nombre": user.nombre,
        "correo": user.correo,
        "rol": user.rol_id,
        "activo": user.activo,
    }


def _check_password(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres")


def normalize_email(correo: str) -> str:
    """
    Misma normalización que EmailStr (dominio en minúsculas) para que el login
    encuentre lo que guardó el registro. Si no es un correo válido se usa tal cual.
    """
    correo = (correo or "").strip()
    try:
        return validate_email(correo, check_deliverability=False).normalized
    except EmailNotValidError:
        return correo


def _get_user(db: Session, user_id: int) -> Usuario:
    user = db.get(Usuario, user_id)
    if not user:
        raise UserNotFound()
    return user


def login(db: Session, payload: LoginIn) -> Dict:
    correo = normalize_email(payload.correo)
    user = db.exec(select(Usuario).where(Usuario.correo == correo)).first()
    if not user:
        raise UserNotFound()
    if not verify_password(payload.contrasena, user.contrasena):
        logger.info("login rechazado para %s", correo)
        raise InvalidCredentials()
    if not user.activo:
        raise UserDeactivated()
    out = _to_out(user)
    out.pop("activo")
    return out


def register(db: Session, payload: RegisterIn) -> Dict:
    nombre = clean_text(payload.nombre)
    if not nombre:
        raise ValidationError("El nombre es obligatorio")
    _check_password(payload.contrasena)

    correo = normalize_email(str(payload.correo))
    exists = db.exec(select(Usuario).where(Usuario.correo == correo)).first()
    if exists:
        raise EmailTaken()

    user = Usuario(
        nombre=nombre,
        correo=correo,
        contrasena=get_password_hash(payload.contrasena),
        rol_id=payload.rol_id,
        activo=True if payload.activo is None else payload.activo,
    )
    with transaction(db):
        db.add(user)
    db.refresh(user)
    logger.info("usuario %s registrado (id=%s)", user.correo, user.id)
    return _to_out(user)


def list_users(db: Session) -> List[Dict]:
    users = db.exec(select(Usuario).order_by(Usuario.nombre, Usuario.id)).all()
    return [_to_out(u) for u in users]


def update_user(db: Session, user_id: int, payload: UserUpdateIn) -> Dict:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise NoChanges()

    user = _get_user(db, user_id)

    if "nombre" in changes:
        nombre = clean_text(changes["nombre"])
        if not nombre:
            raise ValidationError("El nombre no puede estar vacío")
        user.nombre = nombre
    if changes.get("correo") is not None:
        correo = normalize_email(str(changes["correo"]))
        taken = db.exec(
            select(Usuario).where(Usuario.correo == correo, Usuario.id != user_id)
        ).first()
        if taken:
            raise EmailTaken()
        user.correo = correo
    if changes.get("contrasena") is not None:
        _check_password(changes["contrasena"])
        user.contrasena = get_password_hash(changes["contrasena"])
    if "rol_id" in changes:
        user.rol_id = changes["rol_id"]
    if changes.get("activo") is not None:
        user.activo = changes["activo"]

    with transaction(db):
        db.add(user)
    db.refresh(user)
    return _to_out(user)


def set_active(db: Session, user_id: int, activo: bool) -> Dict:
    """Desactiva o restaura una cuenta; los usuarios nunca se borran."""
    user = _get_user(db, user_id)
    user.activo = activo
    with transaction(db):
        db.add(user)
    db.refresh(user)
    logger.info("usuario %s %s", user.id, "restaurado" if activo else "desactivado")
    return _to_out(user)
