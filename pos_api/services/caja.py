import logging
from typing import Dict, List, Optional

from sqlmodel import Session, select

from pos_api.database import transaction
from pos_api.errors import (
    CajaAlreadyClosed,
    CajaAlreadyOpen,
    CajaNotFound,
    NoOpenCaja,
    ValidationError,
)
from pos_api.models import Caja, TransaccionCaja, Usuario
from pos_api.schemas import CajaCloseIn, CajaOpenIn, TransaccionIn
from pos_api.utils import normalize_choice, to_currency, utcnow

logger = logging.getLogger("pos-api.caja")

INGRESO = "Ingreso"
EGRESO = "Egreso"
TRANSACTION_TYPES = (INGRESO, EGRESO)


def balance(caja: Caja) -> Dict[str, float]:
    """Saldo = monto inicial + ingresos - egresos."""
    ingresos = 0.0
    egresos = 0.0
    for t in caja.transacciones:
        if t.tipo == INGRESO:
            ingresos += t.monto
        elif t.tipo == EGRESO:
            egresos += t.monto
    inicial = caja.monto_inicial or 0.0
    return {
        "totalIngresos": to_currency(ingresos),
        "totalEgresos": to_currency(egresos),
        "saldoActual": to_currency(inicial + ingresos - egresos),
    }


def _to_out(caja: Caja) -> Dict:
    totals = balance(caja)
    diferencia: Optional[float] = None
    if caja.diferencia is not None:
        # valor histórico guardado al cerrar
        diferencia = to_currency(caja.diferencia)
    elif caja.monto_final is not None:
        diferencia = to_currency(caja.monto_final - totals["saldoActual"])
    return {
        "id": caja.id,
        "supervisorId": caja.supervisor_id,
        "supervisorNombre": caja.supervisor.nombre if caja.supervisor else None,
        "montoInicial": to_currency(caja.monto_inicial),
        "montoFinal": to_currency(caja.monto_final) if caja.monto_final is not None else None,
        "abiertoEn": caja.abierto_en,
        "cerradoEn": caja.cerrado_en,
        **totals,
        "diferencia": diferencia,
        "transacciones": [
            {
                "id": t.id,
                "tipo": t.tipo,
                "monto": to_currency(t.monto),
                "descripcion": t.descripcion,
                "creadoEn": t.creado_en,
            }
            for t in caja.transacciones
        ],
    }


def find_open_caja(db: Session) -> Optional[Caja]:
    return db.exec(
        select(Caja).where(Caja.cerrado_en.is_(None)).order_by(Caja.abierto_en.desc(), Caja.id.desc())
    ).first()


def _last_closing_amount(db: Session) -> float:
    last = db.exec(select(Caja).order_by(Caja.abierto_en.desc(), Caja.id.desc())).first()
    if not last or last.monto_final is None:
        return 0.0
    return to_currency(last.monto_final)


def _get(db: Session, caja_id: int) -> Caja:
    caja = db.get(Caja, caja_id)
    if not caja:
        raise CajaNotFound()
    return caja


def get_current_caja(db: Session) -> Dict:
    caja = find_open_caja(db)
    if not caja:
        raise NoOpenCaja()
    return _to_out(caja)


def get_last_closing_amount(db: Session) -> float:
    return _last_closing_amount(db)


def list_cajas(db: Session) -> List[Dict]:
    cajas = db.exec(select(Caja).order_by(Caja.abierto_en.desc(), Caja.id.desc())).all()
    return [_to_out(c) for c in cajas]


def get_caja(db: Session, caja_id: int) -> Dict:
    return _to_out(_get(db, caja_id))


def open_caja(db: Session, payload: CajaOpenIn) -> Dict:
    supervisor_id = payload.supervisor_id
    if supervisor_id is not None and (supervisor_id <= 0 or not db.get(Usuario, supervisor_id)):
        raise ValidationError("Supervisor inválido")

    if find_open_caja(db):
        raise CajaAlreadyOpen()

    caja = Caja(supervisor_id=supervisor_id, monto_inicial=_last_closing_amount(db))
    with transaction(db):
        db.add(caja)
    logger.info("caja %s abierta con %.2f", caja.id, caja.monto_inicial)
    return get_caja(db, caja.id)


def close_caja(db: Session, caja_id: int, payload: CajaCloseIn) -> Dict:
    caja = _get(db, caja_id)
    if caja.cerrado_en is not None:
        raise CajaAlreadyClosed()
    if payload.monto_final is None or payload.monto_final < 0:
        raise ValidationError("Monto final inválido")

    monto_final = to_currency(payload.monto_final)
    saldo = balance(caja)["saldoActual"]
    with transaction(db):
        caja.monto_final = monto_final
        caja.diferencia = to_currency(monto_final - saldo)
        caja.cerrado_en = utcnow()
        db.add(caja)
    logger.info("caja %s cerrada: saldo=%.2f final=%.2f diferencia=%.2f",
                caja_id, saldo, monto_final, monto_final - saldo)
    return get_caja(db, caja_id)


def add_movement(db: Session, caja: Caja, tipo: str, monto: float, descripcion: Optional[str]) -> TransaccionCaja:
    """Agrega un movimiento sin confirmar; el llamador controla la transacción."""
    movement = TransaccionCaja(caja_id=caja.id, tipo=tipo, monto=to_currency(monto), descripcion=descripcion)
    db.add(movement)
    return movement


def add_transaction(db: Session, caja_id: int, payload: TransaccionIn) -> Dict:
    caja = _get(db, caja_id)
    if caja.cerrado_en is not None:
        raise CajaAlreadyClosed("No se pueden agregar transacciones a una caja cerrada")

    tipo = normalize_choice(payload.tipo, TRANSACTION_TYPES)
    if not tipo:
        raise ValidationError("Tipo de transacción inválido. Debe ser 'Ingreso' o 'Egreso'")
    if payload.monto is None or payload.monto <= 0:
        raise ValidationError("Monto inválido. Debe ser mayor a 0")

    descripcion = payload.descripcion.strip() if payload.descripcion else None
    with transaction(db):
        add_movement(db, caja, tipo, payload.monto, descripcion or None)
    return get_caja(db, caja_id)
