from typing import Dict, List

from sqlmodel import Session, select

from pos_api.models import Mesa


def list_mesas(db: Session, include_inactive: bool = False) -> List[Dict]:
    # por defecto solo las mesas libres (activas)
    q = select(Mesa)
    if not include_inactive:
        q = q.where(Mesa.activa == True)  # noqa: E712
    q = q.order_by(Mesa.numero, Mesa.id)
    return [{"id": m.id, "numero": m.numero, "activa": m.activa} for m in db.exec(q).all()]
