import logging
import math
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlmodel import Session, select

from pos_api.database import transaction
from pos_api.errors import DishNotFound, NoChanges, ValidationError
from pos_api.models import DetalleOrden, IngredientePlatillo, Platillo, Producto, Usuario
from pos_api.schemas import IngredientIn, PlatilloCreateIn, PlatilloUpdateIn
from pos_api.utils import clean_text, to_currency, to_quantity

logger = logging.getLogger("pos-api.platillos")


def preparable_count(ingredientes: Iterable[IngredientePlatillo]) -> int:
    """
    Cuántas unidades del platillo alcanzan con el inventario actual:
    el mínimo, entre todos los ingredientes, de floor(disponible / requerido).
    Un platillo sin receta nunca es preparable.
    """
    best: Optional[int] = None
    for ing in ingredientes:
        required = Decimal(str(ing.cantidad or 0))
        if required <= 0:
            continue
        inventario = ing.producto.inventario if ing.producto else None
        available = Decimal(str(inventario.cantidad_disponible if inventario else 0))
        possible = max(0, math.floor(available / required))
        if best is None or possible < best:
            best = possible
    return best or 0


def _ingredient_out(ing: IngredientePlatillo) -> Dict:
    producto = ing.producto
    return {
        "id": ing.id,
        "productoId": producto.id if producto else ing.producto_id,
        "productoNombre": producto.nombre if producto else None,
        "productoUnidad": producto.unidad if producto else None,
        "cantidad": to_quantity(ing.cantidad),
    }


def _to_out(platillo: Platillo) -> Dict:
    cantidad_preparable = preparable_count(platillo.ingredientes)
    return {
        "id": platillo.id,
        "nombre": platillo.nombre,
        "descripcion": platillo.descripcion,
        "precio": to_currency(platillo.precio),
        # la disponibilidad listada sale del inventario, no del flag guardado
        "disponible": cantidad_preparable > 0,
        "imagenUrl": platillo.imagen_url,
        "supervisorId": platillo.supervisor_id,
        "supervisorNombre": platillo.supervisor.nombre if platillo.supervisor else None,
        "creadoEn": platillo.creado_en,
        "ingredientes": [_ingredient_out(i) for i in platillo.ingredientes],
        "cantidadPreparable": cantidad_preparable,
    }


def _validate_ingredients(db: Session, ingredientes: List[IngredientIn]) -> List[IngredientIn]:
    for ing in ingredientes:
        if ing.producto_id <= 0:
            raise ValidationError("Cada ingrediente debe tener un producto válido")
        if ing.cantidad is None or ing.cantidad <= 0:
            raise ValidationError("La cantidad del ingrediente debe ser mayor a 0")
    product_ids = {ing.producto_id for ing in ingredientes}
    if product_ids:
        found = set(db.exec(select(Producto.id).where(Producto.id.in_(product_ids))).all())
        missing = sorted(product_ids - found)
        if missing:
            raise ValidationError(f"El producto {missing[0]} no existe")
    return ingredientes


def _validate_price(precio) -> float:
    if precio is None or precio < 0:
        raise ValidationError("El precio debe ser mayor o igual a 0")
    return to_currency(precio)


def _validate_supervisor(db: Session, supervisor_id) -> Optional[int]:
    if supervisor_id is None:
        return None
    if supervisor_id <= 0 or not db.get(Usuario, supervisor_id):
        raise ValidationError("El supervisor es inválido")
    return supervisor_id


def _get(db: Session, platillo_id: int) -> Platillo:
    platillo = db.get(Platillo, platillo_id)
    if not platillo:
        raise DishNotFound()
    return platillo


def list_platillos(db: Session) -> List[Dict]:
    rows = db.exec(select(Platillo).order_by(Platillo.nombre, Platillo.id)).all()
    return [_to_out(p) for p in rows]


def get_platillo(db: Session, platillo_id: int) -> Dict:
    return _to_out(_get(db, platillo_id))


def create_platillo(db: Session, payload: PlatilloCreateIn) -> Dict:
    nombre = clean_text(payload.nombre)
    if not nombre:
        raise ValidationError("El nombre es obligatorio")
    precio = _validate_price(payload.precio)
    supervisor_id = _validate_supervisor(db, payload.supervisor_id)
    ingredientes = _validate_ingredients(db, payload.ingredientes or [])

    platillo = Platillo(
        nombre=nombre,
        descripcion=clean_text(payload.descripcion),
        precio=precio,
        disponible=True if payload.disponible is None else payload.disponible,
        imagen_url=clean_text(payload.imagen_url),
        supervisor_id=supervisor_id,
    )
    with transaction(db):
        db.add(platillo)
        db.flush()
        for ing in ingredientes:
            db.add(
                IngredientePlatillo(
                    platillo_id=platillo.id,
                    producto_id=ing.producto_id,
                    cantidad=to_quantity(ing.cantidad),
                )
            )
    logger.info("platillo %s creado con %d ingredientes", platillo.id, len(ingredientes))
    return get_platillo(db, platillo.id)


def update_platillo(db: Session, platillo_id: int, payload: PlatilloUpdateIn) -> Dict:
    changes = payload.model_dump(exclude_unset=True)
    fields: Dict = {}

    if "nombre" in changes:
        nombre = clean_text(changes["nombre"])
        if not nombre:
            raise ValidationError("El nombre no puede estar vacío")
        fields["nombre"] = nombre
    if "descripcion" in changes:
        fields["descripcion"] = clean_text(changes["descripcion"])
    if "imagen_url" in changes:
        fields["imagen_url"] = clean_text(changes["imagen_url"])
    if "precio" in changes:
        fields["precio"] = _validate_price(changes["precio"])
    if "disponible" in changes:
        if changes["disponible"] is None:
            raise ValidationError("El campo disponible debe ser booleano")
        fields["disponible"] = changes["disponible"]
    if "supervisor_id" in changes:
        fields["supervisor_id"] = _validate_supervisor(db, changes["supervisor_id"])

    # una lista de ingredientes (aunque sea vacía) reemplaza la receta completa
    replace_ingredients = payload.ingredientes is not None and "ingredientes" in changes
    ingredientes = _validate_ingredients(db, payload.ingredientes) if replace_ingredients else []

    if not fields and not replace_ingredients:
        raise NoChanges()

    platillo = _get(db, platillo_id)
    with transaction(db):
        for field, value in fields.items():
            setattr(platillo, field, value)
        db.add(platillo)
        if replace_ingredients:
            for old in list(platillo.ingredientes):
                db.delete(old)
            db.flush()
            for ing in ingredientes:
                db.add(
                    IngredientePlatillo(
                        platillo_id=platillo_id,
                        producto_id=ing.producto_id,
                        cantidad=to_quantity(ing.cantidad),
                    )
                )
    return get_platillo(db, platillo_id)


def delete_platillo(db: Session, platillo_id: int) -> None:
    platillo = _get(db, platillo_id)
    with transaction(db):
        # el historial de órdenes conserva las líneas sin referencia al platillo
        db.exec(
            update(DetalleOrden)
            .where(DetalleOrden.platillo_id == platillo_id)
            .values(platillo_id=None)
        )
        for ing in list(platillo.ingredientes):
            db.delete(ing)
        db.delete(platillo)
    logger.info("platillo %s eliminado", platillo_id)
