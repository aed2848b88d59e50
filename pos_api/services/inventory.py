import logging
from typing import Dict, List

from sqlmodel import Session, select

from pos_api.database import transaction
from pos_api.errors import NoChanges, NotFoundError, ProductNotFound, ValidationError
from pos_api.models import Categoria, IngredientePlatillo, Inventario, Producto
from pos_api.schemas import ProductCreateIn, ProductUpdateIn
from pos_api.utils import clean_text, to_quantity

logger = logging.getLogger("pos-api.inventory")

DEFAULT_UNIT = "pza"
UNIT_MAX_LENGTH = 16


def _to_out(product: Producto) -> Dict:
    inventario = product.inventario
    return {
        "id": product.id,
        "nombre": product.nombre,
        "descripcion": product.descripcion,
        "unidad": product.unidad or DEFAULT_UNIT,
        "categoriaId": product.categoria_id,
        "categoriaNombre": product.categoria.nombre if product.categoria else None,
        "inventario": {
            "cantidadDisponible": to_quantity(inventario.cantidad_disponible) if inventario else 0,
            "nivelMinimo": inventario.nivel_minimo if inventario else None,
        },
    }


def _non_negative(value, message: str) -> float:
    if value is None or value < 0:
        raise ValidationError(message)
    return float(value)


def _check_category(db: Session, categoria_id) -> None:
    if categoria_id is not None and not db.get(Categoria, categoria_id):
        raise NotFoundError("Categoría no encontrada")


def list_products(db: Session) -> List[Dict]:
    products = db.exec(select(Producto).order_by(Producto.nombre, Producto.id)).all()
    return [_to_out(p) for p in products]


def list_categories(db: Session) -> List[Dict]:
    categories = db.exec(select(Categoria).order_by(Categoria.nombre)).all()
    return [{"id": c.id, "nombre": c.nombre} for c in categories]


def get_product(db: Session, product_id: int) -> Dict:
    product = db.get(Producto, product_id)
    if not product:
        raise ProductNotFound()
    return _to_out(product)


def create_product(db: Session, payload: ProductCreateIn) -> Dict:
    nombre = clean_text(payload.nombre)
    if not nombre:
        raise ValidationError("El nombre es obligatorio")

    cantidad_inicial = 0.0
    if payload.cantidad_inicial is not None:
        cantidad_inicial = _non_negative(
            payload.cantidad_inicial, "La cantidad inicial debe ser mayor o igual a 0"
        )
    nivel_minimo = None
    if payload.nivel_minimo is not None:
        nivel_minimo = _non_negative(payload.nivel_minimo, "El nivel mínimo debe ser mayor o igual a 0")

    unidad = (clean_text(payload.unidad) or DEFAULT_UNIT)[:UNIT_MAX_LENGTH]
    _check_category(db, payload.categoria_id)

    product = Producto(
        nombre=nombre,
        descripcion=clean_text(payload.descripcion),
        unidad=unidad,
        categoria_id=payload.categoria_id,
    )
    # producto e inventario se guardan juntos o no se guarda ninguno
    with transaction(db):
        db.add(product)
        db.flush()
        db.add(
            Inventario(
                producto_id=product.id,
                cantidad_disponible=to_quantity(cantidad_inicial),
                nivel_minimo=nivel_minimo,
            )
        )
    logger.info("producto %s creado con %s unidades", product.id, cantidad_inicial)
    return get_product(db, product.id)


def update_product(db: Session, product_id: int, payload: ProductUpdateIn) -> Dict:
    changes = payload.model_dump(exclude_unset=True)
    product_changes: Dict = {}
    inventory_changes: Dict = {}

    if "nombre" in changes:
        nombre = clean_text(changes["nombre"])
        if not nombre:
            raise ValidationError("El nombre no puede estar vacío")
        product_changes["nombre"] = nombre
    if "descripcion" in changes:
        product_changes["descripcion"] = clean_text(changes["descripcion"])
    if "categoria_id" in changes:
        product_changes["categoria_id"] = changes["categoria_id"]
    if "unidad" in changes:
        unidad = clean_text(changes["unidad"])
        if not unidad:
            raise ValidationError("La unidad no puede estar vacía")
        product_changes["unidad"] = unidad[:UNIT_MAX_LENGTH]
    if "cantidad_disponible" in changes:
        inventory_changes["cantidad_disponible"] = to_quantity(
            _non_negative(
                changes["cantidad_disponible"], "La cantidad disponible debe ser mayor o igual a 0"
            )
        )
    if "nivel_minimo" in changes:
        inventory_changes["nivel_minimo"] = _non_negative(
            changes["nivel_minimo"], "El nivel mínimo debe ser mayor o igual a 0"
        )

    if not product_changes and not inventory_changes:
        raise NoChanges()

    product = db.get(Producto, product_id)
    if not product:
        raise ProductNotFound()
    if "categoria_id" in product_changes:
        _check_category(db, product_changes["categoria_id"])

    with transaction(db):
        for field, value in product_changes.items():
            setattr(product, field, value)
        db.add(product)
        if inventory_changes:
            inventario = product.inventario or Inventario(producto_id=product.id)
            for field, value in inventory_changes.items():
                setattr(inventario, field, value)
            db.add(inventario)
    return get_product(db, product_id)


def delete_product(db: Session, product_id: int) -> None:
    product = db.get(Producto, product_id)
    if not product:
        raise ProductNotFound()
    recipe_rows = db.exec(
        select(IngredientePlatillo).where(IngredientePlatillo.producto_id == product_id)
    ).all()
    with transaction(db):
        # el producto deja de formar parte de las recetas
        for row in recipe_rows:
            db.delete(row)
        if product.inventario:
            db.delete(product.inventario)
        db.delete(product)
    logger.info("producto %s eliminado", product_id)
