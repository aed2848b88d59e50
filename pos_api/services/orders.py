"""
Órdenes: creación con descuento de inventario, items, estados y pagos.

Toda escritura de varios pasos (orden + detalle + inventario, pago + caja)
se hace en una sola transacción de base de datos; si algo falla no queda
nada a medias. Las filas de inventario que se van a descontar se bloquean
con SELECT ... FOR UPDATE para que dos órdenes simultáneas no consuman el
mismo stock.
"""
import logging
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from pos_api.database import transaction
from pos_api.errors import (
    ConflictError,
    DishNotFound,
    DishUnavailable,
    EmptyOrder,
    InsufficientStock,
    InvalidItem,
    InvalidPaymentMethod,
    InvalidStatus,
    MesaInactive,
    MesaNotFound,
    NoInventoryRecord,
    NoOpenCaja,
    OrderClosed,
    OrderItemNotFound,
    OrderNotFound,
    UserDeactivated,
    UserNotFound,
    ValidationError,
)
from pos_api.models import (
    DetalleOrden,
    IngredientePlatillo,
    Inventario,
    Mesa,
    Orden,
    Pago,
    Platillo,
    Producto,
    Usuario,
)
from pos_api.schemas import OrderCreateIn, OrderItemIn, OrderItemsIn, OrderStatusIn, PaymentIn
from pos_api.services import caja as caja_service
from pos_api.utils import MAX_ID, normalize_choice, to_currency, to_quantity

logger = logging.getLogger("pos-api.orders")

PENDIENTE = "Pendiente"
PAGADA = "Pagada"
ANULADA = "Anulada"
ORDER_STATUSES = (PENDIENTE, "En_Proceso", "Confirmada", PAGADA, ANULADA)

EFECTIVO = "Efectivo"
PAYMENT_METHODS = (EFECTIVO, "Tarjeta")


# --- validación

def normalize_status(value: Optional[str]) -> str:
    status = normalize_choice(value, ORDER_STATUSES)
    if not status:
        raise InvalidStatus()
    return status


def aggregate_items(items: Optional[List[OrderItemIn]]) -> Dict[int, int]:
    """
    Suma las cantidades de platillos repetidos: dos líneas del platillo 10
    con 1 y 2 unidades quedan como una sola de 3. Conserva el orden de
    aparición.
    """
    if not items:
        raise EmptyOrder()
    quantities: Dict[int, int] = {}
    for item in items:
        if item.platillo_id <= 0:
            raise InvalidItem()
        cantidad = item.cantidad
        if cantidad is None or cantidad <= 0 or cantidad > MAX_ID or not float(cantidad).is_integer():
            raise InvalidItem("La cantidad de cada platillo debe ser un entero mayor a 0")
        quantities[item.platillo_id] = quantities.get(item.platillo_id, 0) + int(cantidad)
    return quantities


def _price_items(db: Session, quantities: Dict[int, int]) -> Tuple[List[Dict], float]:
    """Precio de cada línea con el precio vigente del platillo."""
    rows = db.exec(select(Platillo).where(Platillo.id.in_(list(quantities)))).all()
    by_id = {p.id: p for p in rows}

    details: List[Dict] = []
    total = 0.0
    for platillo_id, cantidad in quantities.items():
        platillo = by_id.get(platillo_id)
        if not platillo:
            raise DishNotFound(f"Platillo {platillo_id} no existe")
        if not platillo.disponible:
            raise DishUnavailable(f"El platillo {platillo.nombre} no está disponible")
        precio_unit = to_currency(platillo.precio)
        subtotal = to_currency(precio_unit * cantidad)
        total += subtotal
        details.append(
            {"platillo_id": platillo_id, "cantidad": cantidad, "precio_unit": precio_unit, "subtotal": subtotal}
        )
    return details, to_currency(total)


def _consumption(db: Session, quantities: Dict[int, int]) -> Dict[int, Dict]:
    """Consumo por producto: cantidad de la receta x unidades pedidas, sumado entre platillos."""
    rows = db.exec(
        select(IngredientePlatillo, Producto)
        .join(Producto, Producto.id == IngredientePlatillo.producto_id)
        .where(IngredientePlatillo.platillo_id.in_(list(quantities)))
    ).all()

    consumption: Dict[int, Dict] = {}
    for ingrediente, producto in rows:
        ordered = quantities.get(ingrediente.platillo_id, 0)
        if ordered <= 0 or not ingrediente.cantidad or ingrediente.cantidad <= 0:
            continue
        entry = consumption.setdefault(producto.id, {"required": 0.0, "nombre": producto.nombre})
        entry["required"] += ingrediente.cantidad * ordered
    return consumption


def _inventory_adjustments(db: Session, quantities: Dict[int, int]) -> List[Tuple[Inventario, float]]:
    consumption = _consumption(db, quantities)
    if not consumption:
        return []

    inventory_rows = db.exec(
        select(Inventario).where(Inventario.producto_id.in_(list(consumption))).with_for_update()
    ).all()
    by_product = {row.producto_id: row for row in inventory_rows}

    adjustments: List[Tuple[Inventario, float]] = []
    for producto_id, info in consumption.items():
        nombre = info["nombre"] or f"ID {producto_id}"
        row = by_product.get(producto_id)
        if not row:
            raise NoInventoryRecord(f"El producto {nombre} no tiene inventario registrado")
        restante = to_quantity(row.cantidad_disponible - info["required"])
        if restante < 0:
            logger.info(
                "stock insuficiente de %s: disponible=%s requerido=%s",
                nombre, row.cantidad_disponible, info["required"],
            )
            raise InsufficientStock(f"No hay suficiente inventario para {nombre}")
        adjustments.append((row, restante))
    return adjustments


def _check_mesa(db: Session, mesa_id: Optional[int]) -> Optional[Mesa]:
    if mesa_id is None:
        return None
    if mesa_id <= 0:
        raise ValidationError("Mesa inválida")
    mesa = db.get(Mesa, mesa_id)
    if not mesa:
        raise MesaNotFound()
    if not mesa.activa:
        raise MesaInactive()
    return mesa


def _check_mesero(db: Session, mesero_id: Optional[int]) -> None:
    if mesero_id is None:
        return
    if mesero_id <= 0:
        raise ValidationError("Mesero inválido")
    mesero = db.get(Usuario, mesero_id)
    if not mesero:
        raise UserNotFound("Mesero no encontrado")
    if not mesero.activo:
        raise UserDeactivated("El mesero no está activo")


def _get_row(db: Session, order_id: int) -> Orden:
    orden = db.get(Orden, order_id)
    if not orden:
        raise OrderNotFound()
    return orden


# --- proyecciones

def _totals(orden: Orden) -> Dict[str, float]:
    total = to_currency(orden.total)
    pagado = to_currency(sum(p.monto for p in orden.pagos))
    return {
        "total": total,
        "totalPagado": pagado,
        "saldoPendiente": max(0.0, to_currency(total - pagado)),
    }


def _to_out(orden: Orden) -> Dict:
    return {
        "id": orden.id,
        "mesaId": orden.mesa_id,
        "mesaNumero": orden.mesa.numero if orden.mesa else None,
        "meseroId": orden.mesero_id,
        "meseroNombre": orden.mesero.nombre if orden.mesero else None,
        "estado": orden.estado,
        "fecha": orden.fecha,
        **_totals(orden),
        "items": [
            {
                "id": d.id,
                "platilloId": d.platillo_id,
                "platilloNombre": d.platillo.nombre if d.platillo else None,
                "cantidad": d.cantidad,
                "precioUnit": to_currency(d.precio_unit),
                "subtotal": to_currency(d.subtotal),
            }
            for d in orden.detalles
        ],
        "pagos": [
            {
                "id": p.id,
                "metodoPago": p.metodo_pago,
                "monto": to_currency(p.monto),
                "cambio": to_currency(p.cambio) if p.cambio is not None else None,
                "fecha": p.fecha,
            }
            for p in orden.pagos
        ],
    }


def _payment_history_out(pago: Pago) -> Dict:
    orden = pago.orden
    return {
        "id": pago.id,
        "orderId": pago.orden_id,
        "metodoPago": pago.metodo_pago,
        "monto": to_currency(pago.monto),
        "cambio": to_currency(pago.cambio) if pago.cambio is not None else None,
        "fecha": pago.fecha,
        "orderEstado": orden.estado if orden else None,
        "orderTotal": to_currency(orden.total) if orden else None,
        "mesaNumero": orden.mesa.numero if orden and orden.mesa else None,
        "meseroNombre": orden.mesero.nombre if orden and orden.mesero else None,
    }


# --- operaciones

def list_orders(db: Session, status: Optional[str] = None) -> List[Dict]:
    q = select(Orden)
    if status is not None:
        q = q.where(Orden.estado == normalize_status(status))
    q = q.order_by(Orden.fecha.desc(), Orden.id.desc())
    return [_to_out(o) for o in db.exec(q).all()]


def list_payments(db: Session) -> List[Dict]:
    pagos = db.exec(select(Pago).order_by(Pago.fecha.desc(), Pago.id.desc())).all()
    return [_payment_history_out(p) for p in pagos]


def get_order(db: Session, order_id: int) -> Dict:
    return _to_out(_get_row(db, order_id))


def create_order(db: Session, payload: OrderCreateIn) -> Dict:
    quantities = aggregate_items(payload.items)
    estado = normalize_status(payload.estado or PENDIENTE)

    if not caja_service.find_open_caja(db):
        raise NoOpenCaja("No se pueden crear órdenes sin una caja abierta. Por favor, abre la caja primero.")
    mesa = _check_mesa(db, payload.mesa_id)
    _check_mesero(db, payload.mesero_id)

    details, total = _price_items(db, quantities)
    adjustments = _inventory_adjustments(db, quantities)

    orden = Orden(mesa_id=payload.mesa_id, mesero_id=payload.mesero_id, estado=estado, total=total)
    with transaction(db):
        db.add(orden)
        db.flush()
        for detail in details:
            db.add(DetalleOrden(orden_id=orden.id, **detail))
        for row, restante in adjustments:
            row.cantidad_disponible = restante
            db.add(row)
        if mesa:
            # la mesa queda ocupada hasta que se pague la orden
            mesa.activa = False
            db.add(mesa)

    logger.info("orden %s creada: total=%.2f lineas=%d", orden.id, total, len(details))
    return get_order(db, orden.id)


def add_items(db: Session, order_id: int, payload: OrderItemsIn) -> Dict:
    quantities = aggregate_items(payload.items)
    orden = _get_row(db, order_id)
    if orden.estado == PAGADA:
        raise OrderClosed("No se pueden agregar items a una orden pagada")
    if orden.estado == ANULADA:
        raise OrderClosed("No se pueden agregar items a una orden anulada")

    details, subtotal = _price_items(db, quantities)
    adjustments = _inventory_adjustments(db, quantities)

    with transaction(db):
        for detail in details:
            db.add(DetalleOrden(orden_id=order_id, **detail))
        orden.total = to_currency(orden.total + subtotal)
        db.add(orden)
        for row, restante in adjustments:
            row.cantidad_disponible = restante
            db.add(row)
    return get_order(db, order_id)


def remove_item(db: Session, order_id: int, detail_id: int) -> Dict:
    """Quita una línea de la orden, baja el total y devuelve los ingredientes al inventario."""
    orden = _get_row(db, order_id)
    detail = db.get(DetalleOrden, detail_id)
    if not detail or detail.orden_id != order_id:
        raise OrderItemNotFound()
    if orden.estado in (PAGADA, ANULADA):
        raise OrderClosed()

    restores: List[Tuple[int, float]] = []
    if detail.platillo_id and detail.cantidad > 0:
        ingredientes = db.exec(
            select(IngredientePlatillo).where(IngredientePlatillo.platillo_id == detail.platillo_id)
        ).all()
        for ing in ingredientes:
            if ing.cantidad and ing.cantidad > 0:
                restores.append((ing.producto_id, ing.cantidad * detail.cantidad))

    inventory_rows = {}
    if restores:
        rows = db.exec(
            select(Inventario)
            .where(Inventario.producto_id.in_([pid for pid, _ in restores]))
            .with_for_update()
        ).all()
        inventory_rows = {row.producto_id: row for row in rows}

    with transaction(db):
        orden.total = max(0.0, to_currency(orden.total - detail.subtotal))
        db.add(orden)
        db.delete(detail)
        for producto_id, cantidad in restores:
            row = inventory_rows.get(producto_id)
            if row is None:
                row = Inventario(producto_id=producto_id, cantidad_disponible=0.0)
                inventory_rows[producto_id] = row
            row.cantidad_disponible = to_quantity(row.cantidad_disponible + cantidad)
            db.add(row)
    return get_order(db, order_id)


def update_order_status(db: Session, order_id: int, payload: OrderStatusIn) -> Dict:
    estado = normalize_status(payload.estado)
    orden = _get_row(db, order_id)
    with transaction(db):
        orden.estado = estado
        db.add(orden)
    logger.info("orden %s -> %s", order_id, estado)
    return get_order(db, order_id)


def register_payment(db: Session, order_id: int, payload: PaymentIn) -> Dict:
    """
    Registra un pago. No se limita el monto al saldo pendiente (propinas,
    efectivo con cambio); en efectivo sin cambio explícito se calcula el
    cambio sobre el saldo. Los pagos en efectivo entran a la caja abierta
    como Ingreso y el cambio sale como Egreso. Cuando lo pagado cubre el
    total la orden pasa a Pagada y la mesa se libera.
    """
    metodo = normalize_choice(payload.metodo_pago, PAYMENT_METHODS)
    if not metodo:
        raise InvalidPaymentMethod()
    if payload.monto is None or payload.monto <= 0:
        raise ValidationError("El monto del pago debe ser mayor a 0")
    if payload.cambio is not None and payload.cambio < 0:
        raise ValidationError("El cambio no puede ser negativo")

    orden = _get_row(db, order_id)
    if orden.estado == PAGADA:
        raise OrderClosed("La orden ya está pagada")
    if orden.estado == ANULADA:
        raise OrderClosed("No se pueden registrar pagos en una orden anulada")

    totals = _totals(orden)
    saldo = totals["saldoPendiente"]
    if saldo <= 0:
        raise ConflictError("La orden ya está completamente pagada")

    monto = to_currency(payload.monto)
    if payload.cambio is not None:
        cambio: Optional[float] = to_currency(payload.cambio)
    elif metodo == EFECTIVO and monto > saldo:
        cambio = to_currency(monto - saldo)
    else:
        cambio = None

    caja = caja_service.find_open_caja(db) if metodo == EFECTIVO else None
    with transaction(db):
        db.add(Pago(orden_id=order_id, metodo_pago=metodo, monto=monto, cambio=cambio))
        if caja:
            caja_service.add_movement(db, caja, caja_service.INGRESO, monto, f"Pago de orden #{order_id} ({metodo})")
            if cambio:
                caja_service.add_movement(db, caja, caja_service.EGRESO, cambio, f"Cambio devuelto - Orden #{order_id}")
        elif metodo == EFECTIVO:
            logger.warning("pago de orden #%s registrado sin caja abierta para el ingreso", order_id)

        if to_currency(totals["totalPagado"] + monto) >= totals["total"]:
            orden.estado = PAGADA
            db.add(orden)
            if orden.mesa:
                orden.mesa.activa = True
                db.add(orden.mesa)

    logger.info("pago %s de %.2f registrado en orden %s", metodo, monto, order_id)
    return get_order(db, order_id)
