"""
Errores de negocio del POS.

Los servicios lanzan estas excepciones; ``pos_api.main`` las convierte en la
respuesta ``{"ok": false, "message": ...}`` que espera el frontend.
"""
from typing import Optional


class PosError(Exception):
    message = "Error desconocido"

    def __init__(self, message: Optional[str] = None):
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(PosError):
    message = "Datos inválidos"


class NotFoundError(PosError):
    message = "Registro no encontrado"


class ConflictError(PosError):
    message = "La operación no es válida en el estado actual"


# --- generales

class InvalidId(ValidationError):
    message = "ID inválido"


class NoChanges(ValidationError):
    message = "No hay cambios para aplicar"


# --- auth

class UserNotFound(NotFoundError):
    message = "Usuario no encontrado"


class InvalidCredentials(ValidationError):
    message = "Credenciales inválidas"


class UserDeactivated(ConflictError):
    message = "El usuario está desactivado"


class EmailTaken(ConflictError):
    message = "Correo ya registrado"


# --- inventario / platillos

class ProductNotFound(NotFoundError):
    message = "Producto no encontrado"


class DishNotFound(NotFoundError):
    message = "Platillo no encontrado"


class DishUnavailable(ConflictError):
    message = "El platillo no está disponible"


class NoInventoryRecord(ConflictError):
    message = "El producto no tiene inventario registrado"


class InsufficientStock(ConflictError):
    message = "No hay suficiente inventario"


# --- órdenes

class InvalidStatus(ValidationError):
    message = "Estado de orden inválido"


class EmptyOrder(ValidationError):
    message = "La orden debe contener al menos un platillo"


class InvalidItem(ValidationError):
    message = "Platillo inválido en la orden"


class InvalidPaymentMethod(ValidationError):
    message = "Método de pago inválido"


class OrderNotFound(NotFoundError):
    message = "Orden no encontrada"


class OrderItemNotFound(NotFoundError):
    message = "Ítem no encontrado"


class OrderClosed(ConflictError):
    message = "No se pueden modificar órdenes en ese estado"


class MesaNotFound(NotFoundError):
    message = "Mesa no encontrada"


class MesaInactive(ConflictError):
    message = "La mesa no está activa"


# --- caja

class CajaNotFound(NotFoundError):
    message = "Caja no encontrada"


class NoOpenCaja(ConflictError):
    message = "No hay caja abierta actualmente"


class CajaAlreadyOpen(ConflictError):
    message = "Ya existe una caja abierta. Ciérrala antes de abrir otra."


class CajaAlreadyClosed(ConflictError):
    message = "Esta caja ya está cerrada"
