from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from pos_api.utils import MAX_ID

# los ids se validan como positivos en los servicios; aquí solo se acota el
# tamaño para que no desborden la columna
DbId = Annotated[int, Field(le=MAX_ID)]


class PosIn(BaseModel):
    # NaN / Infinity llegan como "Datos inválidos"
    model_config = ConfigDict(allow_inf_nan=False)


# --- auth

class LoginIn(PosIn):
    model_config = ConfigDict(populate_by_name=True)

    correo: str
    # el frontend envía "contraseña"
    contrasena: str = Field(..., alias="contraseña")


class RegisterIn(PosIn):
    model_config = ConfigDict(populate_by_name=True)

    nombre: str
    correo: EmailStr
    contrasena: str = Field(..., alias="contraseña")
    rol_id: Optional[DbId] = None
    activo: Optional[bool] = None


class UserUpdateIn(PosIn):
    model_config = ConfigDict(populate_by_name=True)

    nombre: Optional[str] = None
    correo: Optional[EmailStr] = None
    contrasena: Optional[str] = Field(None, alias="contraseña")
    rol_id: Optional[DbId] = None
    activo: Optional[bool] = None


# --- inventario

class ProductCreateIn(PosIn):
    nombre: Optional[str] = None
    descripcion: Optional[str] = None
    categoria_id: Optional[DbId] = None
    unidad: Optional[str] = None
    cantidad_inicial: Optional[float] = None
    nivel_minimo: Optional[float] = None


class ProductUpdateIn(PosIn):
    nombre: Optional[str] = None
    descripcion: Optional[str] = None
    categoria_id: Optional[DbId] = None
    unidad: Optional[str] = None
    cantidad_disponible: Optional[float] = None
    nivel_minimo: Optional[float] = None


# --- platillos

class IngredientIn(PosIn):
    producto_id: DbId
    cantidad: float


class PlatilloCreateIn(PosIn):
    nombre: Optional[str] = None
    descripcion: Optional[str] = None
    precio: Optional[float] = None
    supervisor_id: Optional[DbId] = None
    disponible: Optional[bool] = None
    imagen_url: Optional[str] = None
    ingredientes: Optional[List[IngredientIn]] = None


class PlatilloUpdateIn(PlatilloCreateIn):
    pass


# --- órdenes

class OrderItemIn(PosIn):
    platillo_id: DbId
    cantidad: float


class OrderCreateIn(PosIn):
    mesa_id: Optional[DbId] = None
    mesero_id: Optional[DbId] = None
    estado: Optional[str] = None
    items: Optional[List[OrderItemIn]] = None


class OrderItemsIn(PosIn):
    items: Optional[List[OrderItemIn]] = None


class OrderStatusIn(PosIn):
    estado: Optional[str] = None


class PaymentIn(PosIn):
    metodo_pago: Optional[str] = None
    monto: Optional[float] = None
    cambio: Optional[float] = None


# --- caja

class CajaOpenIn(PosIn):
    supervisor_id: Optional[DbId] = None


class CajaCloseIn(PosIn):
    monto_final: Optional[float] = None


class TransaccionIn(PosIn):
    tipo: Optional[str] = None
    monto: Optional[float] = None
    descripcion: Optional[str] = None
