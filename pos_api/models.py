from typing import List, Optional
from datetime import datetime
from sqlmodel import SQLModel, Field, Relationship

from pos_api.utils import utcnow


class Usuario(SQLModel, table=True):
    __tablename__ = "usuarios"

    id: Optional[int] = Field(default=None, primary_key=True)
    correo: str = Field(index=True, unique=True, nullable=False)
    # hash bcrypt; los usuarios antiguos pueden conservar la clave en texto plano
    contrasena: str
    nombre: Optional[str] = Field(default=None, nullable=True)
    rol_id: Optional[int] = Field(default=None, nullable=True)
    activo: bool = Field(default=True)


class Categoria(SQLModel, table=True):
    __tablename__ = "categorias"

    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str


class Producto(SQLModel, table=True):
    __tablename__ = "productos"

    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str
    descripcion: Optional[str] = Field(default=None, nullable=True)
    unidad: str = Field(default="pza", max_length=16)
    categoria_id: Optional[int] = Field(default=None, foreign_key="categorias.id", nullable=True)

    categoria: Optional[Categoria] = Relationship()
    inventario: Optional["Inventario"] = Relationship(
        back_populates="producto", sa_relationship_kwargs={"uselist": False}
    )


class Inventario(SQLModel, table=True):
    __tablename__ = "inventario"

    id: Optional[int] = Field(default=None, primary_key=True)
    producto_id: int = Field(foreign_key="productos.id", unique=True, index=True)
    cantidad_disponible: float = Field(default=0.0)
    nivel_minimo: Optional[float] = Field(default=None, nullable=True)

    producto: Optional[Producto] = Relationship(back_populates="inventario")


class Platillo(SQLModel, table=True):
    __tablename__ = "platillos"

    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str
    descripcion: Optional[str] = Field(default=None, nullable=True)
    precio: float = Field(default=0.0)
    disponible: bool = Field(default=True)
    imagen_url: Optional[str] = Field(default=None, nullable=True)
    supervisor_id: Optional[int] = Field(default=None, foreign_key="usuarios.id", nullable=True)
    creado_en: datetime = Field(default_factory=utcnow)

    supervisor: Optional[Usuario] = Relationship()
    ingredientes: List["IngredientePlatillo"] = Relationship(
        back_populates="platillo",
        sa_relationship_kwargs={"order_by": "IngredientePlatillo.id"},
    )


class IngredientePlatillo(SQLModel, table=True):
    __tablename__ = "ingredientes_platillo"

    id: Optional[int] = Field(default=None, primary_key=True)
    platillo_id: int = Field(foreign_key="platillos.id", index=True)
    producto_id: int = Field(foreign_key="productos.id", index=True)
    # cantidad del producto requerida por cada unidad del platillo
    cantidad: float

    platillo: Optional[Platillo] = Relationship(back_populates="ingredientes")
    producto: Optional[Producto] = Relationship()


class Mesa(SQLModel, table=True):
    __tablename__ = "mesas"

    id: Optional[int] = Field(default=None, primary_key=True)
    numero: Optional[str] = Field(default=None, nullable=True)
    activa: bool = Field(default=True)


class Orden(SQLModel, table=True):
    __tablename__ = "ordenes"

    id: Optional[int] = Field(default=None, primary_key=True)
    mesa_id: Optional[int] = Field(default=None, foreign_key="mesas.id", nullable=True)
    mesero_id: Optional[int] = Field(default=None, foreign_key="usuarios.id", nullable=True)
    estado: str = Field(default="Pendiente", index=True)
    total: float = Field(default=0.0)
    fecha: datetime = Field(default_factory=utcnow)

    mesa: Optional[Mesa] = Relationship()
    mesero: Optional[Usuario] = Relationship()
    detalles: List["DetalleOrden"] = Relationship(
        back_populates="orden",
        sa_relationship_kwargs={"order_by": "DetalleOrden.id"},
    )
    pagos: List["Pago"] = Relationship(
        back_populates="orden",
        sa_relationship_kwargs={"order_by": "Pago.id"},
    )


class DetalleOrden(SQLModel, table=True):
    __tablename__ = "detalle_orden"

    id: Optional[int] = Field(default=None, primary_key=True)
    orden_id: int = Field(foreign_key="ordenes.id", index=True)
    # queda en NULL si el platillo se elimina del catálogo
    platillo_id: Optional[int] = Field(default=None, foreign_key="platillos.id", nullable=True)
    cantidad: int
    precio_unit: float
    subtotal: float

    orden: Optional[Orden] = Relationship(back_populates="detalles")
    platillo: Optional[Platillo] = Relationship()


class Pago(SQLModel, table=True):
    __tablename__ = "pagos"

    id: Optional[int] = Field(default=None, primary_key=True)
    orden_id: int = Field(foreign_key="ordenes.id", index=True)
    metodo_pago: str
    monto: float
    cambio: Optional[float] = Field(default=None, nullable=True)
    fecha: datetime = Field(default_factory=utcnow)

    orden: Optional[Orden] = Relationship(back_populates="pagos")


class Caja(SQLModel, table=True):
    __tablename__ = "caja"

    id: Optional[int] = Field(default=None, primary_key=True)
    supervisor_id: Optional[int] = Field(default=None, foreign_key="usuarios.id", nullable=True)
    monto_inicial: float = Field(default=0.0)
    monto_final: Optional[float] = Field(default=None, nullable=True)
    # monto_final - saldo calculado, se guarda al cerrar
    diferencia: Optional[float] = Field(default=None, nullable=True)
    abierto_en: datetime = Field(default_factory=utcnow)
    cerrado_en: Optional[datetime] = Field(default=None, nullable=True, index=True)

    supervisor: Optional[Usuario] = Relationship()
    transacciones: List["TransaccionCaja"] = Relationship(
        back_populates="caja",
        sa_relationship_kwargs={"order_by": "TransaccionCaja.id"},
    )


class TransaccionCaja(SQLModel, table=True):
    __tablename__ = "transacciones_caja"

    id: Optional[int] = Field(default=None, primary_key=True)
    caja_id: int = Field(foreign_key="caja.id", index=True)
    tipo: str
    monto: float
    descripcion: Optional[str] = Field(default=None, nullable=True)
    creado_en: datetime = Field(default_factory=utcnow)

    caja: Optional[Caja] = Relationship(back_populates="transacciones")
