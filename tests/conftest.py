"""
Fixtures de pytest: base SQLite en memoria por test y TestClient con la
sesión sustituida.
"""
import os

# settings exige DATABASE_URL al importarse
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session as SQLModelSession, create_engine, select

from pos_api import models
from pos_api.database import get_session
from pos_api.main import app
from pos_api.security import get_password_hash

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=SQLModelSession)


@pytest.fixture(scope="function")
def db_session():
    SQLModel.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        SQLModel.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# --- datos de prueba

@pytest.fixture
def supervisor(db_session):
    user = models.Usuario(
        correo="super@restaurante.mx",
        contrasena=get_password_hash("secreto1"),
        nombre="Sofía Supervisora",
        rol_id=1,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def mesero(db_session):
    user = models.Usuario(correo="mesero@restaurante.mx", contrasena="legacy123", nombre="Mario Mesero", rol_id=2)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def mesa(db_session):
    row = models.Mesa(numero="1", activa=True)
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def open_caja(db_session):
    caja = models.Caja(monto_inicial=0.0)
    db_session.add(caja)
    db_session.commit()
    db_session.refresh(caja)
    return caja


@pytest.fixture
def make_product(db_session):
    def _make(nombre, cantidad, unidad="pza", nivel_minimo=None):
        product = models.Producto(nombre=nombre, unidad=unidad)
        db_session.add(product)
        db_session.flush()
        db_session.add(
            models.Inventario(producto_id=product.id, cantidad_disponible=cantidad, nivel_minimo=nivel_minimo)
        )
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def make_dish(db_session):
    def _make(nombre, precio, recipe=(), disponible=True):
        platillo = models.Platillo(nombre=nombre, precio=precio, disponible=disponible)
        db_session.add(platillo)
        db_session.flush()
        for producto, cantidad in recipe:
            db_session.add(
                models.IngredientePlatillo(platillo_id=platillo.id, producto_id=producto.id, cantidad=cantidad)
            )
        db_session.commit()
        db_session.refresh(platillo)
        return platillo

    return _make


@pytest.fixture
def stock_of(db_session):
    """Cantidad disponible actual de un producto, leída de la base."""
    def _stock(producto_id):
        db_session.expire_all()
        row = db_session.exec(
            select(models.Inventario).where(models.Inventario.producto_id == producto_id)
        ).first()
        return row.cantidad_disponible if row else None

    return _stock
