import logging

from sqlmodel import Session, select

from pos_api.database import engine
from pos_api.models import Categoria, Mesa

logger = logging.getLogger("pos-api.seed")

MOCK_CATEGORIAS = ["Abarrotes", "Bebidas", "Carnes", "Lácteos", "Verduras"]
MOCK_MESAS = 10


def seed():
    """Carga mesas y categorías de ejemplo si las tablas están vacías."""
    with Session(engine) as session:
        if not session.exec(select(Categoria)).first():
            for nombre in MOCK_CATEGORIAS:
                session.add(Categoria(nombre=nombre))
            logger.info("seed: %d categorías", len(MOCK_CATEGORIAS))
        if not session.exec(select(Mesa)).first():
            for numero in range(1, MOCK_MESAS + 1):
                session.add(Mesa(numero=str(numero), activa=True))
            logger.info("seed: %d mesas", MOCK_MESAS)
        session.commit()


if __name__ == "__main__":
    from pos_api.database import init_db

    init_db()
    seed()
