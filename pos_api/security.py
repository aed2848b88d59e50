import logging

from passlib.context import CryptContext

logger = logging.getLogger("pos-api.security")

MIN_PASSWORD_LENGTH = 6

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def is_hashed_password(stored: str) -> bool:
    # los hashes bcrypt empiezan con $2a$ / $2b$ / $2y$
    return bool(stored) and stored.startswith("$2")


def verify_password(plain: str, stored: str) -> bool:
    """
    Compara la contraseña recibida con la guardada. Las cuentas creadas antes
    del hashing conservan la clave en texto plano y se comparan directamente.
    """
    if not stored:
        return False
    if is_hashed_password(stored):
        try:
            return pwd_context.verify(plain, stored)
        except ValueError:
            logger.warning("hash de contraseña con formato inválido")
            return False
    return plain == stored


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)
