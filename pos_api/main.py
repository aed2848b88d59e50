import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from sqlalchemy.exc import SQLAlchemyError

from pos_api import seed, settings
from pos_api.database import init_db
from pos_api.errors import PosError
from pos_api.routers import auth, caja, inventory, mesas, orders, platillos

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("pos-api")


def _mask(v: str | None) -> str | None:
    if not v:
        return None
    s = str(v)
    return s if len(s) <= 6 else f"{s[:3]}...{s[-3:]}"


logger.info("ENV check: DATABASE_URL=%s FRONTEND_ORIGIN=%s PORT=%s",
            _mask(settings.DATABASE_URL), ",".join(settings.FRONTEND_ORIGINS), settings.PORT)

app = FastAPI(title="pos-restaurante API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(inventory.router)
app.include_router(platillos.router)
app.include_router(orders.router)
app.include_router(caja.router)
app.include_router(mesas.router)


# el frontend espera siempre {"ok": false, "message": ...} con HTTP 200
def _fail(message: str) -> JSONResponse:
    return JSONResponse(status_code=200, content={"ok": False, "message": message})


@app.exception_handler(PosError)
async def pos_error_handler(request: Request, exc: PosError):
    logger.debug("%s %s rechazado: %s", request.method, request.url.path, exc.message)
    return _fail(exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return _fail(f"Datos inválidos: {details}")


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("error de base de datos en %s %s", request.method, request.url.path)
    return _fail("Error de base de datos")


@app.on_event("startup")
def on_startup():
    init_db()
    if settings.SEED_ON_STARTUP:
        seed.seed()
    for route in app.routes:
        if isinstance(route, APIRoute):
            methods = ",".join(sorted(route.methods))
            logger.info("Route: %s  methods: %s", route.path, methods)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("pos_api.main:app", host="0.0.0.0", port=settings.PORT)
