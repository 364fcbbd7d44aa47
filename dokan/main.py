import asyncio
import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from dokan import models
from dokan.config import IS_PRODUCTION, LOG_LEVEL, UPLOAD_DIR, missing_production_secrets
from dokan.database import Base, SessionLocal, engine
from dokan.security import configure_security
from dokan.services import routers

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Electronics", "Phones, laptops and gadgets"),
    ("Fashion", "Clothing, shoes and accessories"),
    ("Home & Garden", "Furniture, decor and garden supplies"),
    ("Sports & Outdoors", "Equipment for sports and outdoor activities"),
]


def configure_logging():
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def seed_categories():
    db = SessionLocal()
    try:
        if db.query(models.Category).count() == 0:
            for name, description in DEFAULT_CATEGORIES:
                db.add(models.Category(name=name, description=description))
            db.commit()
            logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))
    finally:
        db.close()


# --- ERROR HANDLERS ---
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"path": [str(p) for p in err.get("loc", ())[1:]], "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(jsonable_encoder({"message": "Validation error", "errors": errors}), status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


def create_app(sleep=asyncio.sleep):
    configure_logging()
    if IS_PRODUCTION:
        missing = missing_production_secrets()
        if missing:
            raise RuntimeError(f"Missing required production settings: {', '.join(missing)}")

    Base.metadata.create_all(bind=engine)
    seed_categories()

    app = FastAPI(title="Dokan Marketplace")
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    configure_security(app, sleep=sleep)
    for router in routers:
        app.include_router(router)

    os.makedirs(UPLOAD_DIR, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")
    return app


app = create_app()
