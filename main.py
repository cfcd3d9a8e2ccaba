from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os

from database import Base, SessionLocal, engine
from errors import InvalidInput, VanishError
from link_store import LinkStore
from auth import optional_bearer
from reaper import start_scheduler
import schemas

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    scheduler = start_scheduler()
    yield
    if scheduler is not None:
        scheduler.shutdown()


app = FastAPI(
    title="Vanish API",
    description="Zero-knowledge self-destructing links",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def get_store() -> LinkStore:
    return LinkStore(SessionLocal)


# ─── Exception handlers ───────────────────────────────────────────────────────

@app.exception_handler(VanishError)
async def vanish_error_handler(request: Request, exc: VanishError):
    return JSONResponse(
        status_code=exc.status,
        content={"error": exc.code, "detail": exc.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return JSONResponse(
        status_code=InvalidInput.status,
        content={"error": InvalidInput.code, "detail": f"{field}: {first.get('msg', 'invalid')}"},
    )


# ─── Health ───────────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
def health():
    return {"status": "ok", "service": "Vanish", "version": VERSION}


# ─── Links ────────────────────────────────────────────────────────────────────

@app.post("/api/v1/links", response_model=schemas.CreateLinkResponse, tags=["Links"])
def create_link(
    req: schemas.CreateLinkRequest,
    store: LinkStore = Depends(get_store),
    subject: Optional[str] = Depends(optional_bearer),
):
    link_id = store.create(
        ciphertext=req.ciphertext,
        views=req.views,
        ttl_seconds=req.ttl_seconds,
        password_protected=req.password_protected,
    )
    if subject:
        logger.info(f"Link {link_id} created by {subject}")
    return schemas.CreateLinkResponse(
        id=link_id,
        views_left=req.views,
        expires_in=req.ttl_seconds,
        password_protected=req.password_protected,
    )


@app.post("/api/v1/links/{link_id}/consume", response_model=schemas.ConsumeResponse, tags=["Links"])
def consume_link(link_id: str, store: LinkStore = Depends(get_store)):
    consumed = store.consume(link_id)
    return schemas.ConsumeResponse(
        ciphertext=consumed.ciphertext,
        views_remaining=consumed.views_remaining,
        burned=consumed.burned,
        password_protected=consumed.password_protected,
    )


@app.get("/api/v1/links/{link_id}", response_model=schemas.LinkStatus, tags=["Links"])
def link_status(link_id: str, store: LinkStore = Depends(get_store)):
    link = store.fetch(link_id)
    return schemas.LinkStatus(
        id=link.id,
        views_remaining=link.views_remaining,
        views_total=link.views_total,
        created_at=link.created_at.isoformat() + "Z",
        expires_at=link.expires_at.isoformat() + "Z",
        password_protected=link.password_protected,
    )


@app.delete("/api/v1/links/{link_id}", response_model=schemas.DeleteResponse, tags=["Links"])
def delete_link(link_id: str, store: LinkStore = Depends(get_store)):
    store.delete(link_id)
    return schemas.DeleteResponse(success=True)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
