from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nutrigen.api.routes import cases, models, research
from nutrigen.config import settings
from nutrigen.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event(event_type="startup", message="Nutrigen API starting")
    yield
    log_service.log_event(event_type="shutdown", message="Nutrigen API stopping")


app = FastAPI(
    title="Nutrigen",
    description="Nutrigenomics research pipeline powered by Google Gemini",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(research.router)
app.include_router(cases.router)
app.include_router(models.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "nutrigen"}
