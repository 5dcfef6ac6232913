import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from croppredict.config import settings
from croppredict.http import init_http, close_http
from croppredict.routers import estimate, history, suggest
from croppredict.services.history import drain_pending

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("croppredict")

# Single FastAPI instance
app = FastAPI(title="CropPredict", version="1.0.0",
              description="AI-powered crop yield and market value estimator.")

@app.on_event("startup")
async def startup_event():
    """Initialize the shared HTTP client used by the tools."""
    await init_http()

@app.on_event("shutdown")
async def shutdown_event():
    """Let in-flight history writes finish, then close the HTTP client."""
    await drain_pending()
    await close_http()

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(estimate.router)
app.include_router(history.router)
app.include_router(suggest.router)

@app.get("/")
async def root():
    return {"ok": True, "service": "CropPredict", "version": app.version}

@app.get("/health")
async def health():
    return {
        "ok": True,
        "model": settings.OPENAI_MODEL,
        "currency": settings.PRICE_CURRENCY,
        "price_unit": settings.PRICE_UNIT,
        "live_mandi_prices": bool(settings.DATA_GOV_IN_API_KEY),
        "live_weather": settings.WEATHER_LIVE,
    }
