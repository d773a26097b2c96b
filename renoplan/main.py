import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from renoplan.api.routes import cache, router as api_router
from renoplan.config.settings import get_settings
from renoplan.utils.logging_config import setup_logging


# Setup logging
logger = setup_logging()
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    description="Renovation scheduling: critical path, dependency analysis and Monte Carlo risk forecasts",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Simulation: {settings.default_trials} trials by default, {settings.simulation_workers} workers")
    logger.info(f"Leveling solver: {settings.leveling_solver}, OR-Tools time limit: {settings.ortools_time_limit_seconds}s")
    if settings.cache_enabled:
        logger.info(f"Simulation cache enabled (redis reachable: {cache.health_check()})")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.app_name}...")

app.include_router(api_router, prefix="/api/v1", tags=["scheduling"])


@app.get("/health", tags=["health"])
def health_check():
    """Health check endpoint for monitoring and load balancers."""
    return {"status": "ok", "app": settings.app_name, "version": "1.0.0"}


def run():
    """Serve the app with uvicorn; installed as the `renoplan` command."""
    uvicorn.run("renoplan.main:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    run()
