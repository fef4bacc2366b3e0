from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from .config import get_settings
from .exceptions import InvalidPathError, NotFoundError, OrchestratorError, RemoteCommandError
from .routers import files, hub, pods, terminal
from .services.pod_manager import get_pod_manager
from .services.pod_monitor import PodMonitor
from .services.subscription_hub import SubscriptionHub

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Pod Manager API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Error mapping
# ============================================================================

@app.exception_handler(InvalidPathError)
async def invalid_path_handler(request: Request, exc: InvalidPathError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RemoteCommandError)
async def remote_command_handler(request: Request, exc: RemoteCommandError):
    return JSONResponse(status_code=400, content={"detail": exc.stderr})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(OrchestratorError)
async def orchestrator_error_handler(request: Request, exc: OrchestratorError):
    # Kubernetes (or the exec channel) failed; the request itself was fine
    logger.error(f"Kubernetes error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


# ============================================================================
# Lifecycle
# ============================================================================

@app.on_event("startup")
async def startup():
    pod_manager = get_pod_manager()

    app.state.hub = SubscriptionHub(pod_manager)
    app.state.pod_monitor = PodMonitor(pod_manager, app.state.hub)
    app.state.pod_monitor.start()

    logger.info(f"Pod manager started - Namespace: {pod_manager.k8s.namespace}")


@app.on_event("shutdown")
async def shutdown():
    monitor = getattr(app.state, "pod_monitor", None)
    if monitor is not None:
        await monitor.stop()

    hub_instance = getattr(app.state, "hub", None)
    if hub_instance is not None:
        await hub_instance.close()

    logger.info("Pod manager stopped")


# ============================================================================
# Routes
# ============================================================================

app.include_router(pods.router, prefix="/api/pods", tags=["pods"])
app.include_router(files.router, prefix="/api/pods/{pod_name}/files", tags=["files"])
app.include_router(hub.router)
app.include_router(terminal.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "pod-manager"}
