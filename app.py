"""
Collaborative Slides Backend - Unified Application Entry Point
Mounts authentication, project, slide and collaboration routes under one FastAPI application
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database import SessionLocal, init_database
from services.auth import router as auth_router
from services.collaboration.app import router as collaboration_router
from services.collaboration.hub import CollaborationHub
from services.projects.app import router as projects_router
from services.slides.app import router as slides_router
from shared.utils import config, setup_logging

logger = setup_logging("collab-slides-backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    yield
    await app.state.collab_hub.reset()


app = FastAPI(
    title="Collaborative Slides Backend API",
    description="""
    Projects, slides and real-time collaborative editing.

    Live updates are delivered over the /ws/collab WebSocket.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Authentication",
            "description": "User registration, authentication and token management",
        },
        {
            "name": "Health",
            "description": "Service health and status endpoints",
        },
        {
            "name": "Projects",
            "description": "Shared presentation documents and membership - mounted at /projects",
        },
        {
            "name": "Slides",
            "description": "Slide CRUD and bulk import - mounted at /slides",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get("allowed_origins", ["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One collaboration instance per application; routes reach it via app.state
app.state.collab_hub = CollaborationHub(SessionLocal)

app.include_router(auth_router, tags=["Authentication"])
app.include_router(projects_router)
app.include_router(slides_router)
app.include_router(collaboration_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with service information and API navigation"""
    return {
        "service": "Collaborative Slides Backend API",
        "version": "1.0.0",
        "routes": {
            "projects": "/projects",
            "slides": "/slides",
            "collaboration_socket": "/ws/collab",
            "auth": {
                "token_endpoint": "/token",
                "register_endpoint": "/register",
            },
        },
        "documentation": {
            "swagger_ui": "/docs",
            "redoc": "/redoc",
            "openapi_json": "/openapi.json",
        },
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    hub: CollaborationHub = app.state.collab_hub
    return {
        "status": "healthy",
        "services": {
            "api_gateway": "operational",
            "collaboration": "operational",
        },
        "active_documents": len(hub.registry.active_documents()),
    }


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Collaborative Slides Backend on http://0.0.0.0:8000")
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
