from __future__ import annotations

from fastapi import FastAPI

from rasteredit.application.dtos.common_dto import HealthResponse, RootResponse
from rasteredit.infrastructure.api.middlewares import add_default_middlewares
from rasteredit.infrastructure.api.routes.history_routes import router as history_router
from rasteredit.infrastructure.api.routes.processing_routes import router as processing_router
from rasteredit.infrastructure.api.routes.session_routes import router as session_router
from rasteredit.infrastructure.logging_config import setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title="RasterEdit",
        version="0.1.0",
        description="""
        ## RasterEdit API

        Non-destructive raster image editing on NumPy pixel buffers (no OpenCV).
        Every edit is appended to a per-session timeline that supports undo, redo
        and jumping to any earlier state.

        ### Features
        - **Edit Sessions**: Upload an image, download the current state, close the session
        - **Filters**: Color adjustments and presets, convolution filters, median denoise,
          auto enhance, background removal and stylization
        - **Geometry**: Rotate, flip, resize and crop
        - **Remote Enhancement**: Upscale and face restoration through external providers,
          with a fallback chain across providers and credentials
        - **Export**: PNG, JPEG, WEBP, GIF, BMP, TIFF and ASCII art

        ### Error Responses
        - **400 Bad Request**: Undecodable image, invalid parameters or unknown operation
        - **404 Not Found**: Session does not exist
        - **413 Payload Too Large**: Upload exceeds the configured size limit
        - **422 Unprocessable Entity**: Validation error in request body
        - **503 Service Unavailable**: Every remote provider failed
        - **507 Insufficient Storage**: Working surface could not be allocated
        - **500 Internal Server Error**: Unexpected server error
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    add_default_middlewares(app)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the RasterEdit API",
        response_description="API information including status and version",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "rasteredit", "version": app.version}

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and healthy",
        response_description="Health status of the API service",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(session_router)
    app.include_router(processing_router)
    app.include_router(history_router)
    return app


app = create_app()
