"""
HTTP API adapter for the scenario generator.

Architectural role:
- Expose the dual-scenario and single-scenario generation endpoints.
- Expose local asset listing, serving, and upload for operator tooling.
- Delegate generation work to `evacgen.core.orchestrator.ScenarioOrchestrator`.
- Normalize orchestration output and failures to JSON response contracts.

Endpoint responsibilities:
- `POST /api/edit-image`: generate Scenario A and Scenario B.
- `POST /api/generate-single`: generate one caller-labelled scenario.
- `GET /api/images`: list facility and crowd collections.
- `GET /api/image/{type}/{filename}`: serve one collection file.
- `POST /api/upload`: store a multipart file in a collection.

Error handling strategy:
- Wrong HTTP method -> 405 `{"error": "Method not allowed"}`.
- Invalid request bodies -> 400 `{"error", "details"}`.
- `ScenarioGenerationError` -> its status code with `{"error", "details"}`.
- Unexpected exceptions are logged and returned as 500 `{"error", "details"}`.

Side effects:
- Reads and writes the local asset collections.
- Uploads assets and starts remote synthesis jobs through the orchestrator.
"""

import logging
import os
import shutil
import time
from typing import Any

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from evacgen.assets.locator import AssetLocator
from evacgen.assets.uploader import get_mime_type
from evacgen.config import ServiceConfig, load_config
from evacgen.core.errors import ScenarioGenerationError
from evacgen.core.orchestrator import ScenarioOrchestrator
from evacgen.core.types import AssetCategory


logger = logging.getLogger(__name__)

VALID_TYPES = {category.value for category in AssetCategory}


# ============================================================
# Request Schemas
# ============================================================

class PairRequest(BaseModel):
    """Body of `POST /api/edit-image`. All fields are optional."""
    facilityImage: str | None = None
    crowdImage: str | None = None
    promptA: str | None = None
    promptB: str | None = None
    # Non-numeric values fall back to the default flow instead of failing validation.
    pedestrianFlow: Any = None


class SingleRequest(BaseModel):
    """Body of `POST /api/generate-single`."""
    prompt: str
    scenario: str
    facilityImage: str | None = None
    crowdImage: str | None = None
    pedestrianFlow: Any = None


def _error(status_code: int, message: str, details: str | None = None) -> JSONResponse:
    content = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _failure(exc: Exception, route: str) -> JSONResponse:
    """Map an orchestration failure to the API error shape."""
    if isinstance(exc, ScenarioGenerationError):
        logger.error("[%s] %s", route, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    logger.exception("[%s] Unexpected failure", route)
    return _error(500, str(exc) or type(exc).__name__, f"{type(exc).__name__}: {exc}")


# ============================================================
# App Factory
# ============================================================

def create_app(
    config: ServiceConfig | None = None,
    orchestrator: ScenarioOrchestrator | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        config: Service configuration; loaded from the environment when omitted.
        orchestrator: Pre-wired orchestrator; built from `config` when omitted.
    """
    config = config or load_config()
    orchestrator = orchestrator or ScenarioOrchestrator.from_config(config)
    locator = AssetLocator(config.images_root)
    locator.ensure_collections()

    app = FastAPI(title="Evacuation Scenario Generator")
    app.state.config = config
    app.state.orchestrator = orchestrator

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return _error(405, "Method not allowed")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return _error(400, "Invalid request body", str(exc.errors()))

    # ========================================================
    # Generation
    # ========================================================

    @app.post("/api/edit-image")
    async def generate_pair(body: PairRequest):
        """Generate both evacuation scenarios concurrently."""
        if config.debug:
            logger.info(
                "[edit-image] facility=%r crowd=%r flow=%r promptA=%r promptB=%r",
                body.facilityImage,
                body.crowdImage,
                body.pedestrianFlow,
                body.promptA,
                body.promptB,
            )

        try:
            result = await orchestrator.generate_both(
                facility_image=body.facilityImage,
                crowd_image=body.crowdImage,
                prompt_a=body.promptA,
                prompt_b=body.promptB,
                pedestrian_flow=body.pedestrianFlow,
            )
        except Exception as exc:
            return _failure(exc, "edit-image")

        return {
            "success": True,
            "scenarioA": result.outcome("A").image,
            "scenarioB": result.outcome("B").image,
            "facilityImage": result.facility_image,
            "crowdImage": result.crowd_image,
        }

    @app.post("/api/generate-single")
    async def generate_single(body: SingleRequest):
        """Generate one scenario with the caller's prompt and label."""
        if config.debug:
            logger.info(
                "[generate-single] scenario=%r facility=%r crowd=%r flow=%r prompt=%r",
                body.scenario,
                body.facilityImage,
                body.crowdImage,
                body.pedestrianFlow,
                body.prompt,
            )

        try:
            result = await orchestrator.generate_one(
                prompt=body.prompt,
                scenario=body.scenario,
                facility_image=body.facilityImage,
                crowd_image=body.crowdImage,
                pedestrian_flow=body.pedestrianFlow,
            )
        except Exception as exc:
            return _failure(exc, "generate-single")

        return {
            "success": True,
            "image": result.outcome(body.scenario).image,
            "scenario": body.scenario,
            "facilityImage": result.facility_image,
            "crowdImage": result.crowd_image,
        }

    # ========================================================
    # Local Assets
    # ========================================================

    @app.get("/api/images")
    def list_images():
        """List selectable files in both collections."""
        return {
            "crowd": locator.list_assets(AssetCategory.CROWD),
            "facility": locator.list_assets(AssetCategory.FACILITY),
        }

    @app.get("/api/image/{type}/{filename}")
    def serve_image(type: str, filename: str):
        """Stream one collection file with a long-lived cache header."""
        if type not in VALID_TYPES:
            return _error(400, "Invalid type")

        path = os.path.join(locator.collection_dir(AssetCategory(type)), filename)
        if os.path.basename(filename) != filename or not os.path.isfile(path):
            return _error(404, "Image not found")

        return FileResponse(
            path,
            media_type=get_mime_type(filename),
            headers={"Cache-Control": "public, max-age=31536000, immutable"},
        )

    @app.post("/api/upload")
    def upload_image(file: UploadFile = File(...), type: str = Form(...)):
        """Store an uploaded file as `<epoch_ms>_<original name>`."""
        if type not in VALID_TYPES:
            return _error(400, 'Invalid type. Must be "crowd" or "facility"')

        original = os.path.basename(file.filename or "")
        if not original:
            return _error(400, "Missing file name")

        target_dir = locator.collection_dir(AssetCategory(type))
        os.makedirs(target_dir, exist_ok=True)
        file_name = f"{int(time.time() * 1000)}_{original}"

        try:
            with open(os.path.join(target_dir, file_name), "wb") as out:
                shutil.copyfileobj(file.file, out)
        except OSError as exc:
            logger.exception("[upload] Failed to store %r", file_name)
            return _error(500, str(exc))

        logger.info("[upload] Stored %s image %r", type, file_name)
        return {"success": True, "fileName": file_name, "type": type}

    return app
