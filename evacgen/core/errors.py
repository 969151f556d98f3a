"""Failure taxonomy for scenario generation.

Every terminal failure surfaces to API callers as one `{error, details}`
payload. Crowd upload failures never reach this layer as exceptions; the
uploader reports them as a degraded outcome instead.
"""

from typing import Any, Dict


class ScenarioGenerationError(Exception):
    """Base class for errors returned to orchestration callers."""

    status_code = 500

    def __init__(self, message: str, code: str = "GENERATION_ERROR", details: str | None = None):
        super().__init__(message)
        self.code = code
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        """Convert the exception to the API error shape."""
        return {
            "error": str(self),
            "details": self.details or f"{type(self).__name__}: {self}",
        }


class NoFacilityAssetError(ScenarioGenerationError):
    """Raised when no facility backdrop can be resolved."""

    status_code = 400

    def __init__(self, message: str = "No image files found in facility folder"):
        super().__init__(message, code="NO_FACILITY_ASSET")


class UploadError(ScenarioGenerationError):
    """Raised when reading or transferring a local asset fails."""

    def __init__(self, category: str, filename: str, reason: str):
        super().__init__(
            f"Failed to upload {category} image '{filename}': {reason}",
            code="UPLOAD_ERROR",
            details=reason,
        )
        self.category = category
        self.filename = filename
        self.reason = reason


class SynthesisError(ScenarioGenerationError):
    """Raised when the synthesis service call fails."""

    def __init__(self, scenario_id: str, reason: str):
        super().__init__(
            f"Generation failed for Scenario {scenario_id}: {reason}",
            code="SYNTHESIS_ERROR",
            details=reason,
        )
        self.scenario_id = scenario_id


class EmptyResultError(ScenarioGenerationError):
    """Raised when the synthesis call succeeds without returning an image."""

    def __init__(self, scenario_id: str):
        super().__init__(
            f"No images generated for Scenario {scenario_id}",
            code="EMPTY_RESULT",
        )
        self.scenario_id = scenario_id
