"""Data contracts shared by the orchestrator and its collaborators.

Architectural role:
    Defines the call-scoped values passed between asset resolution, upload,
    synthesis, and API response shaping. Nothing here is persisted or shared
    across orchestration calls.

Determinism:
    The data classes are purely structural. `normalize_flow` is deterministic
    for a given input.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


DEFAULT_PEDESTRIAN_FLOW = 25


class AssetCategory(str, Enum):
    """Local asset collections."""

    FACILITY = "facility"
    CROWD = "crowd"


class OrchestrationState(str, Enum):
    """Progress markers logged by the orchestrator."""

    RESOLVING_ASSETS = "resolving_assets"
    UPLOADING_FACILITY = "uploading_facility"
    UPLOADING_CROWD = "uploading_crowd"
    CROWD_SKIPPED = "crowd_skipped"
    SYNTHESIZING = "synthesizing"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ImageAsset:
    """Bytes of one local asset plus the media type inferred from its name."""

    category: AssetCategory
    filename: str
    media_type: str
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class RemoteAsset:
    """Durable storage URL for an uploaded asset."""

    url: str


@dataclass(frozen=True)
class ResolvedAssets:
    """Filenames chosen by the asset locator."""

    facility: str
    crowd: str | None = None


@dataclass(frozen=True)
class ScenarioRequest:
    """Input for one synthesis call.

    Attributes:
        prompt: Scenario-specific generation prompt.
        reference_urls: Crowd URL first when present, then the facility URL.
        pedestrian_flow: Persons/min per unit width forwarded to the model.
    """

    prompt: str
    reference_urls: tuple[str, ...]
    pedestrian_flow: float = DEFAULT_PEDESTRIAN_FLOW

    def __post_init__(self) -> None:
        if not self.reference_urls:
            raise ValueError("ScenarioRequest needs at least the facility URL")

    def to_input(self) -> dict[str, Any]:
        """Return the synthesis model input payload."""
        return {
            "prompt": self.prompt,
            "image_urls": list(self.reference_urls),
            "pedestrian_flow": self.pedestrian_flow,
        }


@dataclass(frozen=True)
class ScenarioOutcome:
    """First image produced for a scenario."""

    scenario_id: str
    image: dict[str, Any]

    @property
    def url(self) -> str:
        return str(self.image.get("url", ""))


@dataclass(frozen=True)
class OrchestrationResult:
    """Outcomes of one orchestration call and the assets actually used."""

    outcomes: dict[str, ScenarioOutcome]
    facility_image: str
    crowd_image: str | None = None

    def outcome(self, scenario_id: str) -> ScenarioOutcome:
        return self.outcomes[scenario_id]


def normalize_flow(value: Any) -> float:
    """Resolve a caller-supplied pedestrian flow.

    Numbers and numeric strings are kept (integral values stay `int`).
    Missing, boolean, non-finite, out-of-range, or non-numeric input falls back to
    `DEFAULT_PEDESTRIAN_FLOW`.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_PEDESTRIAN_FLOW

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return DEFAULT_PEDESTRIAN_FLOW
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return DEFAULT_PEDESTRIAN_FLOW
    else:
        return DEFAULT_PEDESTRIAN_FLOW

    if not math.isfinite(number):
        return DEFAULT_PEDESTRIAN_FLOW
    if number.is_integer():
        return int(number)
    return number
