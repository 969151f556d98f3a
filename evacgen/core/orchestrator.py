"""Scenario generation orchestration.

Control-flow model:
    1. Resolve facility (required) and crowd (optional) asset filenames.
    2. Upload the facility image; failure is terminal.
    3. Upload the crowd image when one was resolved; failure degrades the run
       to facility-only and nulls the reported crowd filename.
    4. Build one `ScenarioRequest` per scenario. The reference list is
       `[crowd_url, facility_url]` or `[facility_url]`.
    5. Synthesize. Dual mode runs A and B concurrently and publishes results
       only when both succeed; the first failure fails the call without
       cancelling the sibling request.

Error handling strategy:
    Terminal failures propagate as `ScenarioGenerationError` subclasses. The
    orchestrator never returns a partial result.

Side effects:
    Uploads to remote storage and starts remote synthesis jobs. No local state
    is kept between calls.
"""

import asyncio
import logging

from evacgen.assets.locator import AssetLocator
from evacgen.assets.uploader import AssetUploader, Degraded
from evacgen.config import ServiceConfig
from evacgen.core.errors import ScenarioGenerationError
from evacgen.core.types import (
    AssetCategory,
    OrchestrationResult,
    OrchestrationState,
    ScenarioRequest,
    normalize_flow,
)
from evacgen.synthesis.client import FalQueueClient
from evacgen.synthesis.events import StatusFeed
from evacgen.synthesis.service import ScenarioSynthesizer


logger = logging.getLogger(__name__)

DEFAULT_PROMPT_A = (
    "Show the crowd of people calmly exiting the facility through the main exit, "
    "photorealistic with natural lighting and full color"
)
DEFAULT_PROMPT_B = (
    "Show the crowd of people quickly evacuating the facility through emergency exits, "
    "photorealistic with natural lighting and full color"
)


class ScenarioOrchestrator:
    """Compose asset resolution, upload, and synthesis into one call."""

    def __init__(
        self,
        locator: AssetLocator,
        uploader: AssetUploader,
        synthesizer: ScenarioSynthesizer,
    ) -> None:
        self.locator = locator
        self.uploader = uploader
        self.synthesizer = synthesizer

    @classmethod
    def from_config(cls, config: ServiceConfig, feed: StatusFeed | None = None) -> "ScenarioOrchestrator":
        """Wire the default locator, uploader, and synthesizer for `config`."""
        return cls(
            locator=AssetLocator(config.images_root),
            uploader=AssetUploader(config),
            synthesizer=ScenarioSynthesizer(FalQueueClient(config), config.model_id, feed),
        )

    async def generate_both(
        self,
        facility_image: str | None = None,
        crowd_image: str | None = None,
        prompt_a: str | None = None,
        prompt_b: str | None = None,
        pedestrian_flow=None,
    ) -> OrchestrationResult:
        """Generate Scenario A (calm egress) and Scenario B (rapid egress)."""
        try:
            facility, crowd, urls = await self._prepare(facility_image, crowd_image)
            flow = normalize_flow(pedestrian_flow)
            request_a = ScenarioRequest(prompt_a or DEFAULT_PROMPT_A, urls, flow)
            request_b = ScenarioRequest(prompt_b or DEFAULT_PROMPT_B, urls, flow)

            self._enter(OrchestrationState.SYNTHESIZING, "A+B flow=%s", flow)
            outcome_a, outcome_b = await asyncio.gather(
                self.synthesizer.synthesize(request_a, "A"),
                self.synthesizer.synthesize(request_b, "B"),
            )
        except ScenarioGenerationError as exc:
            self._enter(OrchestrationState.FAILED, "%s", exc)
            raise

        self._enter(OrchestrationState.ASSEMBLING, "A+B")
        result = OrchestrationResult(
            outcomes={"A": outcome_a, "B": outcome_b},
            facility_image=facility,
            crowd_image=crowd,
        )
        self._enter(OrchestrationState.DONE, "A+B")
        return result

    async def generate_one(
        self,
        prompt: str,
        scenario: str,
        facility_image: str | None = None,
        crowd_image: str | None = None,
        pedestrian_flow=None,
    ) -> OrchestrationResult:
        """Generate a single caller-labelled scenario."""
        try:
            facility, crowd, urls = await self._prepare(facility_image, crowd_image)
            flow = normalize_flow(pedestrian_flow)
            request = ScenarioRequest(prompt, urls, flow)

            self._enter(OrchestrationState.SYNTHESIZING, "%s flow=%s", scenario, flow)
            outcome = await self.synthesizer.synthesize(request, scenario)
        except ScenarioGenerationError as exc:
            self._enter(OrchestrationState.FAILED, "%s", exc)
            raise

        self._enter(OrchestrationState.ASSEMBLING, "%s", scenario)
        self._enter(OrchestrationState.DONE, "%s", scenario)
        return OrchestrationResult(
            outcomes={scenario: outcome},
            facility_image=facility,
            crowd_image=crowd,
        )

    async def _prepare(
        self,
        facility_image: str | None,
        crowd_image: str | None,
    ) -> tuple[str, str | None, tuple[str, ...]]:
        """Resolve and upload assets.

        Returns:
            `(facility_filename, crowd_filename_or_None, reference_urls)`.
        """
        self._enter(OrchestrationState.RESOLVING_ASSETS)
        resolved = await asyncio.to_thread(self.locator.resolve, facility_image, crowd_image)

        self._enter(OrchestrationState.UPLOADING_FACILITY, "%r", resolved.facility)
        facility_remote = await self.uploader.upload_file(AssetCategory.FACILITY, resolved.facility)
        urls = [facility_remote.url]

        crowd = resolved.crowd
        if crowd:
            self._enter(OrchestrationState.UPLOADING_CROWD, "%r", crowd)
            outcome = await self.uploader.try_upload(AssetCategory.CROWD, crowd)
            if isinstance(outcome, Degraded):
                crowd = None
            else:
                urls.insert(0, outcome.remote.url)

        if not crowd:
            self._enter(OrchestrationState.CROWD_SKIPPED)

        return resolved.facility, crowd, tuple(urls)

    @staticmethod
    def _enter(state: OrchestrationState, detail: str = "", *args) -> None:
        if detail:
            logger.debug("state=%s " + detail, state.value, *args)
        else:
            logger.debug("state=%s", state.value)
