"""Scenario synthesis adapter used by the orchestrator.

Role in pipeline:
    - Receives one `ScenarioRequest` per scenario.
    - Runs the queue job and publishes its status updates to the feed.
    - Returns the first generated image as the scenario outcome.

Error handling strategy:
    - Queue/transport failures -> `SynthesisError`.
    - Successful job without images -> `EmptyResultError`.
"""

import logging

import httpx

from evacgen.core.errors import EmptyResultError, SynthesisError
from evacgen.core.types import ScenarioOutcome, ScenarioRequest
from evacgen.synthesis.client import FalQueueClient
from evacgen.synthesis.events import QueueUpdate, StatusFeed


logger = logging.getLogger(__name__)


class ScenarioSynthesizer:
    """Turn scenario requests into generated images."""

    def __init__(
        self,
        client: FalQueueClient,
        model_id: str,
        feed: StatusFeed | None = None,
    ) -> None:
        self.client = client
        self.model_id = model_id
        self.feed = feed or StatusFeed()

    async def synthesize(self, request: ScenarioRequest, scenario_id: str) -> ScenarioOutcome:
        """Generate one scenario image.

        Raises:
            SynthesisError: The queue call failed.
            EmptyResultError: The call succeeded but returned no image.
        """

        def on_update(update: QueueUpdate) -> None:
            logger.debug("Scenario %s update: %s", scenario_id, update.status)
            self.feed.publish(scenario_id, update)

        logger.info(
            "Calling %s for Scenario %s with %d reference image(s)",
            self.model_id,
            scenario_id,
            len(request.reference_urls),
        )

        try:
            data = await self.client.subscribe(self.model_id, request.to_input(), on_update=on_update)
        except httpx.HTTPStatusError as exc:
            raise SynthesisError(
                scenario_id, f"HTTP {exc.response.status_code}: {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, RuntimeError, ValueError) as exc:
            raise SynthesisError(scenario_id, str(exc) or type(exc).__name__) from exc

        images = data.get("images")
        if not isinstance(images, list) or not images:
            logger.error("Scenario %s returned no images", scenario_id)
            raise EmptyResultError(scenario_id)

        image = images[0]
        if isinstance(image, str):
            image = {"url": image}
        if not isinstance(image, dict) or not image.get("url"):
            raise EmptyResultError(scenario_id)

        logger.info("Scenario %s complete: %s", scenario_id, image["url"])
        return ScenarioOutcome(scenario_id=scenario_id, image=dict(image))
