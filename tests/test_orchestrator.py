"""
Orchestrator behaviour: asset fallback, crowd degradation, fan-out/fan-in.

Storage runs through the `StorageStub` transport; synthesis is replaced by a
recording fake so each built `ScenarioRequest` can be inspected.
"""

import asyncio
import logging
import threading

import pytest

from evacgen.assets.locator import AssetLocator
from evacgen.assets.uploader import AssetUploader
from evacgen.core.errors import EmptyResultError, NoFacilityAssetError, SynthesisError, UploadError
from evacgen.core.orchestrator import DEFAULT_PROMPT_A, DEFAULT_PROMPT_B, ScenarioOrchestrator
from evacgen.core.types import ScenarioOutcome
from evacgen.synthesis.service import ScenarioSynthesizer


class RecordingSynthesizer:
    def __init__(self, fail=None):
        self.calls = []
        self.fail = fail or {}

    async def synthesize(self, request, scenario_id):
        self.calls.append((scenario_id, request))
        await asyncio.sleep(0)
        if scenario_id in self.fail:
            raise self.fail[scenario_id]
        return ScenarioOutcome(scenario_id, {"url": f"https://cdn.test/scenario-{scenario_id}.png"})


class EmptyForPromptClient:
    """Queue client returning no images for one prompt."""

    def __init__(self, empty_prompt):
        self.empty_prompt = empty_prompt
        self.prompts = []

    async def subscribe(self, model_id, arguments, on_update=None):
        self.prompts.append(arguments["prompt"])
        if arguments["prompt"] == self.empty_prompt:
            return {"images": []}
        return {"images": [{"url": "https://cdn.test/ok.png"}]}


def _orchestrator(config, storage, synthesizer):
    return ScenarioOrchestrator(
        locator=AssetLocator(config.images_root),
        uploader=AssetUploader(config, transport=storage.transport),
        synthesizer=synthesizer,
    )


def test_facility_only_uses_single_reference_url(config, add_image, storage):
    add_image("facility", "lobby.png")
    synth = RecordingSynthesizer()

    result = asyncio.run(_orchestrator(config, storage, synth).generate_both())

    assert sorted(scenario for scenario, _ in synth.calls) == ["A", "B"]
    for _, request in synth.calls:
        assert request.reference_urls == ("https://cdn.test/lobby.png",)
        assert request.pedestrian_flow == 25
    prompts = {scenario: request.prompt for scenario, request in synth.calls}
    assert prompts == {"A": DEFAULT_PROMPT_A, "B": DEFAULT_PROMPT_B}

    assert result.outcome("A").url
    assert result.outcome("B").url
    assert result.facility_image == "lobby.png"
    assert result.crowd_image is None


def test_crowd_url_comes_first_and_flow_is_shared(config, add_image, storage):
    add_image("facility", "lobby.png")
    add_image("crowd", "atrium.jpg")
    synth = RecordingSynthesizer()

    result = asyncio.run(
        _orchestrator(config, storage, synth).generate_both(
            facility_image="lobby.png",
            crowd_image="atrium.jpg",
            pedestrian_flow=40,
        )
    )

    for _, request in synth.calls:
        assert request.reference_urls == ("https://cdn.test/atrium.jpg", "https://cdn.test/lobby.png")
        assert request.pedestrian_flow == 40
    assert result.crowd_image == "atrium.jpg"
    assert [name for name, _, _ in storage.uploads] == ["lobby.png", "atrium.jpg"]


def test_explicit_prompts_override_defaults(config, add_image, storage):
    add_image("facility", "lobby.png")
    synth = RecordingSynthesizer()

    asyncio.run(
        _orchestrator(config, storage, synth).generate_both(prompt_a="walk", prompt_b="run")
    )

    prompts = {scenario: request.prompt for scenario, request in synth.calls}
    assert prompts == {"A": "walk", "B": "run"}


def test_crowd_upload_failure_degrades_to_facility_only(config, add_image, storage):
    add_image("facility", "lobby.png")
    add_image("crowd", "atrium.jpg")
    storage.failing.add("atrium.jpg")
    synth = RecordingSynthesizer()

    result = asyncio.run(_orchestrator(config, storage, synth).generate_both())

    assert result.crowd_image is None
    for _, request in synth.calls:
        assert request.reference_urls == ("https://cdn.test/lobby.png",)


def test_missing_crowd_file_degrades(config, add_image, storage):
    add_image("facility", "lobby.png")
    synth = RecordingSynthesizer()

    result = asyncio.run(
        _orchestrator(config, storage, synth).generate_one("prompt", "C", crowd_image="ghost.jpg")
    )

    assert result.crowd_image is None
    assert synth.calls[0][1].reference_urls == ("https://cdn.test/lobby.png",)


def test_facility_upload_failure_is_terminal(config, add_image, storage):
    add_image("facility", "lobby.png")
    storage.failing.add("lobby.png")
    synth = RecordingSynthesizer()

    with pytest.raises(UploadError) as info:
        asyncio.run(_orchestrator(config, storage, synth).generate_both())

    assert info.value.category == "facility"
    assert synth.calls == []


@pytest.mark.parametrize("mode", ["both", "one"])
def test_no_facility_fails_before_remote_calls(config, add_image, storage, mode):
    add_image("crowd", "atrium.jpg")
    synth = RecordingSynthesizer()
    orchestrator = _orchestrator(config, storage, synth)

    with pytest.raises(NoFacilityAssetError):
        if mode == "both":
            asyncio.run(orchestrator.generate_both())
        else:
            asyncio.run(orchestrator.generate_one("prompt", "A"))

    assert storage.initiated == []
    assert storage.uploads == []
    assert synth.calls == []


def test_either_side_failing_fails_dual_mode(config, add_image, storage):
    add_image("facility", "lobby.png")
    synth = RecordingSynthesizer(fail={"A": SynthesisError("A", "queue down")})

    with pytest.raises(SynthesisError, match="Scenario A"):
        asyncio.run(_orchestrator(config, storage, synth).generate_both())

    assert sorted(scenario for scenario, _ in synth.calls) == ["A", "B"]


def test_empty_result_for_b_discards_a(config, add_image, storage):
    add_image("facility", "lobby.png")
    client = EmptyForPromptClient(empty_prompt=DEFAULT_PROMPT_B)
    synth = ScenarioSynthesizer(client, config.model_id)

    with pytest.raises(EmptyResultError, match="Scenario B"):
        asyncio.run(_orchestrator(config, storage, synth).generate_both())

    assert sorted(client.prompts) == sorted([DEFAULT_PROMPT_A, DEFAULT_PROMPT_B])


def test_single_mode_uses_label_and_non_numeric_flow_default(config, add_image, storage):
    add_image("facility", "lobby.png")
    add_image("crowd", "atrium.jpg")
    synth = RecordingSynthesizer()

    result = asyncio.run(
        _orchestrator(config, storage, synth).generate_one(
            "custom prompt", "Night", pedestrian_flow="lots"
        )
    )

    assert len(synth.calls) == 1
    scenario, request = synth.calls[0]
    assert scenario == "Night"
    assert request.prompt == "custom prompt"
    assert request.pedestrian_flow == 25
    assert request.reference_urls == ("https://cdn.test/atrium.jpg", "https://cdn.test/lobby.png")
    assert list(result.outcomes) == ["Night"]
    assert result.crowd_image == "atrium.jpg"


def test_single_mode_logs_full_state_sequence(config, add_image, storage, caplog):
    add_image("facility", "lobby.png")
    synth = RecordingSynthesizer()

    with caplog.at_level(logging.DEBUG, logger="evacgen.core.orchestrator"):
        asyncio.run(_orchestrator(config, storage, synth).generate_one("prompt", "A"))

    states = [
        record.getMessage().split()[0]
        for record in caplog.records
        if record.name == "evacgen.core.orchestrator"
    ]
    assert states[-3:] == ["state=synthesizing", "state=assembling", "state=done"]


def test_asset_reads_run_off_the_event_loop(config, add_image, storage):
    add_image("facility", "lobby.png")
    add_image("crowd", "atrium.jpg")
    read_threads = []

    class ThreadRecordingUploader(AssetUploader):
        def read_asset(self, category, filename):
            read_threads.append(threading.get_ident())
            return super().read_asset(category, filename)

    orchestrator = ScenarioOrchestrator(
        locator=AssetLocator(config.images_root),
        uploader=ThreadRecordingUploader(config, transport=storage.transport),
        synthesizer=RecordingSynthesizer(),
    )

    async def run():
        loop_thread = threading.get_ident()
        await orchestrator.generate_both()
        return loop_thread

    loop_thread = asyncio.run(run())

    assert len(read_threads) == 2
    assert loop_thread not in read_threads
