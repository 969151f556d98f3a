"""
Command-line entrypoint for the scenario generator.

Interface responsibilities:
- `serve`: run the HTTP API with uvicorn.
- `list`: print the facility and crowd collections.
- `pair`: generate Scenario A and Scenario B and print the result as JSON.
- `single`: generate one labelled scenario and print the result as JSON.

Error handling strategy:
- Generation failures print the `{error, details}` payload to stderr and
  exit with status 1.
- Queue status updates are printed to stderr while a job runs.
"""

import argparse
import asyncio
import json
import logging
import sys

import uvicorn

from evacgen.api.http_api import create_app
from evacgen.assets.locator import AssetLocator
from evacgen.config import load_config
from evacgen.core.errors import ScenarioGenerationError
from evacgen.core.orchestrator import ScenarioOrchestrator
from evacgen.core.types import AssetCategory
from evacgen.synthesis.events import StatusFeed


logger = logging.getLogger(__name__)


def _print_update(scenario_id, update):
    print(f"Scenario {scenario_id} update: {update.status}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="evacgen", description="Evacuation scenario generator")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)

    sub.add_parser("list", help="List local image collections")

    for name in ("pair", "single"):
        cmd = sub.add_parser(name, help=f"Generate {'both scenarios' if name == 'pair' else 'one scenario'}")
        cmd.add_argument("--facility", default=None, help="Facility filename")
        cmd.add_argument("--crowd", default=None, help="Crowd filename")
        cmd.add_argument("--flow", default=None, help="Pedestrian flow (persons/min/m)")
        if name == "pair":
            cmd.add_argument("--prompt-a", default=None)
            cmd.add_argument("--prompt-b", default=None)
        else:
            cmd.add_argument("--prompt", required=True)
            cmd.add_argument("--scenario", default="A")

    return parser


async def _generate(args, orchestrator: ScenarioOrchestrator) -> dict:
    if args.command == "pair":
        result = await orchestrator.generate_both(
            facility_image=args.facility,
            crowd_image=args.crowd,
            prompt_a=args.prompt_a,
            prompt_b=args.prompt_b,
            pedestrian_flow=args.flow,
        )
        return {
            "scenarioA": result.outcome("A").image,
            "scenarioB": result.outcome("B").image,
            "facilityImage": result.facility_image,
            "crowdImage": result.crowd_image,
        }

    result = await orchestrator.generate_one(
        prompt=args.prompt,
        scenario=args.scenario,
        facility_image=args.facility,
        crowd_image=args.crowd,
        pedestrian_flow=args.flow,
    )
    return {
        "image": result.outcome(args.scenario).image,
        "scenario": args.scenario,
        "facilityImage": result.facility_image,
        "crowdImage": result.crowd_image,
    }


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()

    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        uvicorn.run(create_app(config), host=args.host, port=args.port)
        return 0

    if args.command == "list":
        locator = AssetLocator(config.images_root)
        print("Facility:")
        for name in locator.list_assets(AssetCategory.FACILITY):
            print(f"  {name}")
        print("Crowd:")
        for name in locator.list_assets(AssetCategory.CROWD):
            print(f"  {name}")
        return 0

    feed = StatusFeed()
    feed.subscribe(_print_update)
    orchestrator = ScenarioOrchestrator.from_config(config, feed)

    try:
        payload = asyncio.run(_generate(args, orchestrator))
    except ScenarioGenerationError as exc:
        print(json.dumps(exc.to_payload(), indent=2), file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
