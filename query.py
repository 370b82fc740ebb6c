#!/usr/bin/env python3
"""Ad hoc query runner for the Dough Calculator.

Run a calculation directly without starting the API server.

Usage:
    python query.py requests/neapolitan.json
    python query.py '{"style": "neapolitan", "doughBallCount": 4, ...}'
    python query.py --debug requests/neapolitan.json    # Show full JSON response
    python query.py --offline requests/neapolitan.json  # Deterministic recipe only, no model call
    python query.py --nocache requests/neapolitan.json  # Skip cache read and write

Features:
- Reads the request from a JSON file or an inline JSON string
- Renders weights, schedule and timeline as tables
- Debug mode to display the full JSON body
- Offline mode returns the defaulted analysis without an API key
"""

import asyncio
import json
import sys
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table

from doughcalc.engine.units import format_hours, format_weight
from doughcalc.models.models import RecipeRequest
from doughcalc.repair.pipeline import ResponseRepairPipeline
from doughcalc.service.factory import create_recipe_service
from doughcalc.service.recipe_service import RecipeService, assemble_response
from doughcalc.utils.config import config
from doughcalc.utils.errors import DoughServiceError
from doughcalc.utils.logger import logger

console = Console()


def load_request(source: str) -> RecipeRequest:
    """Parse a request from a file path or an inline JSON string."""
    text = source if source.lstrip().startswith("{") else Path(source).read_text(encoding="utf-8")
    return RecipeRequest.model_validate_json(text)


async def calculate(service: RecipeService, request: RecipeRequest, offline: bool, use_cache: bool) -> dict:
    if offline:
        plan = service.build_plan(request)
        return assemble_response(plan, ResponseRepairPipeline(plan).fallback().to_wire())
    outcome = await service.calculate(request, use_cache=use_cache)
    logger.info(f"Analysis source: {outcome.cache_status.value}")
    return outcome.body


def render(body: dict) -> None:
    weights = body["weights"]
    table = Table(title="Ingredients")
    table.add_column("Ingredient")
    table.add_column("Weight", justify="right")
    for label, key in (
        ("Flour", "flourWeight"),
        ("Water", "waterWeight"),
        ("Salt", "saltWeight"),
        ("Yeast", "yeastWeight"),
        ("Oil", "oilWeight"),
        ("Total", "totalWeight"),
    ):
        table.add_row(label, format_weight(weights[key]))
    console.print(table)

    schedule = Table(title=f"Schedule ({body['schedule']['fermentationClass']})")
    schedule.add_column("Phase")
    schedule.add_column("Duration", justify="right")
    schedule.add_column("Temperature")
    for phase in body["schedule"]["phases"]:
        schedule.add_row(phase["kind"], format_hours(phase["hours"]), phase["temperature"])
    console.print(schedule)

    timeline = Table(title="Timeline")
    timeline.add_column("Step")
    timeline.add_column("Time")
    timeline.add_column("Temperature")
    timeline.add_column("Description")
    for step in body["timeline"]:
        timeline.add_row(step["step"], step["time"], step["temperature"], step["description"])
    console.print(timeline)

    console.print(f"[bold]Flour:[/bold] {body['flourRecommendation']}")
    console.print(f"[bold]Analysis:[/bold] {body['technicalAnalysis']}")


def run_query(source: str, debug: bool = False, offline: bool = False, use_cache: bool = True) -> None:
    """Execute a single calculation and print the result.

    Args:
        source: Path to a request JSON file, or the JSON itself.
        debug: If True, display the full JSON response.
        offline: If True, skip the completion service entirely.
        use_cache: If False, bypass the analysis cache.
    """
    try:
        request = load_request(source)
        service = create_recipe_service(config)
        body = asyncio.run(calculate(service, request, offline, use_cache))

        console.print()
        if debug:
            console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]")
            console.print("[dim]" + "=" * 60 + "[/dim]")
            console.print_json(data=body)
            console.print("[dim]" + "=" * 60 + "[/dim]")
            console.print()
        render(body)

    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except PydanticValidationError as e:
        console.print(f"[red]✗ Invalid request: {e}[/red]")
        sys.exit(1)
    except DoughServiceError as e:
        console.print(f"[red]✗ {type(e).__name__}: {json.dumps(e.to_payload())}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    usage = 'Usage: python query.py [--debug] [--offline] [--nocache] <request.json | \'{"style": ...}\'>'
    if len(sys.argv) < 2:
        print(usage)
        sys.exit(1)

    debug_mode = False
    offline_mode = False
    use_cache = True
    argv_start = 1

    while argv_start < len(sys.argv) and sys.argv[argv_start].startswith("--"):
        flag = sys.argv[argv_start]
        if flag == "--debug":
            debug_mode = True
        elif flag == "--offline":
            offline_mode = True
        elif flag == "--nocache":
            use_cache = False
        else:
            print(f"Unknown flag: {flag}")
            sys.exit(1)
        argv_start += 1

    if argv_start >= len(sys.argv):
        print("Error: No request provided")
        print(usage)
        sys.exit(1)

    run_query(" ".join(sys.argv[argv_start:]), debug=debug_mode, offline=offline_mode, use_cache=use_cache)
