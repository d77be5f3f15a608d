#!/usr/bin/env python3
"""Demo script to run scripted MultiBuild conversations locally.

This script:
1. Creates a workflow engine on an in-memory session store
2. Sends each scripted message of the chosen scenario
3. Prints every agent reply with its phase transitions

AI advisory runs only when GROQ_API_KEY is set; otherwise the static
fallback content is used.

Usage:
    cd functions
    python demo_pipeline.py --scenario pizza_oven
    python demo_pipeline.py --scenario all --output demo_output.json
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List

import structlog

from agents.pizzaoven_agents import run_demo
from agents.workflow_engine import WorkflowEngine
from services.session_store import InMemorySessionStore
from utils.agent_logger import configure_logging

logger = structlog.get_logger()

SCENARIOS: Dict[str, List[str]] = {
    "pizza_oven": [
        "I want to build a pizza oven 1.2m x 1.2m, I'm a beginner",
        "Show me cheaper alternatives",
        "What safety measures do I need?",
        "How long will it take?",
    ],
    "clarification": [
        "I'd like to build something for my garden",
        "A garden wall",
        "4m long, 1m high and 0.3m wide",
        "intermediate",
    ],
    "garden_wall": [
        "Build a garden wall 6m x 0.3m x 1.5m with a budget of 800 euros",
        "How can I reduce the cost?",
        "Any tips to improve the build?",
        "Actually, new project: a fire pit 1m diameter",
    ],
}


async def run_scenario(name: str, messages: List[str]) -> Dict[str, Any]:
    """Send ``messages`` to a fresh session and collect the replies."""
    print("\n" + "=" * 80)
    print(f"🧱 MultiBuild Demo - {name}")
    print("=" * 80)

    engine = await WorkflowEngine.create(store=InMemorySessionStore())
    turns = []
    for message in messages:
        response = await engine.process_message(message)
        print(f"\n👤 {message}")
        print(f"🤖 [{response.agent} | {response.phase}]")
        print(response.message)
        if response.suggestions:
            print(f"   Suggestions: {', '.join(response.suggestions)}")
        turns.append({
            "message": message,
            "response": response.model_dump(mode="json", by_alias=True),
        })

    info = engine.get_session_info()
    print("\n" + "-" * 60)
    print(f"Session:   {info.session_id}")
    print(f"Phase:     {info.phase}")
    print(f"Messages:  {info.message_count}")
    print(f"Blueprint: {'yes' if info.has_blueprint else 'no'}")
    print("-" * 60)
    return {"session": info.model_dump(by_alias=True), "turns": turns}


def run_configurator() -> Dict[str, Any]:
    """Print the pizza oven shopping list for each quality tier."""
    print("\n" + "=" * 80)
    print("🍕 Pizza Oven Configurator")
    print("=" * 80)
    results = {}
    for quality in ("günstig", "schnell", "premium"):
        shopping_list = run_demo({"area_sqm": 1.8, "quality_option": quality})
        print(f"{quality:10} €{shopping_list.total_cost:8.2f}  {shopping_list.estimated_build_time}")
        results[quality] = shopping_list.model_dump(mode="json")
    return results


async def run_all(selected: List[str]) -> Dict[str, Any]:
    results = {}
    for name in selected:
        if name == "configurator":
            results[name] = run_configurator()
        else:
            results[name] = await run_scenario(name, SCENARIOS[name])
    return results


def main() -> int:
    choices = sorted(SCENARIOS) + ["configurator", "all"]
    parser = argparse.ArgumentParser(description="Run scripted MultiBuild conversations")
    parser.add_argument("--scenario", choices=choices, default="pizza_oven", help="Scenario to run")
    parser.add_argument("--output", required=False, help="Write all replies to this JSON file")
    parser.add_argument("--log-level", default="WARNING", help="structlog level (default: WARNING)")
    args = parser.parse_args()

    configure_logging(args.log_level)
    selected = choices[:-1] if args.scenario == "all" else [args.scenario]
    results = asyncio.run(run_all(selected))

    if args.output:
        output_path = Path(args.output)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(results, f, indent=2, default=str, ensure_ascii=False)
        print(f"\n💾 Output saved to: {output_path}")

    logger.info("demo_complete", scenarios=selected)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
