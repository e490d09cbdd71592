"""Nutrigen - nutrigenomics research pipeline

Simple CLI for running research queries.
"""

import argparse
import asyncio
import sys

from nutrigen.api.deps import build_orchestrator
from nutrigen.llm_client import MissingApiKeyError
from nutrigen.models.research import ResearchMode


async def run_research(query: str, mode: str | None = None, genotype_id: int | None = None) -> int:
    """Run research on the given query. Returns a process exit code."""
    print(f"Research query: {query}")
    print("-" * 50)

    try:
        orchestrator = build_orchestrator()
    except MissingApiKeyError as e:
        print(f"[!] {e}")
        return 2

    async for event in orchestrator.research(query, mode=mode, genotype_id=genotype_id):
        event_type = event.event.value
        data = event.data

        if event_type == "plan_created":
            steps = data.get("steps", [])
            print(f"\n[*] Research Plan ({len(steps)} aspects, {data.get('research_mode')}):")
            for i, step in enumerate(steps, 1):
                print(f"  {i}. {step}")

        elif event_type == "agent_started" and data.get("agent") == "analysis":
            print(f"  [~] Analyzing: {data.get('aspect')}")

        elif event_type == "agent_completed":
            marker = "+" if data.get("success") else "x"
            print(f"  [{marker}] {data.get('aspect')} (confianza {data.get('confidence', 0):.2f})")

        elif event_type == "synthesis_started":
            print(f"\n[+] Synthesizing report from {data.get('valid_results')} results...")

        elif event_type == "research_complete":
            print(f"\n\n[*] Research Complete!")
            print(f"   Runtime: {data.get('runtime_ms')}ms")
            print(f"   Evidence: {data.get('evidence_level')}")
            print(f"\n{'='*50}")
            print("REPORT:")
            print(f"{'='*50}")
            print(data.get("report", ""))
            recommendations = data.get("recommendations", [])
            if recommendations:
                print("\nRECOMMENDATIONS:")
                for i, rec in enumerate(recommendations, 1):
                    print(f"  {i}. {rec}")

        elif event_type == "error":
            print(f"\n[!] {data.get('message', 'Unknown error')}")
            return 1

    return 0


def main():
    parser = argparse.ArgumentParser(description="Nutrigen research pipeline")
    parser.add_argument("--query", "-q", required=True, help="Research query")
    parser.add_argument(
        "--mode",
        "-m",
        choices=[m.value for m in ResearchMode],
        help="Research mode (default: inferred from the query)",
    )
    parser.add_argument("--genotype", "-g", type=int, help="Genotype id (1-6) to personalize the research")

    args = parser.parse_args()

    sys.exit(asyncio.run(run_research(args.query, args.mode, args.genotype)))


if __name__ == "__main__":
    main()
