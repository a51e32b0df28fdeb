#!/usr/bin/env python3
"""Analyze a bill image or PDF without the API or database."""
import asyncio
import json
import sys
from pathlib import Path

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from bill_clarifier.config import Settings
from bill_clarifier.errors import AnalysisInputError
from bill_clarifier.models.internal import AnalysisMode, AnalysisRequest
from bill_clarifier.pipeline import BillAnalysisPipeline
from bill_clarifier.utils.logging import setup_logging

USAGE = "Usage: python scripts/analyze_bill.py <bill-file> <monitored-kwh> [expected-kwh] [--full]"


async def main(bill_path: str, monitored: float, expected: float | None, mode: AnalysisMode) -> None:
    """Run one bill through the pipeline and print the headline figures."""
    path = Path(bill_path)
    if not path.exists():
        print(f"Error: File not found: {bill_path}")
        sys.exit(1)

    settings = Settings()
    setup_logging(settings.log_level, json_output=False)
    pipeline = BillAnalysisPipeline(settings)

    file_bytes = path.read_bytes()
    print(f"Analyzing: {path.name} ({len(file_bytes):,} bytes, {mode.value} mode)")
    print("-" * 50)

    try:
        outcome = await pipeline.analyze(AnalysisRequest(
            image_bytes=file_bytes,
            monitored_generation_kwh=monitored,
            expected_generation_kwh=expected,
            mode=mode,
        ))
    except AnalysisInputError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if outcome.pending:
        print("Extraction is still running; waiting for it to finish...")
        await pipeline.wait_for_background()
        print("Done. Persist runs through the API to retrieve background results.")
        return

    if not outcome.success:
        print(f"Error: {outcome.error}")
        sys.exit(1)

    m = outcome.metrics
    print(f"Total paid:          R$ {m.total_paid:.2f}")
    print(f"Minimum possible:    R$ {m.minimum_possible:.2f}")
    print(f"Uncompensated cost:  R$ {m.uncompensated_cost:.2f}")
    print(f"Generated / needed:  {m.generated:.1f} / {m.energy_still_needed:.1f} kWh")
    print(f"System status:       {m.system_status.value}")
    if m.expansion_modules:
        print(f"Expansion:           {m.expansion_kwp:.2f} kWp ({m.expansion_modules} modules)")
    print(f"Confidence:          {outcome.record.effective_confidence:.0f}")
    if outcome.flags:
        print(f"Flags: {', '.join(outcome.flags)}")
    for alert in outcome.alerts:
        print(f"  ! {alert}")
    if outcome.narrative is not None:
        print(f"\n{outcome.narrative.executive_summary}")

    # Save full result
    output_path = path.with_suffix(".analysis.json")
    output_path.write_text(json.dumps(outcome.model_dump(mode="json"), indent=2, ensure_ascii=False))
    print(f"\nFull result saved to: {output_path}")


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--full"]
    if len(args) < 2:
        print(USAGE)
        sys.exit(1)

    asyncio.run(main(
        args[0],
        float(args[1]),
        float(args[2]) if len(args) > 2 else None,
        AnalysisMode.FULL if "--full" in sys.argv else AnalysisMode.QUICK,
    ))
