#!/usr/bin/env python3
"""
Run the math tutor pipeline from the command line.

  python scripts/analyze_problem.py --image poza.jpg
  python scripts/analyze_problem.py --text "Rezolvați ecuația x^2 - 5x + 6 = 0" --hints 2

Without GOOGLE_AI_API_KEY the analysis is the stubbed one and OCR reports an error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict

# Add project root to python path to allow imports
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from math_tutor.services.tutor import (  # noqa: E402
    analyze_problem,
    extract_problem_from_image,
    start_hint_session,
)
from math_tutor.utils.errors import MathTutorError, error_payload_for_exception  # noqa: E402
from math_tutor.utils.logging_setup import configure_logging  # noqa: E402
from math_tutor.utils.metrics import render_prometheus  # noqa: E402
from math_tutor.utils.settings import get_settings  # noqa: E402


async def _run(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    problem_text = args.text

    if args.image:
        image_bytes = Path(args.image).read_bytes()
        extraction = await extract_problem_from_image(image_bytes, args.mime)
        out["ocr"] = extraction.to_wire()
        if not problem_text:
            problem_text = extraction.normalized.cleaned_text

    if problem_text:
        analysis = await analyze_problem(problem_text)
        out["analysis"] = analysis.to_wire()

        if args.hints > 0:
            session = start_hint_session(problem_text)
            hints = []
            for _ in range(args.hints):
                if session.is_exhausted:
                    break
                record = await session.request_next()
                hints.append(record.to_wire())
            out["hints"] = hints
            out["hintState"] = session.state.value

    return out


def main() -> int:
    parser = argparse.ArgumentParser(description="OCR cleanup + pedagogical analysis for one problem.")
    parser.add_argument("--image", help="Path to a photo of the problem.")
    parser.add_argument("--mime", default=None, help="Declared image MIME type (sniffed if omitted).")
    parser.add_argument("--text", default=None, help="Problem text (skips OCR for the analysis).")
    parser.add_argument("--hints", type=int, default=0, help="Number of progressive hints to reveal.")
    parser.add_argument(
        "--metrics", action="store_true", help="Print Prometheus metrics to stderr after the run."
    )
    args = parser.parse_args()

    if not args.image and not args.text:
        parser.print_usage(sys.stderr)
        print("error: one of --image/--text is required", file=sys.stderr)
        return 2

    configure_logging(get_settings())

    try:
        out = asyncio.run(_run(args))
    except MathTutorError as e:
        print(json.dumps(error_payload_for_exception(e), ensure_ascii=False, indent=2))
        return 1
    finally:
        if args.metrics:
            print(render_prometheus(), end="", file=sys.stderr)
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
