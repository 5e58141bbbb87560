#!/usr/bin/env python3
"""Run a Markov cohort model defined in YAML.

Writes state probabilities and outcomes per (sample, strategy, stratum) as
CSV files, and prints mean outcomes by strategy.

Usage:
    python scripts/run_cohort_model.py --model examples/three_state_model.yaml
    python scripts/run_cohort_model.py --model model.yaml --method riemann_right --n-jobs 4
    python scripts/run_cohort_model.py --model model.yaml --output results/ --no-stateprobs
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cohortsim import load_model
from cohortsim.config import QUADRATURE_METHODS
from cohortsim.exceptions import CohortSimError

logger = logging.getLogger("cohortsim")


def configure_logging(verbose: bool) -> None:
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if logger.handlers:
        return
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)


def main():
    parser = argparse.ArgumentParser(description="Run a Markov cohort model")
    parser.add_argument("--model", type=str, required=True, help="YAML model file")
    parser.add_argument(
        "--method",
        choices=QUADRATURE_METHODS,
        help="Quadrature method (default: the model's settings.method)",
    )
    parser.add_argument("--n-jobs", type=int, default=None, help="Worker processes")
    parser.add_argument("--output", type=str, default="results", help="Output directory")
    parser.add_argument("--no-stateprobs", action="store_true", help="Skip the state probability table")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    configure_logging(args.verbose)

    try:
        model = load_model(args.model)
        logger.info(f"Loaded {model}")
        results = model.run(
            method=args.method,
            n_jobs=args.n_jobs,
            keep_stateprobs=not args.no_stateprobs,
        )
    except CohortSimError as e:
        logger.error(f"{type(e).__name__}: {e.message}")
        sys.exit(1)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    results.outcomes.to_csv(output_dir / "outcomes.csv", index=False)
    if not args.no_stateprobs:
        results.stateprobs.to_csv(output_dir / "stateprobs.csv", index=False)
    logger.info(f"Results saved to {output_dir}")

    print(results.summarize().to_string(index=False))
    return results


if __name__ == "__main__":
    main()
