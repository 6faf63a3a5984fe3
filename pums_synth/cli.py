"""
Command-line entry point for generating a synthetic PUMS population.

Usage (from project root):

    PUMS_SYNTH_API_KEY=... python -m pums_synth.cli --n 2000 --seed 1234

This script:
1) Fetches person microdata (or reads a raw dump with --raw-csv)
2) Normalizes, synthesizes adults and adds the insured flag
3) Writes pickle + CSV snapshots and a dataset manifest
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import PipelineConfig
from .errors import PumsSynthError
from .fetch import fetch_raw, read_raw_csv, save_raw_csv
from .pipeline import insured_rate_by, run_pipeline


# -------------------------------------------------------------------
# Arguments
# -------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a synthetic adult population")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--n", type=int, default=None, help="Number of synthetic rows")
    parser.add_argument("--min-age", type=int, default=None, help="Minimum age kept before fitting")
    parser.add_argument("--out-dir", type=Path, default=None, help="Output directory")
    parser.add_argument("--intercept", type=float, default=None, help="Insurance model intercept")
    parser.add_argument("--age-coef", type=float, default=None, help="Insurance model age coefficient")
    parser.add_argument("--sex-coef", type=float, default=None, help="Insurance model Female coefficient")
    parser.add_argument("--raw-csv", type=Path, default=None, help="Read a raw feed dump instead of fetching")
    parser.add_argument("--save-raw", type=Path, default=None, help="Dump the fetched raw feed here")
    return parser.parse_args(argv)


# -------------------------------------------------------------------
# Main entrypoint
# -------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        pipeline_config = PipelineConfig.from_env(
            seed=args.seed,
            n_synthetic=args.n,
            min_age=args.min_age,
            output_dir=args.out_dir,
            intercept=args.intercept,
            age_coef=args.age_coef,
            sex_coef=args.sex_coef,
        )

        if args.raw_csv is not None:
            print(f"▶ Reading raw feed from {args.raw_csv}...")
            raw = read_raw_csv(args.raw_csv, pipeline_config.fields)
        else:
            print(f"▶ Fetching person records from {pipeline_config.source_url}...")
            raw = fetch_raw(pipeline_config)
            if args.save_raw is not None:
                save_raw_csv(raw, args.save_raw)
                print(f"✔ Raw feed saved to {args.save_raw}")

        result = run_pipeline(pipeline_config, raw=raw)
    except PumsSynthError as error:
        print(f"✘ {type(error).__name__}: {error}", file=sys.stderr)
        return 1

    counts = result.row_counts()
    print(f"✔ {counts['clean']} records cleaned, {counts['synthetic']} synthetic adults drawn")
    print(f"✔ Data written to {pipeline_config.output_dir}")
    print(f"✔ Manifest path: {result.manifest_path}")

    # ---------------- Quick sanity ---------------- #

    print(f"ℹ Insured rate: {result.augmented['insured'].mean():.2%}")
    print("ℹ Insured rate by sex:")
    print(insured_rate_by(result.augmented, "sex").round(3).to_string())

    print("✅ Synthetic population complete")
    return 0


# -------------------------------------------------------------------
# CLI hook
# -------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
