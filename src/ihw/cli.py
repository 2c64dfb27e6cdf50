"""CLI for ihw-py: run Independent Hypothesis Weighting on tables or simulations."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np
import pandas as pd

from ihw.config import Config
from ihw.core import ihw
from ihw.errors import IHWError
from ihw.simulation import simulate_pvalues
from ihw.stratify import CategoricalCovariate
from ihw.thresholds import multiple_testing


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=str, default=None)
    p.add_argument("--alpha", type=float, default=None)
    p.add_argument("--nbins", type=int, default=None)
    p.add_argument("--nfolds", type=int, default=None)
    p.add_argument("--adjustment", type=str, default=None, help="BH or Bonferroni")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument(
        "--null-proportion", action="store_true",
        help="Estimate the share of true nulls and run BH at alpha / pi0",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ihw-py",
        description="Independent Hypothesis Weighting: covariate-weighted multiple testing",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command")

    # simulate
    sim = sub.add_parser("simulate", help="Compare BH and IHW on simulated p-values")
    sim.add_argument("--n", type=int, default=None, help="Number of hypotheses")
    _add_common(sim)

    # run
    run = sub.add_parser("run", help="Run IHW on a CSV table")
    run.add_argument("--input", type=str, required=True)
    run.add_argument("--pvalue-col", type=str, default="pvalue")
    run.add_argument("--covariate-col", type=str, default="covariate")
    run.add_argument("--categorical", action="store_true", help="Treat the covariate as strata labels")
    run.add_argument(
        "--m-groups", type=str, default=None,
        help="CSV with columns 'stratum' and 'total' for filtered input",
    )
    run.add_argument("--output", type=str, default=None)
    _add_common(run)

    return parser


def _load_config(args: argparse.Namespace) -> Config:
    cfg = Config.load(Path(args.config)) if args.config else Config.load()
    if args.alpha is not None:
        cfg.ihw.alpha = args.alpha
    if args.nbins is not None:
        cfg.ihw.nbins = args.nbins
    if args.nfolds is not None:
        cfg.ihw.nfolds = args.nfolds
    if args.adjustment is not None:
        cfg.ihw.adjustment_type = args.adjustment
    if args.null_proportion:
        cfg.ihw.null_proportion = True
    if args.seed is not None:
        cfg.ihw.seed = args.seed
        cfg.simulation.seed = args.seed
    return cfg


def cmd_simulate(args: argparse.Namespace) -> None:
    cfg = _load_config(args)
    n = args.n or cfg.simulation.n_hypotheses
    data = simulate_pvalues(
        n,
        alternative_fraction=cfg.simulation.alternative_fraction,
        covariate_max=cfg.simulation.covariate_max,
        seed=cfg.simulation.seed,
    )

    t0 = time.perf_counter()
    baseline = multiple_testing(data.pvalues, cfg.ihw.alpha, method=cfg.ihw.adjustment_type)
    result = ihw(data.pvalues, data.covariate, **cfg.ihw.ihw_kwargs())
    elapsed = time.perf_counter() - t0

    def fdp(rejected: np.ndarray) -> float:
        return float(np.mean(~data.is_alternative[rejected])) if rejected.any() else 0.0

    base_mask = np.zeros(n, dtype=bool)
    base_mask[baseline.rejected_indices] = True
    ihw_mask = result.rejected_hypotheses()

    print(f"Simulated {n} hypotheses ({data.is_alternative.sum()} alternatives), "
          f"alpha={cfg.ihw.alpha}, {result.nbins} strata x {result.nfolds} folds")
    print(f"{'Method':>12}  {'Rejections':>10}  {'FDP':>6}")
    print("-" * 34)
    print(f"{cfg.ihw.adjustment_type:>12}  {baseline.n_rejected:>10}  {fdp(base_mask):>6.3f}")
    print(f"{'IHW':>12}  {result.rejections():>10}  {fdp(ihw_mask):>6.3f}")
    print(f"\nDone in {elapsed:.2f}s")


def _read_m_groups(path: str) -> dict:
    table = pd.read_csv(path)
    return dict(zip(table["stratum"], table["total"]))


def cmd_run(args: argparse.Namespace) -> None:
    cfg = _load_config(args)
    df = pd.read_csv(args.input)
    for col in (args.pvalue_col, args.covariate_col):
        if col not in df.columns:
            raise IHWError(f"Column {col!r} not found in {args.input}")

    covariate = df[args.covariate_col]
    m_groups = _read_m_groups(args.m_groups) if args.m_groups else None
    if args.categorical or m_groups is not None:
        covariate = CategoricalCovariate(covariate)

    result = ihw(df[args.pvalue_col].to_numpy(), covariate, m_groups=m_groups, **cfg.ihw.ihw_kwargs())
    print(f"{result.rejections()} of {result.total_tests} hypotheses rejected "
          f"at alpha={result.alpha} ({result.adjustment_type.value}, "
          f"{result.nbins} strata x {result.nfolds} folds)")
    if result.null_proportion < 1.0:
        print(f"Estimated null proportion: {result.null_proportion:.3f}")

    if args.output:
        result.as_table().to_csv(args.output, index=False)
        print(f"Wrote {len(result)} rows to {args.output}")


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "simulate":
            cmd_simulate(args)
        elif args.command == "run":
            cmd_run(args)
    except IHWError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(2)
