"""
Validate Conformal Coverage Guarantees

Repeated-split coverage study on synthetic linear data
y = 1 + x/2 + N(0, 0.25^2), x ~ U(0, 10). Each repetition draws fresh
training, calibration and test sets, calibrates split conformal, CV+ and
CQR at the same level, and records empirical coverage and mean width.

Usage:
    python scripts/validate_coverage.py
    python scripts/validate_coverage.py --repeats 500 --alpha 0.05

Generates:
    - results/coverage_study.json (per-method summary)
    - results/coverage_study.csv (one row per repetition and method)
"""

import argparse
import json
import warnings
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from predint import calibrate_cqr, calibrate_cv_plus, calibrate_split
from predint.conformal import compute_interval_metrics, coverage_interval, predict_interval_arrays
from predint.models import LinearQuantileFitter


def generate_linear_data(n: int, rng: np.random.Generator):
    """y = 1 + x/2 + N(0, 0.25^2)."""
    x = rng.uniform(0, 10, size=n)
    y = 1 + x / 2 + rng.normal(0, 0.25, size=n)
    return x.reshape(-1, 1), y


def run_repetition(rng, n_train, n_cal, n_test, alpha, n_folds):
    """Calibrate every method on one fresh draw and score it on test data."""
    train = generate_linear_data(n_train, rng)
    cal = generate_linear_data(n_cal, rng)
    X_test, y_test = generate_linear_data(n_test, rng)

    model = LinearRegression().fit(*train)
    adjustments = {
        'split': calibrate_split(model, cal, alpha=alpha),
        # CV+ uses the training and calibration records together
        'cv+': calibrate_cv_plus(
            LinearRegression(),
            (np.vstack([train[0], cal[0]]), np.concatenate([train[1], cal[1]])),
            folds=n_folds,
            alpha=alpha,
            random_seed=int(rng.integers(1_000_000))
        ),
        'cqr': calibrate_cqr(LinearQuantileFitter(), train, cal, alpha=alpha),
    }

    rows = []
    for method, adjustment in adjustments.items():
        _, lower, upper = predict_interval_arrays(adjustment, X_test)
        metrics = compute_interval_metrics(y_test, lower, upper)
        rows.append({
            'method': method,
            'coverage': metrics['coverage'],
            'mean_width': metrics['mean_width'],
        })
    return rows


def summarize(results: pd.DataFrame, alpha: float, n_cal: int) -> dict:
    """Average coverage and width per method."""
    lo, hi = coverage_interval(n_cal, alpha, two_sided=True)
    summary = {}
    for method, group in results.groupby('method'):
        mean_coverage = float(group['coverage'].mean())
        summary[method] = {
            'mean_coverage': mean_coverage,
            'std_coverage': float(group['coverage'].std()),
            'min_coverage': float(group['coverage'].min()),
            'mean_width': float(group['mean_width'].mean()),
            'meets_target': bool(mean_coverage >= 1 - alpha - 0.01),
        }
    summary['calibration_spread'] = [lo, hi]
    return summary


def main():
    """Main execution function."""
    parser = argparse.ArgumentParser(
        description="Repeated-split conformal coverage study"
    )
    parser.add_argument('--repeats', type=int, default=200,
                        help='Number of independent repetitions (default: 200)')
    parser.add_argument('--alpha', type=float, default=0.10,
                        help='Miscoverage rate (default: 0.10)')
    parser.add_argument('--n-train', type=int, default=250)
    parser.add_argument('--n-cal', type=int, default=250)
    parser.add_argument('--n-test', type=int, default=1000)
    parser.add_argument('--folds', type=int, default=10,
                        help='CV+ folds (default: 10)')
    parser.add_argument('--seed', type=int, default=42)
    args = parser.parse_args()

    print(f"{'='*80}")
    print("CONFORMAL COVERAGE VALIDATION")
    print(f"{'='*80}")
    print(f"Target coverage: {1 - args.alpha:.0%}")
    print(f"Repetitions: {args.repeats}")
    print(f"Train/calibration/test: {args.n_train}/{args.n_cal}/{args.n_test}")
    print(f"Start time: {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

    start_time = datetime.now()
    rng = np.random.default_rng(args.seed)

    project_root = Path(__file__).parent.parent
    output_dir = project_root / "results"
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"{'='*80}")
    print("[Step 1/2] Running repetitions...")
    print(f"{'='*80}\n")

    rows = []
    with warnings.catch_warnings():
        # Occasional solver chatter from QuantileRegressor
        warnings.simplefilter("ignore")
        for r in range(args.repeats):
            for row in run_repetition(rng, args.n_train, args.n_cal, args.n_test,
                                      args.alpha, args.folds):
                row['repetition'] = r
                rows.append(row)
            if (r + 1) % 50 == 0:
                print(f"  {r + 1}/{args.repeats} repetitions done")

    results = pd.DataFrame(rows)
    results.to_csv(output_dir / "coverage_study.csv", index=False)
    print(f"\n✓ Saved per-repetition results to coverage_study.csv")

    print(f"\n{'='*80}")
    print("[Step 2/2] Summarizing...")
    print(f"{'='*80}\n")

    summary = summarize(results, args.alpha, args.n_cal)

    print(f"{'Method':<8} {'Coverage':>10} {'Std':>8} {'Min':>8} {'Width':>8}")
    print("-" * 46)
    for method in ('split', 'cv+', 'cqr'):
        s = summary[method]
        print(f"{method:<8} {s['mean_coverage']:>10.3f} {s['std_coverage']:>8.3f} "
              f"{s['min_coverage']:>8.3f} {s['mean_width']:>8.3f}")

    lo, hi = summary['calibration_spread']
    print(f"\nSpread of split coverage across calibration draws (95%): [{lo:.3f}, {hi:.3f}]")

    validation_results = {
        'timestamp': datetime.now().isoformat(),
        'alpha': args.alpha,
        'repeats': args.repeats,
        'n_train': args.n_train,
        'n_cal': args.n_cal,
        'n_test': args.n_test,
        'summary': summary,
    }
    with open(output_dir / "coverage_study.json", 'w') as f:
        json.dump(validation_results, f, indent=2)
    print(f"\n✓ Saved summary to coverage_study.json")

    elapsed = datetime.now() - start_time
    all_ok = all(summary[m]['meets_target'] for m in ('split', 'cqr'))

    print(f"\n{'='*80}")
    print("VALIDATION COMPLETE")
    print(f"{'='*80}")
    print(f"Status: {'✓ PASS' if all_ok else '✗ FAIL'}")
    print(f"Elapsed: {elapsed}")
    print(f"{'='*80}\n")


if __name__ == "__main__":
    main()
