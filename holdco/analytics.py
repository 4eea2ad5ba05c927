"""Run Monte Carlo analytics for the holdco engine from the command line"""
import argparse
import os
from typing import Dict, List, Optional

import numpy as np
from scipy import stats

import matplotlib
matplotlib.use('Agg')  # headless; charts are always saved to file
import matplotlib.pyplot as plt

from .calibration_config import DIFFICULTY_CONFIG, DURATION_CONFIG
from .engine import run_monte_carlo, run_one_simulation
from .logging_config import configure_logging, get_logger
from .telemetry import JsonlSink

logger = get_logger(__name__)


def compute_detailed_stats(results: List[Dict]) -> Optional[Dict]:
    """Compute comprehensive statistics from simulation results"""
    if not results:
        return None
    n = len(results)
    survivors = [r for r in results if r['survived']]
    bankrupt = [r for r in results if not r['survived']]

    def calc_stats(values):
        if not values:
            return None
        arr = np.array(values, dtype=float)
        return {
            'count': len(values),
            'mean': float(np.mean(arr)),
            'median': float(np.median(arr)),
            'std': float(np.std(arr)),
            'skew': float(stats.skew(arr)) if len(arr) > 2 else 0.0,
            'p25': float(np.percentile(arr, 25)),
            'p75': float(np.percentile(arr, 75)),
            'min': float(np.min(arr)),
            'max': float(np.max(arr)),
        }

    bankruptcy_rounds: Dict[int, int] = {}
    for r in bankrupt:
        bankruptcy_rounds[r['bankrupt_round']] = bankruptcy_rounds.get(r['bankrupt_round'], 0) + 1

    return {
        'n': n,
        'survivors': len(survivors),
        'survival_rate': len(survivors) / n * 100,
        'restructured': sum(1 for r in results if r['has_restructured']),
        'score_stats': calc_stats([r['score'] for r in results]),
        'irr_stats': calc_stats([r['irr'] for r in survivors if r['irr_status'] == 'valid']),
        'moic_stats': calc_stats([r['moic'] for r in survivors]),
        'irr_no_sign_change': sum(1 for r in results if r['irr_status'] == 'no_sign_change'),
        'irr_no_converge': sum(1 for r in results if r['irr_status'] == 'did_not_converge'),
        'bankruptcy_rounds': bankruptcy_rounds,
    }


def print_stats(stats_dict: Dict, title: str):
    print(f"\n{'=' * 80}")
    print(title)
    print(f"{'=' * 80}")
    print(f"Total Runs: {stats_dict['n']}")
    print(f"Survival Rate: {stats_dict['survival_rate']:.1f}%")
    print(f"Restructured: {stats_dict['restructured']}")

    score = stats_dict['score_stats']
    print(f"Median Score: {score['median']:,.0f}  (P25 {score['p25']:,.0f} / P75 {score['p75']:,.0f})")
    if stats_dict['irr_stats']:
        irr = stats_dict['irr_stats']
        print(f"Median IRR: {irr['median'] * 100:.1f}%  (P25 {irr['p25'] * 100:.1f}% / P75 {irr['p75'] * 100:.1f}%)")
    else:
        print("Median IRR: N/A (no valid survivors)")
    if stats_dict['moic_stats']:
        print(f"Median MOIC: {stats_dict['moic_stats']['median']:.2f}x")
    else:
        print("Median MOIC: N/A (no survivors)")
    print(f"IRR undefined: {stats_dict['irr_no_sign_change']} no sign change, "
          f"{stats_dict['irr_no_converge']} did not converge")

    if stats_dict['bankruptcy_rounds']:
        print("\nBankruptcies by round:")
        for round_number, count in sorted(stats_dict['bankruptcy_rounds'].items()):
            print(f"  Round {round_number}: {count}")


def show_simulation_results(results: List[Dict], save_path: str, bins: int = 40) -> bool:
    """Save score / IRR / MOIC histograms to a PNG

    Args:
        results: List of simulation results
        save_path: Output PNG path
        bins: Number of histogram bins

    Returns:
        True if a chart was written
    """
    if not results:
        logger.warning("No results to plot")
        return False

    fig, (ax1, ax2, ax3) = plt.subplots(1, 3, figsize=(18, 5), facecolor='white')
    fig.suptitle(f'Monte Carlo Simulation Results (n={len(results)})', fontsize=16, fontweight='bold')

    ax1.hist([r['score'] for r in results], bins=bins, color='#2E86AB', edgecolor='black')
    ax1.set_title('Score')
    ax1.set_xlabel('Score ($k)')

    irrs = [r['irr'] * 100 for r in results
            if r['survived'] and r['irr_status'] == 'valid' and np.isfinite(r['irr'])]
    if irrs:
        ax2.hist(irrs, bins=bins, color='#06A77D', edgecolor='black')
        ax2.axvline(float(np.median(irrs)), color='red', linestyle='--', linewidth=2, label='Median')
        ax2.legend()
    ax2.set_title('Founder IRR (survivors)')
    ax2.set_xlabel('IRR (%)')

    moics = [r['moic'] for r in results if r['survived']]
    if moics:
        ax3.hist(moics, bins=bins, color='#F18F01', edgecolor='black')
    ax3.set_title('Founder MOIC (survivors)')
    ax3.set_xlabel('MOIC (x)')

    fig.tight_layout()
    fig.savefig(save_path, dpi=120, facecolor='white')
    plt.close(fig)
    logger.info("Chart saved to %s", save_path)
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Run holdco Monte Carlo simulations with analytics')
    parser.add_argument('--sims', type=int, default=200, help='Number of simulations (default: 200)')
    parser.add_argument('--difficulty', choices=sorted(DIFFICULTY_CONFIG), default='easy')
    parser.add_argument('--duration', choices=sorted(DURATION_CONFIG), default='standard')
    parser.add_argument('--start-seed', type=int, default=0, help='Seed of the first run (default: 0)')
    parser.add_argument('--single-run', action='store_true', help='Run one simulation and print its result')
    parser.add_argument('--seed', type=int, default=42, help='Seed for single-run mode (default: 42)')
    parser.add_argument('--telemetry', type=str, default=None, help='JSONL file for single-run round telemetry')
    parser.add_argument('--save-plots', action='store_true', help='Save histograms to PNG')
    parser.add_argument('--output-dir', type=str, default='output', help='Directory for saved plots')
    parser.add_argument('--log-level', type=str, default=os.getenv('HOLDCO_LOG_LEVEL', 'WARNING'),
                        help='Logging level (default: $HOLDCO_LOG_LEVEL or WARNING)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.single_run:
        sink = JsonlSink(args.telemetry) if args.telemetry else None
        result = run_one_simulation(args.seed, args.difficulty, args.duration, telemetry=sink)
        print(f"\n{'=' * 80}")
        print(f"SINGLE RUN (Seed: {args.seed})")
        print(f"{'=' * 80}")
        for key, value in result.items():
            print(f"  {key}: {value}")
        return 0

    print(f"\nRunning {args.sims} simulations ({args.difficulty}, {args.duration})...")
    summary = run_monte_carlo(args.sims, args.difficulty, args.duration, start_seed=args.start_seed)
    results = summary['results']
    print_stats(compute_detailed_stats(results), f"RESULTS ({args.difficulty.upper()} / {args.duration.upper()})")

    if args.save_plots:
        os.makedirs(args.output_dir, exist_ok=True)
        save_path = os.path.join(args.output_dir, f"monte_carlo_{args.difficulty}_{args.duration}.png")
        show_simulation_results(results, save_path)
        print(f"\nPlots saved to: {os.path.abspath(save_path)}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
