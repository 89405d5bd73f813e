"""Run the hourly SOFA batch job from the command line.

Example:
    python -m hourlysofa --data-dir ./feeds --filetype csv --output sofa.csv
"""

import argparse
import sys

from .sofa import calculate_sofa_hourly
from .utils import load_inputs, load_sofa_config, setup_logging


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='hourlysofa',
        description='Compute hourly SOFA scores from pre-cleaned event feeds.',
    )
    parser.add_argument('--data-dir', required=True,
                        help='Directory holding <feed>.<filetype> files')
    parser.add_argument('--filetype', default='parquet', choices=['csv', 'parquet'],
                        help='Format of the feed files (default: parquet)')
    parser.add_argument('--config', default=None,
                        help='YAML or JSON run configuration')
    parser.add_argument('--output', default=None,
                        help='Write score rows to this CSV file')
    parser.add_argument('--summary-output', default=None,
                        help='Write the per-stay run summary to this CSV file')
    parser.add_argument('--log-level', default='INFO',
                        help='Logging level (default: INFO)')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    logger = setup_logging(args.log_level)

    cfg = load_sofa_config(args.config)
    inputs = load_inputs(args.data_dir, args.filetype, timezone=cfg.timezone)
    scores, summary = calculate_sofa_hourly(inputs, cfg, return_summary=True)

    if args.output:
        scores.to_csv(args.output, index=False)
        logger.info(f"Wrote {len(scores)} score rows to {args.output}")
    if args.summary_output:
        summary.to_csv(args.summary_output, index=False)

    print(summary['status'].value_counts().to_string())
    # Non-zero exit when any stay could not be scored
    return 1 if (summary['status'] == 'failed').any() else 0


if __name__ == '__main__':
    sys.exit(main())
