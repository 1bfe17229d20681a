#!/usr/bin/env python3

import argparse
import sys
from pathlib import Path
from typing import Optional

import config_loader
import health_check
import sampler
from fusion import generate_replay_report, load_trace, replay_trace
from logger import setup_logging_from_config


def run_replay(trace_path: Path, config: dict, profile: Optional[str] = None) -> int:
    """Replay a recorded trace and print the report."""
    if profile:
        config["classification"]["profile"] = profile

    try:
        trace = load_trace(trace_path)
    except FileNotFoundError:
        print(f"Trace not found: {trace_path}")
        return 1
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1

    results, summaries = replay_trace(trace, config)
    print(generate_replay_report(results, summaries))
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Fusion Sentry - magnetic/RF/light/sonar environment classification",
        epilog="""
Examples:
  python3 fusion_sentry.py replay trace.csv            # Classify a recorded trace
  python3 fusion_sentry.py replay trace.csv --profile probe
  python3 fusion_sentry.py sonar                       # Live sonar readings
  python3 fusion_sentry.py health                      # Check audio tools and config
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("mode", choices=["replay", "sonar", "health"], help="What to run")
    parser.add_argument("trace", nargs="?", type=Path, help="Trace CSV (replay mode)")
    parser.add_argument("--config", type=Path, help="Path to config.json file")
    parser.add_argument("--profile", choices=config_loader.PROFILES, help="Override classification.profile")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    try:
        config = config_loader.load_config(args.config)
    except ValueError as e:
        print(f"[ERROR] Failed to load configuration: {e}")
        sys.exit(2)
    setup_logging_from_config(config, debug=args.debug)

    if args.mode == "replay":
        if args.trace is None:
            parser.error("replay needs a trace file")
        sys.exit(run_replay(args.trace, config, args.profile))
    elif args.mode == "sonar":
        sampler.live_sample(args.config)
    elif args.mode == "health":
        sys.exit(0 if health_check.run_health_check(args.config) else 1)


if __name__ == "__main__":
    main()
