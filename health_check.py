#!/usr/bin/env python3
"""
System health check - verifies the sonar audio path and configuration.

Run this before a session to find missing tools or devices.
"""
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import config_loader


def check_alsa_tool(tool: str) -> Tuple[bool, str]:
    """Check that an ALSA tool (arecord/aplay) runs and lists devices."""
    try:
        result = subprocess.run(
            [tool, "-l"],
            capture_output=True,
            text=True,
            timeout=5
        )
    except FileNotFoundError:
        return False, f"{tool} not found - install alsa-utils"
    except subprocess.TimeoutExpired:
        return False, f"{tool} -l timed out"

    if result.returncode != 0:
        return False, f"{tool} -l failed: {result.stderr.strip()}"

    cards = [line for line in result.stdout.splitlines() if line.startswith("card ")]
    if not cards:
        return False, f"{tool}: no sound cards found"
    return True, f"{len(cards)} device(s) available"


def check_dependencies() -> Tuple[bool, str]:
    """Check if required Python packages are installed."""
    missing = []

    try:
        import numpy  # noqa: F401
    except ImportError:
        missing.append("numpy")

    try:
        import pandas  # noqa: F401
    except ImportError:
        missing.append("pandas")

    if missing:
        return False, f"Missing packages: {', '.join(missing)}. Run: pip3 install {' '.join(missing)}"

    return True, "All dependencies installed"


def check_config(config_path: Optional[Path]) -> Tuple[bool, str]:
    """Check if configuration loads and the sonar band is usable."""
    try:
        config = config_loader.load_config(config_path)
    except ValueError as e:
        return False, f"Config error: {e}"

    issues = []
    audio = config["audio"]
    sonar = config["sonar"]
    for key in ("capture_device", "playback_device"):
        if not audio.get(key):
            issues.append(f"audio.{key} not set")

    if sonar["center_freq_hz"] - sonar["doppler_offset_hz"] <= 0:
        issues.append("sonar.doppler_offset_hz must be below center_freq_hz")

    bin_hz = audio["sample_rate"] / audio["block_samples"]
    if bin_hz >= sonar["doppler_offset_hz"]:
        issues.append(
            f"block_samples too small: {bin_hz:.1f} Hz bins cannot separate "
            f"{sonar['doppler_offset_hz']:.0f} Hz sidebands"
        )

    if issues:
        return False, "; ".join(issues)
    return True, f"Configuration valid (profile={config['classification']['profile']})"


def run_health_check(config_path: Optional[Path] = None) -> bool:
    """
    Run all checks and print a report.

    Returns:
        True if all checks pass, False otherwise
    """
    print("=" * 60)
    print("FUSION SENTRY HEALTH CHECK")
    print("=" * 60)
    print()

    checks: List[Tuple[str, bool, str]] = []
    checks.append(("Dependencies", *check_dependencies()))
    checks.append(("Configuration", *check_config(config_path)))
    checks.append(("Audio Capture", *check_alsa_tool("arecord")))
    checks.append(("Audio Playback", *check_alsa_tool("aplay")))

    for name, ok, msg in checks:
        status = "✓" if ok else "✗"
        print(f"{status} {name}: {msg}")

    all_ok = all(ok for _, ok, _ in checks)

    print()
    print("=" * 60)
    if all_ok:
        print("✓ All checks passed - system ready")
    else:
        print("✗ Some checks failed - review issues above")
        print()
        print("Common fixes:")
        print("  - Missing dependencies: pip3 install -e .")
        print("  - Audio tools: sudo apt-get install alsa-utils")
        print("  - Sonar disabled without audio; other channels still classify")
    print("=" * 60)

    return all_ok


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="System health check")
    parser.add_argument("--config", type=Path, help="Path to config.json")

    args = parser.parse_args()
    success = run_health_check(args.config)
    sys.exit(0 if success else 1)
