"""
Offline trace replay and result summaries.

A trace is a CSV of timestamped channel events:

    timestamp,channel,value
    0.00,magnetic,48.2
    0.02,linear_motion,0.01
    0.50,rf,-52

Channels: magnetic, linear_motion, angular_motion, light, rf, networks,
echo, doppler, sentry_mode, person_mode, object_mode.

Single Responsibility: Drive a session from recorded data and report on it.
"""
from pathlib import Path
from typing import List, Tuple

import pandas as pd

from fusion.echo import DopplerState, SonarResult
from fusion.models import ClassificationResult
from fusion.session import SessionCoordinator
from logger import get_logger

log = get_logger(__name__)

TRACE_COLUMNS = ["timestamp", "channel", "value"]
CHANNELS = {
    "magnetic", "linear_motion", "angular_motion", "light", "rf", "networks",
    "echo", "doppler", "sentry_mode", "person_mode", "object_mode",
}


def load_trace(trace_file: Path) -> pd.DataFrame:
    """
    Load a sensor trace CSV.

    Args:
        trace_file: Path to trace file

    Returns:
        DataFrame sorted by timestamp (stable for equal timestamps)

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If required columns are missing
    """
    df = pd.read_csv(trace_file)
    df.columns = [c.strip() for c in df.columns]

    missing = [c for c in TRACE_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Trace {trace_file} is missing columns: {', '.join(missing)}")

    df["channel"] = df["channel"].astype(str).str.strip().str.lower()
    unknown = sorted(set(df["channel"]) - CHANNELS)
    if unknown:
        log.warning("Ignoring unknown trace channels: %s", ", ".join(unknown))
        df = df[df["channel"].isin(CHANNELS)].copy()

    df["timestamp"] = pd.to_numeric(df["timestamp"], errors="coerce")
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    dropped = int(df[["timestamp", "value"]].isna().any(axis=1).sum())
    if dropped:
        log.warning("Dropping %d trace rows with non-numeric fields", dropped)
        df = df.dropna(subset=["timestamp", "value"])

    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)


def replay_trace(df: pd.DataFrame, config: dict) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Replay a trace through a synchronous session.

    Aggregation windows are measured on trace time, starting at the first
    event.

    Args:
        df: Trace DataFrame from load_trace
        config: Configuration dictionary

    Returns:
        Tuple of (results, summaries):
        - results: one row per magnetic frame
        - summaries: one row per non-empty aggregation window
    """
    results: List[dict] = []
    summaries: List[dict] = []
    window_sec = float(config["session"]["aggregation_window_sec"])

    session = SessionCoordinator(config)
    session.start(background=False)

    echo = 0.0
    doppler = DopplerState.NONE
    window_start = None
    window_index = 0

    def close_window(now: float) -> None:
        if len(session.aggregator) == 0:
            return
        summaries.append(_row(now, window_index, session.flush_aggregate()))

    try:
        for row in df.itertuples(index=False):
            ts = float(row.timestamp)
            if window_start is None:
                window_start = ts
            while ts - window_start >= window_sec:
                close_window(window_start + window_sec)
                window_start += window_sec
                window_index += 1

            channel, value = row.channel, float(row.value)
            if channel == "magnetic":
                result = session.on_magnetic(value)
                if result is not None:
                    results.append(_row(ts, window_index, result))
            elif channel == "linear_motion":
                session.on_linear_motion(value)
            elif channel == "angular_motion":
                session.on_angular_motion(value)
            elif channel == "light":
                session.on_light(value)
            elif channel == "rf":
                session.on_rf_level(value)
            elif channel == "networks":
                session.on_network_count(int(value))
            elif channel in ("echo", "doppler"):
                if channel == "echo":
                    echo = value
                else:
                    doppler = DopplerState(int(max(-1, min(1, round(value)))))
                session.on_sonar(SonarResult(amplitude=echo, doppler=doppler))
            elif channel == "sentry_mode":
                session.set_sentry_mode(bool(value))
            elif channel == "person_mode":
                session.set_person_mode(bool(value))
            elif channel == "object_mode":
                session.set_object_mode(bool(value))

        if window_start is not None:
            close_window(float(df["timestamp"].iloc[-1]))
    finally:
        session.stop()

    columns = ["timestamp", "window", "main_status", "sub_status", "severity_color",
               "debug_tags", "actuation_intensity", "severity"]
    return pd.DataFrame(results, columns=columns), pd.DataFrame(summaries, columns=columns)


def _row(timestamp: float, window: int, result: ClassificationResult) -> dict:
    row = {"timestamp": timestamp, "window": window}
    row.update(result.to_dict())
    return row


def summarize_results(results: pd.DataFrame) -> pd.DataFrame:
    """
    Count frames per main status.

    Returns:
        DataFrame with columns main_status, frames, share, max_actuation,
        most frequent first
    """
    if results.empty:
        return pd.DataFrame(columns=["main_status", "frames", "share", "max_actuation"])

    grouped = results.groupby("main_status").agg(
        frames=("main_status", "size"),
        max_actuation=("actuation_intensity", "max"),
    ).reset_index()
    grouped["share"] = grouped["frames"] / grouped["frames"].sum()
    grouped = grouped.sort_values(["frames", "main_status"], ascending=[False, True])
    return grouped[["main_status", "frames", "share", "max_actuation"]].reset_index(drop=True)


def generate_replay_report(results: pd.DataFrame, summaries: pd.DataFrame) -> str:
    """Plain-text report of a replay."""
    lines = []
    lines.append("Fusion Sentry Replay Report")
    lines.append("=" * 60)

    if results.empty:
        lines.append("No classified frames in trace.")
        return "\n".join(lines)

    lines.append(f"Frames: {len(results)}")
    lines.append("")
    lines.append("Status breakdown:")
    for row in summarize_results(results).itertuples(index=False):
        lines.append(
            f"  {row.main_status:<20} {row.frames:>6}  ({row.share:6.1%})  "
            f"max actuation {int(row.max_actuation)}"
        )

    if not summaries.empty:
        lines.append("")
        lines.append("Dominant result per window:")
        for row in summaries.itertuples(index=False):
            lines.append(
                f"  window {int(row.window):>3} @ {row.timestamp:8.2f}s  "
                f"{row.main_status} - {row.sub_status}"
            )

    return "\n".join(lines)
