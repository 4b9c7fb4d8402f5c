from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
from datetime import datetime
from importlib import metadata
import shutil
from pathlib import Path
from typing import List, Optional

from Campaign_analytics.anomaly import anomaly_counts, detect_all_anomalies, filter_anomalies, format_anomaly_message
from Campaign_analytics.config import AnomalyThresholds, BackendSettings
from Campaign_analytics.data_loader import load_campaign_data
from Campaign_analytics.errors import CsvImportError

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_CONFIG = PROJECT_ROOT / "configs" / "example.json"
ARTIFACT_ROOT = PROJECT_ROOT / "reports"


def _fmt_rel(path: Path) -> str:
    try:
        return str(path.relative_to(PROJECT_ROOT))
    except ValueError:
        return str(path)


def _run_analyze(args: argparse.Namespace) -> int:
    cli_script = PROJECT_ROOT / "cli" / "run_analysis.py"
    cmd = [sys.executable, str(cli_script)]
    if args.data:
        cmd.extend(["--data", str(Path(args.data).resolve())])
        if args.contract_terms:
            cmd.extend(["--contract-terms", str(Path(args.contract_terms).resolve())])
    else:
        config_path = Path(args.config or DEFAULT_CONFIG).resolve()
        if not config_path.exists():
            print(f"[Analyze] Config file not found: {config_path}")
            return 1
        cmd.extend(["--config", str(config_path)])
    if args.verbose:
        cmd.append("--verbose")
    print(f"[Analyze] Running: {' '.join(cmd)}")
    return subprocess.call(cmd)


def _run_anomalies(args: argparse.Namespace) -> int:
    try:
        imported = load_campaign_data(Path(args.data))
    except CsvImportError as exc:
        print(f"[Anomalies] {exc}")
        return 1
    anomalies = filter_anomalies(
        detect_all_anomalies(imported.frame, AnomalyThresholds()),
        severity=args.severity,
        recency_days=args.days,
    )
    counts = anomaly_counts(anomalies)
    print(f"[Anomalies] total={counts['total']} high={counts['high']} medium={counts['medium']} low={counts['low']}")
    for anomaly in anomalies[: args.limit]:
        print(
            f"  {anomaly.date_detected.isoformat()}  {anomaly.severity.value:6s}  "
            f"{anomaly.campaign_name}: {format_anomaly_message(anomaly)}"
        )
    return 0


def _run_ui(_: argparse.Namespace) -> int:
    script = PROJECT_ROOT / "Campaign_analytics" / "dashboard.py"
    if not script.exists():
        print(f"[UI] dashboard.py not found at {script}")
        return 1
    cmd = [sys.executable, "-m", "streamlit", "run", str(script)]
    print("[UI] Launching Streamlit dashboard...")
    return subprocess.call(cmd)


def _run_doctor(_: argparse.Namespace) -> int:
    print("[Doctor] Environment check")
    print(f"- Python: {sys.version.split()[0]}")
    packages = ["pandas", "numpy", "matplotlib", "seaborn", "plotly", "streamlit", "supabase", "tabulate"]
    for pkg in packages:
        try:
            version = metadata.version(pkg)
            print(f"- {pkg}: {version}")
        except metadata.PackageNotFoundError:
            print(f"- {pkg}: missing")
    backend = BackendSettings()
    for key in (backend.url_env, backend.key_env):
        print(f"- {key}: {'set' if os.getenv(key) else 'missing'}")
    print(f"- Config: {'ok' if DEFAULT_CONFIG.exists() else 'missing'} ({_fmt_rel(DEFAULT_CONFIG)})")
    print(f"- Artifacts: {'ok' if ARTIFACT_ROOT.exists() else 'missing'} ({_fmt_rel(ARTIFACT_ROOT)})")
    return 0


def _run_clean(args: argparse.Namespace) -> int:
    if not ARTIFACT_ROOT.exists():
        print(f"[Clean] Nothing to remove in {_fmt_rel(ARTIFACT_ROOT)}")
        return 0
    items = sorted(ARTIFACT_ROOT.iterdir())
    if not items:
        print(f"[Clean] {_fmt_rel(ARTIFACT_ROOT)} already empty")
        return 0
    print("[Clean] The following artifacts will be removed:")
    for item in items:
        marker = "/" if item.is_dir() else ""
        print(f"  - {_fmt_rel(item)}{marker}")
    if not args.yes:
        answer = input("Proceed? [y/N] ").strip().lower()
        if answer not in {"y", "yes"}:
            print("[Clean] Aborted")
            return 0
    for item in items:
        if item.is_dir():
            shutil.rmtree(item, ignore_errors=True)
        else:
            item.unlink(missing_ok=True)
    print(f"[Clean] Removed artifacts in {_fmt_rel(ARTIFACT_ROOT)}")
    return 0


def _run_artifacts(_: argparse.Namespace) -> int:
    if not ARTIFACT_ROOT.exists():
        print(f"[Artifacts] Directory not found: {_fmt_rel(ARTIFACT_ROOT)}")
        return 1
    entries = sorted(path for path in ARTIFACT_ROOT.rglob("*") if path.is_file())
    if not entries:
        print(f"[Artifacts] No files found in {_fmt_rel(ARTIFACT_ROOT)}")
        return 0
    print(f"[Artifacts] Listing contents of {_fmt_rel(ARTIFACT_ROOT)}")
    for path in entries:
        stats = path.stat()
        mtime = datetime.fromtimestamp(stats.st_mtime).isoformat(timespec="seconds")
        print(f"  - {_fmt_rel(path):45s} {mtime} ({stats.st_size} bytes)")
    return 0


def _run_test(_: argparse.Namespace) -> int:
    cmd = [sys.executable, "-m", "pytest", "-q"]
    return subprocess.call(cmd)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Project management utilities.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Run the batch campaign analysis")
    analyze_parser.add_argument("--config", help="Config file", default=None)
    analyze_parser.add_argument("--data", help="Campaign CSV (overrides --config)")
    analyze_parser.add_argument("--contract-terms", help="Contract terms CSV (with --data)")
    analyze_parser.add_argument("--verbose", action="store_true", help="Debug logging")
    analyze_parser.set_defaults(func=_run_analyze)

    anomalies_parser = subparsers.add_parser("anomalies", help="Print anomaly candidates for a CSV")
    anomalies_parser.add_argument("data", help="Campaign CSV")
    anomalies_parser.add_argument("--severity", choices=["high", "medium", "low"], help="Only this severity")
    anomalies_parser.add_argument("--days", type=int, help="Only anomalies detected in the last N days")
    anomalies_parser.add_argument("--limit", type=int, default=25, help="Rows to print")
    anomalies_parser.set_defaults(func=_run_anomalies)

    ui_parser = subparsers.add_parser("ui", help="Launch the Streamlit dashboard")
    ui_parser.set_defaults(func=_run_ui)

    doctor_parser = subparsers.add_parser("doctor", help="Inspect environment readiness")
    doctor_parser.set_defaults(func=_run_doctor)

    artifacts_parser = subparsers.add_parser("artifacts", help="List generated artifacts")
    artifacts_parser.set_defaults(func=_run_artifacts)

    clean_parser = subparsers.add_parser("clean", help="Clear generated artifacts")
    clean_parser.add_argument("--yes", action="store_true", help="Skip confirmation prompt")
    clean_parser.set_defaults(func=_run_clean)

    test_parser = subparsers.add_parser("test", help="Run pytest -q")
    test_parser.set_defaults(func=_run_test)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.error("No command specified")
    return int(func(args))


if __name__ == "__main__":
    sys.exit(main())
