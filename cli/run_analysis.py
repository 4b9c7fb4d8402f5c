"""Batch runner for campaign performance exports."""

from __future__ import annotations

import argparse
import importlib.util
from pathlib import Path

_bootstrap_spec = importlib.util.spec_from_file_location(
    "cli._bootstrap_runtime",
    Path(__file__).resolve().parent / "_bootstrap.py",
)
if _bootstrap_spec is None or _bootstrap_spec.loader is None:
    raise ModuleNotFoundError("Unable to load CLI bootstrap helper.")
_bootstrap = importlib.util.module_from_spec(_bootstrap_spec)
_bootstrap_spec.loader.exec_module(_bootstrap)
_bootstrap.ensure_package_imported()

from Campaign_analytics import CampaignAnalysisPipeline, CsvImportError, DashboardSettings, RoasConvention, SpendMode
from Campaign_analytics.config import SpendSettings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyse one or more campaign performance exports.")
    parser.add_argument(
        "--data",
        type=Path,
        help="Campaign CSV to analyse with default settings (or when configs are not provided).",
    )
    parser.add_argument(
        "--output-root",
        type=Path,
        default=Path("reports"),
        help="Root directory where scenario subfolders will be written.",
    )
    parser.add_argument(
        "--scenario-name",
        help="Optional name for the scenario when using --data (creates a subfolder).",
    )
    parser.add_argument(
        "--config",
        action="append",
        type=Path,
        help="Path to a JSON configuration file (can be provided multiple times).",
    )
    parser.add_argument("--contract-terms", type=Path, help="Contract terms CSV used for pacing and health.")
    parser.add_argument("--custom-cpm", type=float, help="Estimate spend from impressions at this CPM.")
    parser.add_argument(
        "--roas",
        choices=[item.value for item in RoasConvention],
        default=RoasConvention.SPEND.value,
        help="ROAS convention: revenue/spend or revenue per 1k impressions.",
    )
    parser.add_argument("--no-fill", action="store_true", help="Do not insert zero rows for missing days.")
    parser.add_argument("--no-visuals", action="store_true", help="Skip static figures.")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    return parser.parse_args(argv)


def run_pipeline(pipeline: CampaignAnalysisPipeline) -> None:
    results = pipeline.run()
    settings = pipeline.settings
    print(f"\nRun completed for {settings.data_path} -> {settings.output_dir}")

    totals = results["totals"]
    for label, value in (
        ("Impressions", f"{totals.impressions:,.0f}"),
        ("Clicks", f"{totals.clicks:,.0f}"),
        ("CTR", f"{totals.ctr:.2f}%"),
        ("Revenue", f"${totals.revenue:,.2f}"),
        ("Spend", f"${totals.spend:,.2f}"),
        ("ROAS", f"{totals.roas:.2f}"),
    ):
        print(f"  {label:25s} {value}")
    print(f"  {'Anomalies':25s} {len(results['anomalies'])}")
    print(f"  {'Data quality':25s} {results['quality'].status}")
    print(f"  Summary JSON: {results['summary_path']}")
    print(f"  Report: {results['report_path']}")


def _ad_hoc_settings(args: argparse.Namespace) -> DashboardSettings:
    output_dir = args.output_root / (args.scenario_name or "ad_hoc")
    spend = SpendSettings()
    if args.custom_cpm is not None:
        spend.mode = SpendMode.CUSTOM
        spend.custom_cpm = args.custom_cpm
    return DashboardSettings(
        data_path=args.data,
        output_dir=output_dir,
        contract_terms_path=args.contract_terms,
        spend=spend,
        roas_convention=RoasConvention(args.roas),
        fill_date_gaps=not args.no_fill,
        include_visuals=not args.no_visuals,
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    _bootstrap.configure_logging(args.verbose)
    executed = False

    try:
        if args.config:
            for config_path in args.config:
                run_pipeline(CampaignAnalysisPipeline.from_config_file(config_path))
                executed = True

        if args.data:
            run_pipeline(CampaignAnalysisPipeline(_ad_hoc_settings(args)))
            executed = True
    except CsvImportError as exc:
        raise SystemExit(f"Import failed: {exc}") from exc

    if not executed:
        raise SystemExit("No work to execute. Provide --data or at least one --config file.")


if __name__ == "__main__":
    main()
