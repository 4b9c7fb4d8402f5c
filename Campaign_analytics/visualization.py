"""Static figures for batch reports."""

from __future__ import annotations

from pathlib import Path
from typing import Dict

import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd

sns.set_theme(style="whitegrid")


def _save_plot(fig: plt.Figure, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)


def daily_timeline_plot(daily: pd.DataFrame, output_dir: Path) -> Path | None:
    if daily.empty:
        return None
    fig, ax = plt.subplots(figsize=(10, 5))
    sns.lineplot(data=daily, x="date", y="impressions", label="Impressions", ax=ax)
    ax.set_ylabel("Impressions")
    ax2 = ax.twinx()
    sns.lineplot(data=daily, x="date", y="revenue", label="Revenue", color="#ff7f0e", ax=ax2)
    ax2.set_ylabel("Revenue")
    ax2.grid(False)
    ax.set_title("Daily delivery and revenue")
    ax.tick_params(axis="x", labelrotation=45)
    output_path = output_dir / "figures" / "daily_timeline.png"
    _save_plot(fig, output_path)
    return output_path


def day_of_week_plot(day_of_week: pd.DataFrame, output_dir: Path) -> Path | None:
    if day_of_week.empty:
        return None
    fig, ax = plt.subplots(figsize=(8, 5))
    sns.barplot(data=day_of_week, x="day", y="impressions", color="#4c72b0", ax=ax)
    ax.set_xlabel("")
    ax.set_ylabel("Impressions")
    ax.set_title("Impressions by day of week")
    output_path = output_dir / "figures" / "day_of_week.png"
    _save_plot(fig, output_path)
    return output_path


def health_plot(health: pd.DataFrame, output_dir: Path) -> Path | None:
    if health.empty or "health_score" not in health.columns:
        return None
    ordered = health.sort_values("health_score").head(20)
    palette = {"green": "#55a868", "amber": "#dd8452", "red": "#c44e52"}
    fig, ax = plt.subplots(figsize=(8, max(3, 0.35 * len(ordered) + 1)))
    sns.barplot(data=ordered, x="health_score", y="campaign_name", hue="band", palette=palette, dodge=False, ax=ax)
    ax.set_xlim(0, 10)
    ax.set_xlabel("Health score")
    ax.set_ylabel("")
    ax.set_title("Lowest campaign health scores")
    output_path = output_dir / "figures" / "campaign_health.png"
    _save_plot(fig, output_path)
    return output_path


def generate_visuals(
    *,
    output_dir: Path,
    daily: pd.DataFrame,
    day_of_week: pd.DataFrame,
    health: pd.DataFrame,
) -> Dict[str, str]:
    figures: Dict[str, str] = {}

    path = daily_timeline_plot(daily, output_dir)
    if path:
        figures["daily_timeline"] = path.name

    dow_path = day_of_week_plot(day_of_week, output_dir)
    if dow_path:
        figures["day_of_week"] = dow_path.name

    health_path = health_plot(health, output_dir)
    if health_path:
        figures["campaign_health"] = health_path.name

    return figures
