"""Render the analytics payload to PNG charts.

Reads the analytics.json written by dashboard_summary.py and saves
orders/reservations-over-time bar charts and the order type and
reservation status pies next to it.
"""

from __future__ import annotations

import json
import os
import sys

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402

from config import OUTPUT_DIR  # noqa: E402


def series_frame(series: dict) -> pd.DataFrame:
    """Turn a ``{"labels": [...], "counts": [...]}`` series into a date-sorted frame."""
    df = pd.DataFrame({"date": series["labels"], "count": series["counts"]})
    df["date"] = pd.to_datetime(df["date"])
    return df.sort_values("date").reset_index(drop=True)


def plot_over_time(series: dict, title: str, color: str, path: str) -> None:
    df = series_frame(series)
    plt.figure(figsize=(12, 6))
    if not df.empty:
        sns.barplot(x=df["date"].dt.strftime("%Y-%m-%d"), y=df["count"], color=color)
    plt.title(title, fontsize=14, pad=20)
    plt.xlabel("Date", fontsize=12)
    plt.ylabel("Count", fontsize=12)
    plt.grid(True, axis="y", alpha=0.3)
    plt.xticks(rotation=45)
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()


def plot_split(split: dict, title: str, colors: list[str], path: str) -> None:
    plt.figure(figsize=(6, 6))
    if sum(split["counts"]):
        plt.pie(
            split["counts"],
            labels=[
                f"{label}: {count} ({pct}%)"
                for label, count, pct in zip(split["labels"], split["counts"], split["percentages"])
            ],
            colors=colors,
        )
    plt.title(title, fontsize=14)
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()


def render_charts(payload: dict, output_dir: str = OUTPUT_DIR) -> list[str]:
    """Render all four charts; returns the written file paths."""
    os.makedirs(output_dir, exist_ok=True)
    paths = [
        os.path.join(output_dir, name)
        for name in (
            "orders_over_time.png",
            "reservations_over_time.png",
            "order_types.png",
            "reservation_status.png",
        )
    ]
    plot_over_time(payload["orders_over_time"], "Orders Over Time", "#5d4037", paths[0])
    plot_over_time(payload["reservations_over_time"], "Reservations Over Time", "#8d6e63", paths[1])
    plot_split(payload["order_types"], "Order Types Distribution", ["#ff5722", "#8d6e63"], paths[2])
    plot_split(payload["reservation_status"], "Reservation Status", ["#4caf50", "#9e9e9e"], paths[3])
    return paths


if __name__ == "__main__":
    output_dir = sys.argv[1] if len(sys.argv) > 1 else OUTPUT_DIR
    with open(os.path.join(output_dir, "analytics.json"), "r", encoding="utf-8") as f:
        written = render_charts(json.load(f), output_dir)
    print(f"Charts saved: {', '.join(os.path.basename(p) for p in written)}")
