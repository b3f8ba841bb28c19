#!/usr/bin/env python3
"""
library_reports.py

Reporting utilities for the library checkout system.

This module provides functions to:
- Build pandas DataFrames over the catalog, roster and checkout ledger
- Compute the statistics block, an overdue report with fees, a genre
  popularity summary and a per-member summary
- Render a statistics dashboard chart and save it to disk
- Export the tables as CSV aggregates and, when an Excel engine is
  available, a single workbook

Typical usage:
    python library_reports.py --data-dir data --out library_reports

The public entrypoint is `export_reports(engine, out_dir)` which writes
every report and returns the paths it produced.
"""
from __future__ import annotations
import argparse
import logging
import math
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402
import seaborn as sns  # noqa: E402

from library_checkout import RuleEngine  # noqa: E402
from library_storage import (  # noqa: E402
    CsvPersistenceGateway,
    books_frame,
    checkouts_frame,
    members_frame,
)

logger = logging.getLogger("LibraryReports")

plt.rcParams.update({"figure.max_open_warning": 0})


# -------------------- Tables -------------------- #
def statistics_frame(engine: RuleEngine) -> pd.DataFrame:
    """Two-column table (Metric, Value) of the engine statistics."""
    stats = engine.statistics()
    return pd.DataFrame({"Metric": list(stats.keys()), "Value": list(stats.values())})


def inventory_report(engine: RuleEngine) -> pd.DataFrame:
    """
    Books inventory with checked-out copy counts, sorted by title.

    Returns columns: ISBN, Title, Author, Genre, Total Copies,
    Available Copies, Checked Out Copies.
    """
    df = books_frame(engine.list_books())
    df["Checked Out Copies"] = df["Total Copies"] - df["Available Copies"]
    return df


def checkouts_report(engine: RuleEngine) -> pd.DataFrame:
    """
    Every checkout joined with member names and book titles.

    Date columns are converted to pandas Timestamps.
    """
    df = checkouts_frame(engine.ledger.all())
    for col in ["Checkout Date", "Due Date", "Return Date"]:
        df[col] = pd.to_datetime(df[col], errors="coerce")
    names = members_frame(engine.list_members())[["Member ID", "Name"]]
    titles = books_frame(engine.list_books())[["ISBN", "Title", "Genre"]]
    df = df.merge(names, on="Member ID", how="left").merge(titles, on="ISBN", how="left")
    df["Name"] = df["Name"].fillna("")
    df["Title"] = df["Title"].fillna("")
    df["Genre"] = df["Genre"].fillna("")
    return df


def overdue_report(engine: RuleEngine) -> pd.DataFrame:
    """
    Outstanding checkouts past their due date, earliest due first.

    Overdue days are whole days between the due date and the engine's
    current date; the fee is days times the engine's daily rate. The
    ledger is only read, never relabelled.
    """
    df = checkouts_report(engine)
    today = pd.Timestamp(engine.today())
    delta = (today - df["Due Date"]).dt.days.fillna(0).astype(int)
    outstanding = df["Status"] != "RETURNED"
    df["Overdue Days"] = np.where(outstanding & (delta > 0), delta, 0)
    df["Fee"] = df["Overdue Days"] * engine.fee_per_day
    df = df.loc[df["Overdue Days"] > 0]
    # stable sort keeps ledger order between equal due dates
    df = df.sort_values("Due Date", kind="mergesort")
    cols = ["Checkout ID", "Member ID", "Name", "ISBN", "Title", "Due Date", "Overdue Days", "Fee"]
    return df[cols].reset_index(drop=True)


def genre_summary(engine: RuleEngine) -> pd.DataFrame:
    """
    Count checkouts per genre across the whole ledger history.

    Returns columns Genre, Checkouts sorted by count descending; checkouts
    whose book has no genre (or no longer exists) are left out.
    """
    df = checkouts_report(engine)
    df["Genre"] = df["Genre"].astype(str).str.strip()
    df = df[df["Genre"] != ""]
    if df.empty:
        return pd.DataFrame(columns=["Genre", "Checkouts"])
    counts = df.groupby("Genre").size().reset_index(name="Checkouts")
    return counts.sort_values(["Checkouts", "Genre"], ascending=[False, True]).reset_index(drop=True)


def most_popular_genre(engine: RuleEngine) -> Optional[str]:
    counts = genre_summary(engine)
    if counts.empty:
        return None
    return counts.iloc[0]["Genre"]


def member_summary(engine: RuleEngine) -> pd.DataFrame:
    """
    Per-member summary of current loans and fees owed.

    Returns columns: Member ID, Name, Status, Active Checkouts,
    Overdue Checkouts, Outstanding Fees, Checkout IDs (comma separated).
    """
    today = engine.today()
    rows = []
    for m in engine.list_members():
        active = engine.active_checkouts(m.member_id)
        rows.append({
            "Member ID": m.member_id,
            "Name": m.name,
            "Status": m.status.value,
            "Active Checkouts": len(active),
            "Overdue Checkouts": sum(1 for c in active if c.is_overdue(today)),
            "Outstanding Fees": sum(engine.overdue_fee(c.checkout_id) for c in active),
            "Checkout IDs": ",".join(c.checkout_id for c in active),
        })
    return pd.DataFrame(rows, columns=["Member ID", "Name", "Status", "Active Checkouts",
                                       "Overdue Checkouts", "Outstanding Fees", "Checkout IDs"])


# -------------------- Output helpers -------------------- #
def write_workbook(sheets: Dict[str, pd.DataFrame], path: Path) -> Optional[str]:
    """Write one sheet per table; returns the error text when no Excel engine is usable."""
    try:
        with pd.ExcelWriter(path) as writer:
            for sheet, df in sheets.items():
                # Excel caps sheet names at 31 characters
                df.to_excel(writer, sheet_name=sheet[:31], index=False)
    except (ImportError, ValueError, OSError) as e:
        return str(e)
    return None


def save_figure(fig, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)
    return path


def label_bars(ax, fmt: str = "{:.0f}") -> None:
    """Print each non-empty bar's height above it."""
    for bar in ax.patches:
        height = bar.get_height()
        if height is None or math.isnan(height) or height == 0:
            continue
        ax.text(bar.get_x() + bar.get_width() / 2, height, fmt.format(height),
                ha="center", va="bottom", fontsize=8)


def create_dashboard(engine: RuleEngine, path: Path) -> Path:
    """
    Render the statistics dashboard: the six counters on the left and
    checkouts per genre on the right.

    Returns the path of the saved PNG.
    """
    stats = statistics_frame(engine)
    genres = genre_summary(engine)

    fig, (ax_stats, ax_genre) = plt.subplots(1, 2, figsize=(14, 6))
    sns.barplot(data=stats, x="Metric", y="Value", ax=ax_stats, color="steelblue")
    ax_stats.set_title("Library Statistics")
    ax_stats.set_xlabel("")
    ax_stats.tick_params(axis="x", rotation=30)
    label_bars(ax_stats)

    if genres.empty:
        ax_genre.text(0.5, 0.5, "No checkouts yet", ha="center", va="center")
        ax_genre.set_axis_off()
    else:
        sns.barplot(data=genres.head(15), x="Genre", y="Checkouts", ax=ax_genre, color="seagreen")
        ax_genre.set_title("Checkouts by Genre")
        ax_genre.set_xlabel("")
        ax_genre.tick_params(axis="x", rotation=30)
        label_bars(ax_genre)

    fig.suptitle(f"Library dashboard ({engine.today().isoformat()})")
    return save_figure(fig, path)


# -------------------- Orchestrator -------------------- #
def export_reports(engine: RuleEngine, out_dir) -> dict:
    """
    Write every report to `out_dir`.

    CSV aggregates go to `out_dir/aggregates/`, the dashboard to
    `out_dir/plots/statistics_dashboard.png`, and an Excel workbook with
    the same tables is attempted at `out_dir/aggregates/library_reports.xlsx`.

    Returns:
        Dict with keys: csv (list of paths), dashboard (path or None),
        excel (path or None), excel_error (str or None).
    """
    out_dir = Path(out_dir)
    agg_dir = out_dir / "aggregates"
    agg_dir.mkdir(parents=True, exist_ok=True)

    tables = {
        "statistics": statistics_frame(engine),
        "inventory": inventory_report(engine),
        "members": member_summary(engine),
        "checkouts": checkouts_report(engine),
        "overdue": overdue_report(engine),
        "genres": genre_summary(engine),
    }
    csv_paths = []
    for name, df in tables.items():
        path = agg_dir / f"{name}.csv"
        df.to_csv(path, index=False)
        csv_paths.append(path)
    logger.info("Wrote %d report tables to %s", len(csv_paths), agg_dir)

    dashboard = None
    try:
        dashboard = create_dashboard(engine, out_dir / "plots" / "statistics_dashboard.png")
    except (ValueError, OSError) as e:
        logger.warning("Could not render statistics dashboard: %s", e)

    excel_path = agg_dir / "library_reports.xlsx"
    err = write_workbook(tables, excel_path)
    if err is not None:
        logger.info("Excel export skipped (%s); CSV reports are available", err)

    return {
        "csv": csv_paths,
        "dashboard": dashboard,
        "excel": excel_path if err is None else None,
        "excel_error": err,
    }


# -------------------- CLI -------------------- #
def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Library checkout reports")
    parser.add_argument("--data-dir", default=None, help="Folder holding the library CSV files")
    parser.add_argument("--out", default="library_reports", help="Output folder for tables & plots")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s: %(message)s")
    engine = RuleEngine(CsvPersistenceGateway(args.data_dir))
    result = export_reports(engine, args.out)
    print("Saved reports to:", Path(args.out).resolve())
    for p in result["csv"]:
        print(" -", p)
    if result["dashboard"]:
        print(" -", result["dashboard"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
