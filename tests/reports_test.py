import pandas as pd

from library_checkout import Book, Member
from library_reports import (
    export_reports,
    genre_summary,
    inventory_report,
    member_summary,
    most_popular_genre,
    overdue_report,
    statistics_frame,
)


def test_reports_on_empty_library(clock):
    from library_checkout import RuleEngine
    eng = RuleEngine(today=clock)
    assert overdue_report(eng).empty
    assert genre_summary(eng).empty
    assert most_popular_genre(eng) is None
    assert statistics_frame(eng)["Value"].sum() == 0


def test_overdue_report_matches_engine_fees(engine, clock):
    a = engine.checkout_book("M1", "Y")
    clock.advance(2)
    b = engine.checkout_book("M2", "X")
    c = engine.checkout_book("M2", "Y")
    engine.return_book(c.checkout_id)
    clock.advance(20)

    report = overdue_report(engine)
    assert list(report["Checkout ID"]) == [a.checkout_id, b.checkout_id]
    for _, row in report.iterrows():
        assert row["Fee"] == engine.overdue_fee(row["Checkout ID"])
        assert row["Overdue Days"] == engine.overdue_days(row["Checkout ID"])
    assert list(report["Name"]) == ["Ada Lovelace", "Grace Hopper"]
    # query only: nothing relabelled
    assert a.status.name == "ACTIVE"


def test_genre_summary_counts_history(engine):
    engine.add_book(Book("Z", "Neuromancer", "William Gibson", "Sci-Fi", 2))
    engine.add_member(Member("M3", "Alan Turing"))
    for member, isbn in [("M1", "Y"), ("M2", "Z"), ("M3", "X")]:
        engine.checkout_book(member, isbn)
    counts = genre_summary(engine)
    assert counts.to_dict(orient="records") == [
        {"Genre": "Sci-Fi", "Checkouts": 2},
        {"Genre": "Programming", "Checkouts": 1},
    ]
    assert most_popular_genre(engine) == "Sci-Fi"


def test_inventory_and_member_summary(engine, clock):
    engine.checkout_book("M1", "Y")
    clock.advance(16)
    inv = inventory_report(engine).set_index("ISBN")
    assert inv.loc["Y", "Checked Out Copies"] == 1
    assert inv.loc["X", "Checked Out Copies"] == 0

    summary = member_summary(engine).set_index("Member ID")
    assert summary.loc["M1", "Active Checkouts"] == 1
    assert summary.loc["M1", "Overdue Checkouts"] == 1
    assert summary.loc["M1", "Outstanding Fees"] == 2.0
    assert summary.loc["M2", "Checkout IDs"] == ""


def test_export_reports_writes_tables_and_dashboard(engine, tmp_path):
    engine.checkout_book("M1", "Y")
    result = export_reports(engine, tmp_path / "out")

    names = sorted(p.name for p in result["csv"])
    assert names == ["checkouts.csv", "genres.csv", "inventory.csv",
                     "members.csv", "overdue.csv", "statistics.csv"]
    stats = pd.read_csv(tmp_path / "out" / "aggregates" / "statistics.csv")
    assert dict(zip(stats["Metric"], stats["Value"]))["Active Checkouts"] == 1
    assert result["dashboard"].exists()
    assert result["dashboard"].suffix == ".png"
    assert (result["excel"] is None) == (result["excel_error"] is not None)
