"""
library_storage.py

CSV persistence for the checkout system.

The full state is written as one table per record type plus a small
key/value table holding the checkout-ID counter. Every table is written
to a temporary file first and swapped into place, so a failed write
leaves the previous snapshot intact. I/O failures are logged and
swallowed: the in-memory state stays authoritative for the rest of the
process. A snapshot that fails to load is never overwritten.
"""

from __future__ import annotations
import datetime
import logging
import os
import pathlib
import re
from typing import Iterable, List, NamedTuple, Optional

import pandas as pd

from library_checkout import CHECKOUT_ID_PREFIX, Book, Checkout, Member
from library_errors import LibraryError

logger = logging.getLogger("LibraryStorage")

BOOK_COLUMNS = ["ISBN", "Title", "Author", "Genre", "Total Copies", "Available Copies"]
MEMBER_COLUMNS = ["Member ID", "Name", "Email", "Phone", "Status", "Max Checkouts"]
CHECKOUT_COLUMNS = ["Checkout ID", "Member ID", "ISBN", "Checkout Date", "Due Date",
                    "Return Date", "Status", "Days Allowed", "Renewals"]
META_COLUMNS = ["key", "value"]
COUNTER_KEY = "checkout_counter"

_SEQUENCE_RE = re.compile(rf"^{re.escape(CHECKOUT_ID_PREFIX)}(\d+)$")


class Snapshot(NamedTuple):
    books: List[Book]
    members: List[Member]
    checkouts: List[Checkout]
    checkout_counter: int


def empty_snapshot() -> Snapshot:
    return Snapshot([], [], [], 0)


# ---------------- Record <-> DataFrame ----------------
def books_frame(books: Iterable[Book]) -> pd.DataFrame:
    rows = [{"ISBN": b.isbn, "Title": b.title, "Author": b.author, "Genre": b.genre,
             "Total Copies": b.total_copies, "Available Copies": b.available_copies}
            for b in books]
    return pd.DataFrame(rows, columns=BOOK_COLUMNS)


def members_frame(members: Iterable[Member]) -> pd.DataFrame:
    rows = [{"Member ID": m.member_id, "Name": m.name, "Email": m.email, "Phone": m.phone,
             "Status": m.status.name, "Max Checkouts": m.max_checkouts}
            for m in members]
    return pd.DataFrame(rows, columns=MEMBER_COLUMNS)


def checkouts_frame(checkouts: Iterable[Checkout]) -> pd.DataFrame:
    rows = [{"Checkout ID": c.checkout_id, "Member ID": c.member_id, "ISBN": c.isbn,
             "Checkout Date": c.checkout_date.isoformat(),
             "Due Date": c.due_date.isoformat(),
             "Return Date": c.return_date.isoformat() if c.return_date else "",
             "Status": c.status.name, "Days Allowed": c.days_allowed, "Renewals": c.renewals}
            for c in checkouts]
    return pd.DataFrame(rows, columns=CHECKOUT_COLUMNS)


def _parse_date(raw: str) -> Optional[datetime.date]:
    text = str(raw or "").strip()
    if not text:
        return None
    return datetime.date.fromisoformat(text)


def _highest_sequence(checkouts: Iterable[Checkout]) -> int:
    highest = 0
    for c in checkouts:
        m = _SEQUENCE_RE.match(c.checkout_id)
        if m:
            highest = max(highest, int(m.group(1)))
    return highest


class CsvPersistenceGateway:
    """
    Load/save the full library snapshot as CSV files in one directory.

    Missing files on first run are not an error: the snapshot starts empty.
    """

    def __init__(self,
                 data_dir: Optional[str] = None,
                 books_csv: str = "books.csv",
                 members_csv: str = "members.csv",
                 checkouts_csv: str = "checkouts.csv",
                 meta_csv: str = "library_meta.csv"):
        """
        Args:
            data_dir: directory holding the CSV files; defaults to `data/` next to this module.
            books_csv, members_csv, checkouts_csv, meta_csv: file names inside `data_dir`.
        """
        if data_dir is None:
            # Resolve relative to this module so the CLI works from any CWD.
            self.data_dir = pathlib.Path(__file__).resolve().parent / "data"
        else:
            self.data_dir = pathlib.Path(data_dir)
        self.books_csv = self.data_dir / books_csv
        self.members_csv = self.data_dir / members_csv
        self.checkouts_csv = self.data_dir / checkouts_csv
        self.meta_csv = self.data_dir / meta_csv
        self.load_failed = False

    # ---------------- Loading ----------------
    def _read_table(self, path: pathlib.Path, columns: List[str]) -> pd.DataFrame:
        if not path.exists():
            logger.warning("%s not found (starting empty)", path)
            return pd.DataFrame(columns=columns)
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"{path.name} is missing columns: {', '.join(missing)}")
        return df

    def _load_books(self) -> List[Book]:
        df = self._read_table(self.books_csv, BOOK_COLUMNS)
        return [Book(isbn=r["ISBN"], title=r["Title"], author=r["Author"], genre=r["Genre"],
                     total_copies=r["Total Copies"], available_copies=r["Available Copies"])
                for r in df.to_dict(orient="records")]

    def _load_members(self) -> List[Member]:
        df = self._read_table(self.members_csv, MEMBER_COLUMNS)
        return [Member(member_id=r["Member ID"], name=r["Name"], email=r["Email"],
                       phone=r["Phone"], status=r["Status"], max_checkouts=r["Max Checkouts"])
                for r in df.to_dict(orient="records")]

    def _load_checkouts(self) -> List[Checkout]:
        df = self._read_table(self.checkouts_csv, CHECKOUT_COLUMNS)
        return [Checkout(checkout_id=r["Checkout ID"], member_id=r["Member ID"], isbn=r["ISBN"],
                         checkout_date=_parse_date(r["Checkout Date"]),
                         days_allowed=r["Days Allowed"],
                         due_date=_parse_date(r["Due Date"]),
                         return_date=_parse_date(r["Return Date"]),
                         status=r["Status"],
                         renewals=int(r["Renewals"] or 0))
                for r in df.to_dict(orient="records")]

    def _load_counter(self) -> int:
        df = self._read_table(self.meta_csv, META_COLUMNS)
        row = df.loc[df["key"] == COUNTER_KEY]
        if row.empty:
            return 0
        return int(row.iloc[0]["value"] or 0)

    def load(self) -> Snapshot:
        """
        Read the snapshot from disk.

        A corrupt or unreadable snapshot is logged and an empty one returned;
        `load_failed` is then set and later saves leave the files alone.
        The counter is never lower than the highest loaded checkout sequence.
        """
        self.load_failed = False
        try:
            books = self._load_books()
            members = self._load_members()
            checkouts = self._load_checkouts()
            counter = self._load_counter()
        except (OSError, ValueError, TypeError, KeyError, LibraryError):
            logger.exception("Error loading library data from %s (starting empty, files kept read-only)",
                             self.data_dir)
            self.load_failed = True
            return empty_snapshot()
        counter = max(counter, _highest_sequence(checkouts))
        logger.info("Loaded %d books, %d members, %d checkouts from %s",
                    len(books), len(members), len(checkouts), self.data_dir)
        return Snapshot(books, members, checkouts, counter)

    # ---------------- Persisting ----------------
    def _write_table(self, df: pd.DataFrame, path: pathlib.Path, columns: List[str]) -> None:
        tmp_path = path.with_suffix(".tmp")
        df.to_csv(tmp_path, index=False, columns=columns)
        os.replace(tmp_path, path)

    def save(self, books: Iterable[Book], members: Iterable[Member],
             checkouts: Iterable[Checkout], checkout_counter: int) -> bool:
        """
        Overwrite the snapshot on disk.

        Returns True on success. Failures are logged and reported as False,
        never raised. Nothing is written after a failed load.
        """
        if self.load_failed:
            logger.error("Not saving to %s: existing data could not be loaded", self.data_dir)
            return False
        books_df = books_frame(books)
        members_df = members_frame(members)
        checkouts_df = checkouts_frame(checkouts)
        meta_df = pd.DataFrame([{"key": COUNTER_KEY, "value": int(checkout_counter)}],
                               columns=META_COLUMNS)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._write_table(books_df, self.books_csv, BOOK_COLUMNS)
            self._write_table(members_df, self.members_csv, MEMBER_COLUMNS)
            self._write_table(checkouts_df, self.checkouts_csv, CHECKOUT_COLUMNS)
            self._write_table(meta_df, self.meta_csv, META_COLUMNS)
        except OSError:
            logger.exception("Error saving library data to %s", self.data_dir)
            return False
        logger.info("Saved %d books, %d members, %d checkouts to %s",
                    len(books_df), len(members_df), len(checkouts_df), self.data_dir)
        return True
