#!/usr/bin/env python3
"""
library_cli.py

Interactive text menu over the checkout RuleEngine.
"""

from __future__ import annotations
import argparse
import logging
from typing import Iterable, List, Optional

from library_checkout import (
    DEFAULT_LOAN_DAYS,
    Book,
    Checkout,
    LibraryDesk,
    Member,
    MemberStatus,
    RuleEngine,
)
from library_reports import export_reports
from library_storage import CsvPersistenceGateway

logger = logging.getLogger("LibraryCheckout")

SAMPLE_BOOKS = [
    ("978-0-13-468599-1", "Clean Code", "Robert C. Martin", "Programming", 3),
    ("978-0-13-468750-6", "The Pragmatic Programmer", "David Thomas", "Programming", 2),
    ("978-0-13-468751-3", "Design Patterns", "Gang of Four", "Programming", 1),
    ("978-0-07-149143-0", "Thinking in Java", "Bruce Eckel", "Programming", 2),
    ("978-0-59-651298-4", "Head First Java", "Kathy Sierra", "Programming", 4),
]

SAMPLE_MEMBERS = [
    ("M001", "John Doe", "john@example.com", "732-555-1001"),
    ("M002", "Jane Smith", "jane@example.com", "609-555-1002"),
    ("M003", "Bob Johnson", "bob@example.com", "848-555-1003"),
]


class SessionEnded(Exception):
    """Raised when stdin is closed or the user interrupts a prompt."""


def seed_sample_data(engine: RuleEngine) -> bool:
    """
    Populate an empty library with a few books and members.

    Returns True if data was added, False if the library already had content.
    """
    if engine.total_books() > 0 or engine.total_members() > 0:
        return False
    for isbn, title, author, genre, copies in SAMPLE_BOOKS:
        engine.add_book(Book(isbn, title, author, genre, copies))
    for member_id, name, email, phone in SAMPLE_MEMBERS:
        engine.add_member(Member(member_id, name, email, phone))
    return True


# ---------------- Formatting ----------------
def format_book(b: Book) -> str:
    return f"{b.isbn}: {b.title} | {b.author} | {b.genre} | {b.available_copies}/{b.total_copies} available"


def format_member(m: Member) -> str:
    return f"{m.member_id}: {m.name} | {m.email} | {m.phone} | {m.status.value} | max {m.max_checkouts}"


def format_checkout(c: Checkout) -> str:
    returned = f" | returned {c.return_date.isoformat()}" if c.return_date else ""
    return (f"{c.checkout_id}: member {c.member_id} | {c.isbn} | out {c.checkout_date.isoformat()}"
            f" | due {c.due_date.isoformat()} | {c.status.value}{returned}")


def print_rows(title: str, rows: Iterable, formatter, empty: str) -> None:
    rows = list(rows)
    if not rows:
        print(empty)
        return
    print(f"\n--- {title} ({len(rows)}) ---")
    for r in rows:
        print(formatter(r))


# ---------------- Input ----------------
def input_prompt(prompt: str) -> str:
    """
    Wrapper around built-in input() that returns a stripped string.

    Raises SessionEnded on EOF/KeyboardInterrupt so the menu loop can exit.
    """
    try:
        return input(prompt).strip()
    except (EOFError, KeyboardInterrupt):
        print()
        raise SessionEnded() from None


def input_int(prompt: str, default: Optional[int] = None) -> Optional[int]:
    raw = input_prompt(prompt)
    if raw == "" and default is not None:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"Not a number: {raw!r}")
        return None


# ---------------- Menus ----------------
def print_main_menu() -> None:
    print("\n========== LIBRARY CHECKOUT SYSTEM ==========")
    print("1. Book Management")
    print("2. Member Management")
    print("3. Checkout Operations")
    print("4. View Statistics")
    print("5. Export reports")
    print("0. Exit")


def book_menu(desk: LibraryDesk) -> None:
    engine = desk.engine
    while True:
        print("\n--- Book Management ---")
        print("1. View all books")
        print("2. Search by title")
        print("3. Search by author")
        print("4. Show available books")
        print("5. Add new book")
        print("6. Add copies to a book")
        print("0. Back to main menu")
        choice = input_prompt("Choose (0-6): ")
        if choice == "0":
            return
        elif choice == "1":
            print_rows("All Books", engine.list_books(), format_book, "No books in library.")
        elif choice == "2":
            kw = input_prompt("Title keyword: ")
            print_rows("Search Results", engine.search_by_title(kw), format_book, "No books found.")
        elif choice == "3":
            kw = input_prompt("Author name: ")
            print_rows("Search Results", engine.search_by_author(kw), format_book, "No books found.")
        elif choice == "4":
            print_rows("Available Books", engine.list_available_books(), format_book,
                       "No books available.")
        elif choice == "5":
            isbn = input_prompt("ISBN: ")
            title = input_prompt("Title: ")
            author = input_prompt("Author: ")
            genre = input_prompt("Genre: ")
            copies = input_int("Number of copies (default 1): ", default=1)
            if copies is None:
                continue
            ok, msg = desk.add_book(isbn, title, author, genre, copies)
            print(msg if ok else f"Error: {msg}")
        elif choice == "6":
            isbn = input_prompt("ISBN: ")
            count = input_int("Copies to add: ")
            if count is None:
                continue
            ok, msg = desk.add_copies(isbn, count)
            print(msg if ok else f"Error: {msg}")
        else:
            print("Unknown choice. Try again.")


def member_menu(desk: LibraryDesk) -> None:
    engine = desk.engine
    while True:
        print("\n--- Member Management ---")
        print("1. View all members")
        print("2. Add new member")
        print("3. Update member contact info")
        print("4. Update member status")
        print("5. Set member checkout limit")
        print("6. View member checkouts")
        print("0. Back to main menu")
        choice = input_prompt("Choose (0-6): ")
        if choice == "0":
            return
        elif choice == "1":
            print_rows("All Members", engine.list_members(), format_member, "No members in library.")
        elif choice == "2":
            mid = input_prompt("Member ID: ")
            name = input_prompt("Name: ")
            email = input_prompt("Email: ")
            phone = input_prompt("Phone: ")
            ok, msg = desk.add_member(mid, name, email, phone)
            print(msg if ok else f"Error: {msg}")
        elif choice == "3":
            mid = input_prompt("Member ID: ")
            member = engine.get_member(mid)
            if member is None:
                print("Member not found!")
                continue
            print(f"Current info - Email: {member.email}, Phone: {member.phone}")
            email = input_prompt("New email (Enter to keep current): ")
            phone = input_prompt("New phone (Enter to keep current): ")
            ok, msg = desk.update_member(mid, email, phone)
            print(msg if ok else f"Error: {msg}")
        elif choice == "4":
            mid = input_prompt("Member ID: ")
            statuses = list(MemberStatus)
            for i, s in enumerate(statuses, start=1):
                print(f"{i}. {s.value}")
            pick = input_int(f"Select status (1-{len(statuses)}): ")
            if pick is None or not 1 <= pick <= len(statuses):
                print("Invalid status.")
                continue
            ok, msg = desk.update_status(mid, statuses[pick - 1])
            print(msg if ok else f"Error: {msg}")
        elif choice == "5":
            mid = input_prompt("Member ID: ")
            limit = input_int("Maximum concurrent checkouts: ")
            if limit is None:
                continue
            ok, res = desk.run(engine.update_member_limit, mid, limit)
            if not ok:
                print(f"Error: {res}")
            else:
                print("Checkout limit updated." if res else "Member not found!")
        elif choice == "6":
            mid = input_prompt("Member ID: ")
            print_rows("Member Checkouts", engine.member_checkouts(mid), format_checkout,
                       "No checkouts for this member.")
        else:
            print("Unknown choice. Try again.")


def print_overdue(engine: RuleEngine) -> None:
    engine.refresh_overdue()
    overdue: List[Checkout] = engine.overdue_checkouts()
    if not overdue:
        print("No overdue checkouts.")
        return
    print(f"\n--- Overdue Checkouts ({len(overdue)}) ---")
    for c in overdue:
        days = engine.overdue_days(c.checkout_id)
        fee = engine.overdue_fee(c.checkout_id)
        print(f"{format_checkout(c)} - Overdue by {days} days - Fee: ${fee:.2f}")


def print_checkout_details(engine: RuleEngine, checkout_id: str) -> None:
    c = engine.get_checkout(checkout_id)
    if c is None:
        print(f"Checkout not found: {checkout_id}")
        return
    book = engine.get_book(c.isbn)
    member = engine.get_member(c.member_id)
    print(f"Checkout ID: {c.checkout_id}")
    print(f"Member: {member.name if member else '?'} ({c.member_id})")
    print(f"Book: {book.title if book else '?'} ({c.isbn})")
    print(f"Checkout Date: {c.checkout_date.isoformat()}")
    print(f"Due Date: {c.due_date.isoformat()}")
    print(f"Status: {c.status.value}")
    print(f"Renewals: {c.renewals}")
    print(f"Overdue Days: {engine.overdue_days(c.checkout_id)}")
    print(f"Fee: ${engine.overdue_fee(c.checkout_id):.2f}")


def checkout_menu(desk: LibraryDesk) -> None:
    engine = desk.engine
    while True:
        print("\n--- Checkout Operations ---")
        print("1. Checkout book")
        print("2. Return book")
        print("3. Renew checkout")
        print("4. View member active checkouts")
        print("5. View all active checkouts")
        print("6. View overdue checkouts")
        print("7. View checkout details")
        print("0. Back to main menu")
        choice = input_prompt("Choose (0-7): ")
        if choice == "0":
            return
        elif choice == "1":
            mid = input_prompt("Member ID: ")
            isbn = input_prompt("ISBN: ")
            ok, msg = desk.checkout(mid, isbn)
            print(msg if ok else f"Error: {msg}")
        elif choice == "2":
            cid = input_prompt("Checkout ID: ")
            ok, msg = desk.return_book(cid)
            print(msg if ok else f"Error: {msg}")
        elif choice == "3":
            cid = input_prompt("Checkout ID: ")
            ok, msg = desk.renew(cid)
            print(msg if ok else f"Error: {msg}")
        elif choice == "4":
            mid = input_prompt("Member ID: ")
            print_rows("Active Checkouts", engine.active_checkouts(mid), format_checkout,
                       "No active checkouts for this member.")
        elif choice == "5":
            print_rows("Active Checkouts", engine.all_active_checkouts(), format_checkout,
                       "No active checkouts.")
        elif choice == "6":
            print_overdue(engine)
        elif choice == "7":
            print_checkout_details(engine, input_prompt("Checkout ID: "))
        else:
            print("Unknown choice. Try again.")


def cli_loop(desk: LibraryDesk, report_dir: str = "library_reports") -> None:
    """
    Interactive command-loop for the checkout system.

    Presents the main menu and dispatches to the submenus until the user
    exits or stdin closes. Every change is already persisted by the engine.
    """
    try:
        while True:
            print_main_menu()
            choice = input_prompt("Choose (0-5): ")
            if choice == "0":
                break
            elif choice == "1":
                book_menu(desk)
            elif choice == "2":
                member_menu(desk)
            elif choice == "3":
                checkout_menu(desk)
            elif choice == "4":
                desk.engine.print_statistics()
            elif choice == "5":
                result = export_reports(desk.engine, report_dir)
                print(f"Saved {len(result['csv'])} report tables to {report_dir}")
                if result["dashboard"]:
                    print("Dashboard:", result["dashboard"])
            else:
                print("Unknown choice. Try again.")
    except SessionEnded:
        logger.debug("Input closed; leaving menu")
    print("Goodbye.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Library checkout manager (text menu)")
    parser.add_argument("--data-dir", default=None, help="Folder holding the library CSV files")
    parser.add_argument("--loan-days", type=int, default=DEFAULT_LOAN_DAYS,
                        help=f"Loan period in days (default {DEFAULT_LOAN_DAYS})")
    parser.add_argument("--no-sample-data", action="store_true",
                        help="Do not seed sample books/members into an empty library")
    parser.add_argument("--report-dir", default="library_reports",
                        help="Output folder for exported reports")
    parser.add_argument("--export", action="store_true",
                        help="Export reports to --report-dir and exit without the menu")
    parser.add_argument("--log-level", default="INFO",
                        help="Logging level (DEBUG, INFO, WARNING, ...)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s: %(message)s")

    gateway = CsvPersistenceGateway(args.data_dir)
    engine = RuleEngine(gateway, loan_days=args.loan_days)
    if gateway.load_failed:
        print(f"Warning: library data in {gateway.data_dir} could not be loaded; "
              "changes in this session will not be saved.")
    elif not (args.no_sample_data or args.export) and seed_sample_data(engine):
        print("Sample data initialized.")

    if args.export:
        result = export_reports(engine, args.report_dir)
        print(f"Saved {len(result['csv'])} report tables to {args.report_dir}")
        return 0

    print("Welcome - library data loaded (if present).")
    cli_loop(LibraryDesk(engine), args.report_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
