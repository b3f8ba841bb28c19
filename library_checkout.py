"""
library_checkout.py
"""

from __future__ import annotations
import datetime
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from library_errors import (
    IntegrityError,
    InvalidStateError,
    LibraryError,
    LimitExceededError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)

# Configuration
DEFAULT_LOAN_DAYS = 14
OVERDUE_FEE_PER_DAY = 1.0
DEFAULT_MAX_CHECKOUTS = 5
CHECKOUT_ID_PREFIX = "CO"
CHECKOUT_ID_DIGITS = 6

logger = logging.getLogger("LibraryCheckout")


def _as_int(value, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a whole number, got {value!r}") from None


class MemberStatus(enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"

    @classmethod
    def parse(cls, raw) -> "MemberStatus":
        """
        Accept an enum member, its name or its label (case-insensitive).

        Raises ValidationError for anything else.
        """
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().lower()
        for status in cls:
            if text in (status.name.lower(), status.value.lower()):
                return status
        raise ValidationError(f"Unknown member status: {raw!r}")


class CheckoutStatus(enum.Enum):
    ACTIVE = "Active"
    RETURNED = "Returned"
    OVERDUE = "Overdue"

    @classmethod
    def parse(cls, raw) -> "CheckoutStatus":
        if isinstance(raw, cls):
            return raw
        text = str(raw or "").strip().lower()
        for status in cls:
            if text in (status.name.lower(), status.value.lower()):
                return status
        raise ValidationError(f"Unknown checkout status: {raw!r}")


# ---------------- Records ----------------
@dataclass
class Book:
    """
    A catalog title with a pool of physical copies.

    `available_copies` defaults to `total_copies` and must stay within
    0..total_copies.
    """

    isbn: str
    title: str
    author: str
    genre: str = ""
    total_copies: int = 1
    available_copies: Optional[int] = None

    def __post_init__(self) -> None:
        self.isbn = str(self.isbn or "").strip()
        if not self.isbn:
            raise ValidationError("ISBN is required")
        self.total_copies = _as_int(self.total_copies, "Total copies")
        if self.total_copies < 0:
            raise ValidationError("Total copies cannot be negative")
        if self.available_copies is None:
            self.available_copies = self.total_copies
        self.available_copies = _as_int(self.available_copies, "Available copies")
        if not 0 <= self.available_copies <= self.total_copies:
            raise ValidationError(
                f"Available copies must be between 0 and {self.total_copies}")

    @property
    def checked_out_copies(self) -> int:
        return self.total_copies - self.available_copies

    def checkout_copy(self) -> bool:
        if self.available_copies > 0:
            self.available_copies -= 1
            return True
        return False

    def return_copy(self) -> bool:
        if self.available_copies < self.total_copies:
            self.available_copies += 1
            return True
        return False

    def add_copies(self, count: int) -> None:
        count = _as_int(count, "Copies")
        if count < 0:
            raise ValidationError("Cannot add negative copies")
        self.total_copies += count
        self.available_copies += count


@dataclass
class Member:
    """A library member; only ACTIVE members may check out books."""

    member_id: str
    name: str
    email: str = ""
    phone: str = ""
    status: MemberStatus = MemberStatus.ACTIVE
    max_checkouts: int = DEFAULT_MAX_CHECKOUTS

    def __post_init__(self) -> None:
        self.member_id = str(self.member_id or "").strip()
        if not self.member_id:
            raise ValidationError("Member ID is required")
        self.status = MemberStatus.parse(self.status)
        self.max_checkouts = _as_int(self.max_checkouts, "Max checkouts")
        if self.max_checkouts < 0:
            raise ValidationError("Max checkouts cannot be negative")

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE


@dataclass
class Checkout:
    """
    One loan of one book copy to one member.

    The due date is always `checkout_date + days_allowed`. A loan stays
    outstanding until it is RETURNED; the OVERDUE status is only a label
    written by an explicit overdue refresh and does not end the loan.
    """

    checkout_id: str
    member_id: str
    isbn: str
    checkout_date: datetime.date
    days_allowed: int = DEFAULT_LOAN_DAYS
    due_date: Optional[datetime.date] = None
    return_date: Optional[datetime.date] = None
    status: CheckoutStatus = CheckoutStatus.ACTIVE
    renewals: int = 0

    def __post_init__(self) -> None:
        if not self.checkout_id:
            raise ValidationError("Checkout ID is required")
        self.days_allowed = _as_int(self.days_allowed, "Days allowed")
        if self.days_allowed < 0:
            raise ValidationError("Days allowed cannot be negative")
        expected_due = self.checkout_date + datetime.timedelta(days=self.days_allowed)
        if self.due_date is None:
            self.due_date = expected_due
        elif self.due_date != expected_due:
            raise ValidationError(
                f"Checkout {self.checkout_id}: due date {self.due_date} does not match "
                f"{self.checkout_date} + {self.days_allowed} days")
        self.status = CheckoutStatus.parse(self.status)

    @property
    def is_outstanding(self) -> bool:
        return self.status != CheckoutStatus.RETURNED

    def is_overdue(self, today: datetime.date) -> bool:
        return self.is_outstanding and today > self.due_date

    def overdue_days(self, today: datetime.date) -> int:
        if self.is_overdue(today):
            return (today - self.due_date).days
        return 0

    def mark_returned(self, when: datetime.date) -> None:
        if not self.is_outstanding:
            raise InvalidStateError(f"Checkout {self.checkout_id} is not active")
        self.return_date = when
        self.status = CheckoutStatus.RETURNED

    def mark_overdue(self, today: datetime.date) -> bool:
        """Write the OVERDUE label onto an ACTIVE, past-due loan. Returns True if the label changed."""
        if self.status == CheckoutStatus.ACTIVE and self.is_overdue(today):
            self.status = CheckoutStatus.OVERDUE
            return True
        return False

    def extend(self, days: int) -> None:
        self.days_allowed += days
        self.due_date = self.due_date + datetime.timedelta(days=days)
        self.renewals += 1


# ---------------- Stores ----------------
class Catalog:
    """Books keyed by ISBN."""

    def __init__(self) -> None:
        self._books: Dict[str, Book] = {}

    def __len__(self) -> int:
        return len(self._books)

    def insert(self, book: Optional[Book]) -> None:
        if book is None:
            raise ValidationError("Book cannot be empty")
        self._books[book.isbn] = book

    def remove(self, isbn: str) -> None:
        self._books.pop(isbn, None)

    def find(self, isbn: str) -> Optional[Book]:
        return self._books.get(isbn)

    def search_by_title(self, keyword: str) -> List[Book]:
        """Case-insensitive substring match on title, sorted by title."""
        kw = (keyword or "").lower()
        return sorted((b for b in self._books.values() if kw in b.title.lower()),
                      key=lambda b: b.title)

    def search_by_author(self, keyword: str) -> List[Book]:
        kw = (keyword or "").lower()
        return [b for b in self._books.values() if kw in b.author.lower()]

    def list_all(self) -> List[Book]:
        return sorted(self._books.values(), key=lambda b: b.title)

    def list_available(self) -> List[Book]:
        return [b for b in self._books.values() if b.available_copies > 0]

    def checkout_copy(self, isbn: str) -> bool:
        book = self._books.get(isbn)
        return book is not None and book.checkout_copy()

    def return_copy(self, isbn: str) -> bool:
        book = self._books.get(isbn)
        return book is not None and book.return_copy()

    def add_copies(self, isbn: str, count: int) -> Book:
        book = self._books.get(isbn)
        if book is None:
            raise NotFoundError(f"Book not found: {isbn}")
        book.add_copies(count)
        return book


class Roster:
    """Members keyed by member ID. Updates on unknown members are no-ops."""

    def __init__(self) -> None:
        self._members: Dict[str, Member] = {}

    def __len__(self) -> int:
        return len(self._members)

    def insert(self, member: Optional[Member]) -> None:
        if member is None:
            raise ValidationError("Member cannot be empty")
        self._members[member.member_id] = member

    def remove(self, member_id: str) -> None:
        self._members.pop(member_id, None)

    def find(self, member_id: str) -> Optional[Member]:
        return self._members.get(member_id)

    def list_all(self) -> List[Member]:
        return sorted(self._members.values(), key=lambda m: m.name)

    def update_contact(self, member_id: str, email: Optional[str] = None,
                       phone: Optional[str] = None) -> bool:
        """
        Update only the non-empty contact fields supplied.

        Returns True if the member exists, False otherwise.
        """
        member = self._members.get(member_id)
        if member is None:
            return False
        if email:
            member.email = email
        if phone:
            member.phone = phone
        return True

    def update_status(self, member_id: str, status) -> bool:
        member = self._members.get(member_id)
        if member is None:
            return False
        member.status = MemberStatus.parse(status)
        return True

    def update_max_checkouts(self, member_id: str, limit: int) -> bool:
        limit = _as_int(limit, "Max checkouts")
        if limit < 0:
            raise ValidationError("Max checkouts cannot be negative")
        member = self._members.get(member_id)
        if member is None:
            return False
        member.max_checkouts = limit
        return True


class CheckoutLedger:
    """
    Checkout records keyed by checkout ID, plus a per-member history index
    that keeps insertion order.
    """

    def __init__(self) -> None:
        self._records: Dict[str, Checkout] = {}
        self._by_member: Dict[str, List[str]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def record(self, checkout: Checkout) -> None:
        if checkout.checkout_id not in self._records:
            self._by_member.setdefault(checkout.member_id, []).append(checkout.checkout_id)
        self._records[checkout.checkout_id] = checkout

    def get(self, checkout_id: str) -> Optional[Checkout]:
        return self._records.get(checkout_id)

    def all(self) -> List[Checkout]:
        return list(self._records.values())

    def history_for_member(self, member_id: str) -> List[Checkout]:
        return [self._records[cid] for cid in self._by_member.get(member_id, [])]

    def active_for_member(self, member_id: str) -> List[Checkout]:
        return [c for c in self.history_for_member(member_id) if c.is_outstanding]

    def for_isbn(self, isbn: str) -> List[Checkout]:
        return [c for c in self._records.values() if c.isbn == isbn]

    def all_active(self) -> List[Checkout]:
        return [c for c in self._records.values() if c.is_outstanding]

    def all_overdue(self, today: datetime.date) -> List[Checkout]:
        """Outstanding loans past their due date, earliest due first. Does not modify records."""
        overdue = [c for c in self._records.values() if c.is_overdue(today)]
        return sorted(overdue, key=lambda c: c.due_date)

    def mark_overdue(self, today: datetime.date) -> List[Checkout]:
        """Label every ACTIVE, past-due loan as OVERDUE and return the ones that changed."""
        return [c for c in self.all_overdue(today) if c.mark_overdue(today)]


# ---------------- Rule engine ----------------
class RuleEngine:
    """
    RuleEngine enforces the checkout, return, renewal and fee rules across
    the Catalog, Roster and CheckoutLedger.

    Every mutating call writes the full state through the persistence
    gateway (if one is configured). The gateway is loaded once on
    construction; it must offer `load()` returning an object with `books`,
    `members`, `checkouts` and `checkout_counter`, and
    `save(books, members, checkouts, checkout_counter)`.
    """

    def __init__(self,
                 gateway=None,
                 loan_days: int = DEFAULT_LOAN_DAYS,
                 fee_per_day: float = OVERDUE_FEE_PER_DAY,
                 today: Optional[Callable[[], datetime.date]] = None):
        """
        Initialize the RuleEngine.

        Args:
            gateway: persistence collaborator, or None for a purely in-memory engine.
            loan_days: loan period applied to new checkouts and renewals.
            fee_per_day: overdue fee charged per whole day past the due date.
            today: callable returning the current date; defaults to `datetime.date.today`.
        """
        self.catalog = Catalog()
        self.roster = Roster()
        self.ledger = CheckoutLedger()
        self.gateway = gateway
        self.loan_days = int(loan_days)
        self.fee_per_day = float(fee_per_day)
        self._today = today or datetime.date.today
        self.checkout_counter = 0
        self._load()

    # ---------------- Persistence ----------------
    def _load(self) -> None:
        if self.gateway is None:
            return
        snapshot = self.gateway.load()
        for book in snapshot.books:
            self.catalog.insert(book)
        for member in snapshot.members:
            self.roster.insert(member)
        for checkout in snapshot.checkouts:
            self.ledger.record(checkout)
        self.checkout_counter = int(snapshot.checkout_counter)
        logger.info("Loaded %d books, %d members, %d checkouts (counter=%d)",
                    len(self.catalog), len(self.roster), len(self.ledger), self.checkout_counter)

    def save(self) -> None:
        if self.gateway is None:
            return
        self.gateway.save(self.catalog.list_all(), self.roster.list_all(),
                          self.ledger.all(), self.checkout_counter)

    def today(self) -> datetime.date:
        return self._today()

    def _next_checkout_id(self) -> str:
        self.checkout_counter += 1
        return f"{CHECKOUT_ID_PREFIX}{self.checkout_counter:0{CHECKOUT_ID_DIGITS}d}"

    # ---------------- Books ----------------
    def add_book(self, book: Optional[Book]) -> Book:
        self.catalog.insert(book)
        logger.info("Added book %s (%s)", book.isbn, book.title)
        self.save()
        return book

    def add_copies(self, isbn: str, count: int) -> Book:
        book = self.catalog.add_copies(isbn, count)
        logger.info("Added %s copies of %s (now %d/%d)", count, isbn,
                    book.available_copies, book.total_copies)
        self.save()
        return book

    def get_book(self, isbn: str) -> Optional[Book]:
        return self.catalog.find(isbn)

    def list_books(self) -> List[Book]:
        return self.catalog.list_all()

    def list_available_books(self) -> List[Book]:
        return self.catalog.list_available()

    def search_by_title(self, keyword: str) -> List[Book]:
        return self.catalog.search_by_title(keyword)

    def search_by_author(self, keyword: str) -> List[Book]:
        return self.catalog.search_by_author(keyword)

    # ---------------- Members ----------------
    def add_member(self, member: Optional[Member]) -> Member:
        self.roster.insert(member)
        logger.info("Registered member %s (%s)", member.member_id, member.name)
        self.save()
        return member

    def get_member(self, member_id: str) -> Optional[Member]:
        return self.roster.find(member_id)

    def list_members(self) -> List[Member]:
        return self.roster.list_all()

    def update_member_contact(self, member_id: str, email: Optional[str] = None,
                              phone: Optional[str] = None) -> bool:
        if self.roster.update_contact(member_id, email, phone):
            logger.info("Updated contact info for %s", member_id)
            self.save()
            return True
        logger.debug("Contact update for unknown member %s ignored", member_id)
        return False

    def update_member_status(self, member_id: str, status) -> bool:
        if self.roster.update_status(member_id, status):
            logger.info("Member %s status -> %s", member_id, self.roster.find(member_id).status.value)
            self.save()
            return True
        logger.debug("Status update for unknown member %s ignored", member_id)
        return False

    def update_member_limit(self, member_id: str, limit: int) -> bool:
        if self.roster.update_max_checkouts(member_id, limit):
            logger.info("Member %s checkout limit -> %d", member_id,
                        self.roster.find(member_id).max_checkouts)
            self.save()
            return True
        return False

    # ---------------- Checkouts ----------------
    def checkout_book(self, member_id: str, isbn: str) -> Checkout:
        """
        Lend one copy of `isbn` to `member_id`.

        Raises NotFoundError, InvalidStateError, LimitExceededError or
        UnavailableError; state is untouched when any of them is raised.
        """
        member = self.roster.find(member_id)
        if member is None:
            raise NotFoundError(f"Member not found: {member_id}")
        book = self.catalog.find(isbn)
        if book is None:
            raise NotFoundError(f"Book not found: {isbn}")
        if not member.is_active:
            raise InvalidStateError(f"Member {member_id} is not active ({member.status.value})")

        active = len(self.ledger.active_for_member(member_id))
        if active >= member.max_checkouts:
            raise LimitExceededError(
                f"Member {member_id} has reached maximum checkouts ({member.max_checkouts})")

        if not self.catalog.checkout_copy(isbn):
            raise UnavailableError(f"Book '{book.title}' ({isbn}) is not available")

        checkout = Checkout(
            checkout_id=self._next_checkout_id(),
            member_id=member_id,
            isbn=isbn,
            checkout_date=self.today(),
            days_allowed=self.loan_days,
        )
        self.ledger.record(checkout)
        logger.info("Checked out %s to %s until %s (%s)",
                    isbn, member_id, checkout.due_date, checkout.checkout_id)
        self.save()
        return checkout

    def return_book(self, checkout_id: str) -> Checkout:
        checkout = self.ledger.get(checkout_id)
        if checkout is None:
            raise NotFoundError(f"Checkout not found: {checkout_id}")
        if not checkout.is_outstanding:
            raise InvalidStateError(f"Checkout {checkout_id} is not active")
        book = self.catalog.find(checkout.isbn)
        if book is None:
            raise IntegrityError(f"Book {checkout.isbn} for checkout {checkout_id} no longer exists")

        checkout.mark_returned(self.today())
        if not book.return_copy():
            # book was re-added while this copy was out; counts are already full
            logger.warning("All copies of %s already on the shelf; %s returned without restocking",
                           checkout.isbn, checkout_id)
        logger.info("Checkout %s returned (%s by %s)", checkout_id, checkout.isbn, checkout.member_id)
        self.save()
        return checkout

    def renew_checkout(self, checkout_id: str) -> Checkout:
        """
        Extend an on-time loan by one loan period.

        The original checkout date is kept; the due date moves forward from
        its current value.
        """
        checkout = self.ledger.get(checkout_id)
        if checkout is None:
            raise NotFoundError(f"Checkout not found: {checkout_id}")
        if not checkout.is_outstanding:
            raise InvalidStateError(f"Cannot renew inactive checkout {checkout_id}")
        if checkout.is_overdue(self.today()) or checkout.status == CheckoutStatus.OVERDUE:
            raise InvalidStateError(f"Cannot renew overdue checkout {checkout_id}")

        checkout.extend(self.loan_days)
        logger.info("Renewed %s until %s", checkout_id, checkout.due_date)
        self.save()
        return checkout

    def get_checkout(self, checkout_id: str) -> Optional[Checkout]:
        return self.ledger.get(checkout_id)

    def member_checkouts(self, member_id: str) -> List[Checkout]:
        return self.ledger.history_for_member(member_id)

    def active_checkouts(self, member_id: str) -> List[Checkout]:
        return self.ledger.active_for_member(member_id)

    def all_active_checkouts(self) -> List[Checkout]:
        return self.ledger.all_active()

    def overdue_checkouts(self) -> List[Checkout]:
        return self.ledger.all_overdue(self.today())

    def refresh_overdue(self) -> List[Checkout]:
        """Write OVERDUE labels onto past-due loans and persist if any changed."""
        marked = self.ledger.mark_overdue(self.today())
        if marked:
            logger.info("Marked %d checkout(s) overdue", len(marked))
            self.save()
        return marked

    def overdue_days(self, checkout_id: str) -> int:
        checkout = self.ledger.get(checkout_id)
        if checkout is None:
            return 0
        return checkout.overdue_days(self.today())

    def overdue_fee(self, checkout_id: str) -> float:
        return self.overdue_days(checkout_id) * self.fee_per_day

    # ---------------- Statistics ----------------
    def total_books(self) -> int:
        return len(self.catalog)

    def total_available_copies(self) -> int:
        return sum(b.available_copies for b in self.catalog.list_all())

    def total_checked_out_copies(self) -> int:
        return sum(b.checked_out_copies for b in self.catalog.list_all())

    def total_members(self) -> int:
        return len(self.roster)

    def total_active_checkouts(self) -> int:
        return len(self.ledger.all_active())

    def overdue_count(self) -> int:
        return len(self.overdue_checkouts())

    def statistics(self) -> Dict[str, int]:
        return {
            "Total Books": self.total_books(),
            "Available Copies": self.total_available_copies(),
            "Checked Out Copies": self.total_checked_out_copies(),
            "Total Members": self.total_members(),
            "Active Checkouts": self.total_active_checkouts(),
            "Overdue Checkouts": self.overdue_count(),
        }

    def print_statistics(self) -> None:
        print("\n========== LIBRARY STATISTICS ==========")
        for label, value in self.statistics().items():
            print(f"{label}: {value}")
        print("=======================================\n")


# ---------------- Presentation facade ----------------
class LibraryDesk:
    """
    Command surface shared by the text menu and any desktop front end.

    Commands return (success, message) where message is human-readable;
    rule failures never escape as exceptions.
    """

    def __init__(self, engine: RuleEngine):
        self.engine = engine

    @staticmethod
    def run(operation: Callable, *args, **kwargs) -> Tuple[bool, object]:
        """
        Invoke `operation` and translate rule failures.

        Returns (True, result) on success or (False, message) when a
        LibraryError is raised.
        """
        try:
            return True, operation(*args, **kwargs)
        except LibraryError as e:
            logger.debug("Rejected %s: %s", getattr(operation, "__name__", operation), e)
            return False, str(e)

    def add_book(self, isbn: str, title: str, author: str, genre: str, copies: int) -> Tuple[bool, str]:
        ok, res = self.run(lambda: self.engine.add_book(Book(isbn, title, author, genre, copies)))
        if not ok:
            return False, res
        return True, f"Book '{res.title}' added with {res.total_copies} copies."

    def add_copies(self, isbn: str, count: int) -> Tuple[bool, str]:
        ok, res = self.run(self.engine.add_copies, isbn, count)
        if not ok:
            return False, res
        return True, f"Book '{res.title}' now has {res.available_copies}/{res.total_copies} copies available."

    def add_member(self, member_id: str, name: str, email: str = "", phone: str = "") -> Tuple[bool, str]:
        ok, res = self.run(lambda: self.engine.add_member(Member(member_id, name, email, phone)))
        if not ok:
            return False, res
        return True, f"Member {res.member_id} ({res.name}) registered."

    def update_member(self, member_id: str, email: str = "", phone: str = "") -> Tuple[bool, str]:
        if not self.engine.update_member_contact(member_id, email, phone):
            return False, f"Member not found: {member_id}"
        return True, f"Member {member_id} information updated."

    def update_status(self, member_id: str, status) -> Tuple[bool, str]:
        ok, res = self.run(self.engine.update_member_status, member_id, status)
        if not ok:
            return False, res
        if not res:
            return False, f"Member not found: {member_id}"
        return True, f"Member {member_id} status updated."

    def checkout(self, member_id: str, isbn: str) -> Tuple[bool, str]:
        ok, res = self.run(self.engine.checkout_book, member_id, isbn)
        if not ok:
            return False, res
        title = self.engine.get_book(isbn).title
        return True, f"Book '{title}' issued to {member_id} as {res.checkout_id}. Due on {res.due_date.isoformat()}."

    def return_book(self, checkout_id: str) -> Tuple[bool, str]:
        ok, res = self.run(self.engine.return_book, checkout_id)
        if not ok:
            return False, res
        return True, f"Checkout {checkout_id} returned by {res.member_id}."

    def renew(self, checkout_id: str) -> Tuple[bool, str]:
        ok, res = self.run(self.engine.renew_checkout, checkout_id)
        if not ok:
            return False, res
        return True, f"Checkout {checkout_id} renewed. Now due on {res.due_date.isoformat()}."
