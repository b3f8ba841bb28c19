import datetime

import pytest

from library_checkout import (
    Book,
    Catalog,
    Checkout,
    CheckoutLedger,
    CheckoutStatus,
    Member,
    MemberStatus,
    Roster,
)
from library_errors import NotFoundError, ValidationError

D = datetime.date


@pytest.fixture
def catalog():
    cat = Catalog()
    cat.insert(Book("1", "python Tricks", "Dan Bader", "Programming", 1))
    cat.insert(Book("2", "Fluent Python", "Luciano Ramalho", "Programming", 2))
    cat.insert(Book("3", "Dune", "Frank Herbert", "Sci-Fi", 0))
    return cat


def test_catalog_insert_requires_book_and_upserts(catalog):
    with pytest.raises(ValidationError):
        catalog.insert(None)
    catalog.insert(Book("3", "Dune Messiah", "Frank Herbert", "Sci-Fi", 1))
    assert len(catalog) == 3
    assert catalog.find("3").title == "Dune Messiah"
    assert catalog.find("nope") is None


def test_search_by_title_is_case_insensitive_and_sorted(catalog):
    titles = [b.title for b in catalog.search_by_title("PYTHON")]
    assert titles == ["Fluent Python", "python Tricks"]


def test_search_by_author(catalog):
    assert [b.isbn for b in catalog.search_by_author("herb")] == ["3"]
    assert catalog.search_by_author("nobody") == []


def test_list_all_sorted_and_available_filtered(catalog):
    assert [b.isbn for b in catalog.list_all()] == ["3", "2", "1"]
    assert sorted(b.isbn for b in catalog.list_available()) == ["1", "2"]


def test_checkout_and_return_copy(catalog):
    assert catalog.checkout_copy("1") is True
    assert catalog.checkout_copy("1") is False
    assert catalog.checkout_copy("missing") is False
    assert catalog.return_copy("1") is True
    assert catalog.return_copy("1") is False


def test_add_copies_and_remove(catalog):
    assert catalog.add_copies("3", 2).available_copies == 2
    with pytest.raises(NotFoundError):
        catalog.add_copies("missing", 1)
    catalog.remove("3")
    catalog.remove("3")
    assert catalog.find("3") is None


def test_roster_updates():
    roster = Roster()
    roster.insert(Member("M2", "Zed", "z@example.com", "1"))
    roster.insert(Member("M1", "Amy", "a@example.com", "2"))
    assert [m.member_id for m in roster.list_all()] == ["M1", "M2"]

    assert roster.update_contact("M1", email="", phone="999") is True
    m = roster.find("M1")
    assert (m.email, m.phone) == ("a@example.com", "999")
    assert roster.update_contact("nobody", email="x@example.com") is False

    assert roster.update_status("M1", MemberStatus.SUSPENDED) is True
    assert roster.find("M1").status == MemberStatus.SUSPENDED
    assert roster.update_status("nobody", "Active") is False

    assert roster.update_max_checkouts("M1", 2) is True
    assert roster.find("M1").max_checkouts == 2
    with pytest.raises(ValidationError):
        roster.update_max_checkouts("M1", -1)


def _co(n, member, due_offset=0, start=D(2024, 1, 1)):
    return Checkout(f"CO{n:06d}", member, "X", start + datetime.timedelta(days=due_offset))


def test_ledger_history_preserves_insertion_order():
    ledger = CheckoutLedger()
    for n, member in [(1, "M1"), (2, "M2"), (3, "M1")]:
        ledger.record(_co(n, member))
    assert [c.checkout_id for c in ledger.history_for_member("M1")] == ["CO000001", "CO000003"]
    assert ledger.history_for_member("unknown") == []
    ledger.record(_co(1, "M1"))
    assert len(ledger.history_for_member("M1")) == 2


def test_ledger_active_filters_returned():
    ledger = CheckoutLedger()
    first, second = _co(1, "M1"), _co(2, "M1")
    ledger.record(first)
    ledger.record(second)
    first.mark_returned(D(2024, 1, 3))
    assert ledger.active_for_member("M1") == [second]
    assert ledger.all_active() == [second]


def test_all_overdue_is_sorted_and_does_not_relabel():
    ledger = CheckoutLedger()
    late = _co(1, "M1", due_offset=5)
    later = _co(2, "M2", due_offset=0)
    on_time = _co(3, "M1", due_offset=30)
    for c in (late, later, on_time):
        ledger.record(c)
    today = D(2024, 1, 25)
    assert ledger.all_overdue(today) == [later, late]
    assert all(c.status == CheckoutStatus.ACTIVE for c in ledger.all())

    marked = ledger.mark_overdue(today)
    assert marked == [later, late]
    assert later.status == CheckoutStatus.OVERDUE
    assert on_time.status == CheckoutStatus.ACTIVE
    # labelled loans are still outstanding and still overdue
    assert ledger.all_overdue(today) == [later, late]
    assert ledger.mark_overdue(today) == []
