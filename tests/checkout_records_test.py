import datetime

import pytest

from library_checkout import Book, Checkout, CheckoutStatus, Member, MemberStatus
from library_errors import InvalidStateError, ValidationError


def test_book_defaults_available_to_total():
    b = Book("111", "Title", "Author", "Genre", 3)
    assert b.available_copies == 3
    assert b.checked_out_copies == 0


@pytest.mark.parametrize("kwargs", [
    dict(isbn="", title="t", author="a"),
    dict(isbn="1", title="t", author="a", total_copies=-1),
    dict(isbn="1", title="t", author="a", total_copies=2, available_copies=3),
    dict(isbn="1", title="t", author="a", total_copies="two"),
])
def test_book_rejects_bad_input(kwargs):
    with pytest.raises(ValidationError):
        Book(**kwargs)


def test_book_copy_counts_stay_in_bounds():
    b = Book("111", "Title", "Author", total_copies=1)
    assert b.return_copy() is False
    assert b.checkout_copy() is True
    assert b.checkout_copy() is False
    assert b.available_copies == 0
    assert b.return_copy() is True
    assert b.available_copies == 1


def test_add_copies_raises_total_and_available():
    b = Book("111", "Title", "Author", total_copies=2)
    b.checkout_copy()
    b.add_copies(3)
    assert (b.available_copies, b.total_copies) == (4, 5)
    with pytest.raises(ValidationError):
        b.add_copies(-1)


def test_member_status_parsing():
    assert Member("M", "n", status="suspended").status == MemberStatus.SUSPENDED
    assert Member("M", "n", status="INACTIVE").status == MemberStatus.INACTIVE
    assert Member("M", "n").is_active
    assert Member("M", "n").max_checkouts == 5
    with pytest.raises(ValidationError):
        Member("M", "n", status="banned")
    with pytest.raises(ValidationError):
        Member("M", "n", max_checkouts=-1)
    with pytest.raises(ValidationError):
        Member(" ", "n")


def test_checkout_due_date_is_checkout_plus_days_allowed():
    c = Checkout("CO000001", "M1", "X", datetime.date(2024, 1, 1))
    assert c.due_date == datetime.date(2024, 1, 15)
    assert c.status == CheckoutStatus.ACTIVE
    with pytest.raises(ValidationError):
        Checkout("CO000002", "M1", "X", datetime.date(2024, 1, 1),
                 days_allowed=14, due_date=datetime.date(2024, 1, 20))


def test_checkout_overdue_days_are_whole_days_after_due():
    c = Checkout("CO000001", "M1", "X", datetime.date(2024, 1, 1))
    assert c.overdue_days(datetime.date(2024, 1, 15)) == 0
    assert not c.is_overdue(datetime.date(2024, 1, 15))
    assert c.overdue_days(datetime.date(2024, 1, 18)) == 3
    c.mark_returned(datetime.date(2024, 1, 18))
    assert c.overdue_days(datetime.date(2024, 1, 30)) == 0


def test_overdue_label_only_applies_to_active_past_due():
    c = Checkout("CO000001", "M1", "X", datetime.date(2024, 1, 1))
    assert c.mark_overdue(datetime.date(2024, 1, 10)) is False
    assert c.mark_overdue(datetime.date(2024, 1, 16)) is True
    assert c.status == CheckoutStatus.OVERDUE
    assert c.is_outstanding
    assert c.mark_overdue(datetime.date(2024, 1, 17)) is False


def test_mark_returned_is_one_way():
    c = Checkout("CO000001", "M1", "X", datetime.date(2024, 1, 1))
    c.mark_returned(datetime.date(2024, 1, 2))
    assert c.return_date == datetime.date(2024, 1, 2)
    with pytest.raises(InvalidStateError):
        c.mark_returned(datetime.date(2024, 1, 3))


def test_extend_keeps_due_date_invariant():
    c = Checkout("CO000001", "M1", "X", datetime.date(2024, 1, 1))
    c.extend(14)
    assert c.checkout_date == datetime.date(2024, 1, 1)
    assert c.due_date == datetime.date(2024, 1, 29)
    assert c.checkout_date + datetime.timedelta(days=c.days_allowed) == c.due_date
    assert c.renewals == 1
