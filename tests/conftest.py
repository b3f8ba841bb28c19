import datetime

import pytest

from library_checkout import Book, Member, RuleEngine
from library_storage import CsvPersistenceGateway

START = datetime.date(2024, 1, 1)


class FixedClock:
    """Callable returning a settable date, used as the engine's `today`."""

    def __init__(self, start: datetime.date = START):
        self.current = start

    def __call__(self) -> datetime.date:
        return self.current

    def advance(self, days: int) -> None:
        self.current += datetime.timedelta(days=days)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def engine(clock):
    eng = RuleEngine(today=clock)
    eng.add_book(Book("X", "Refactoring", "Martin Fowler", "Programming", 1))
    eng.add_book(Book("Y", "Dune", "Frank Herbert", "Sci-Fi", 3))
    eng.add_member(Member("M1", "Ada Lovelace", "ada@example.com", "555-0101"))
    eng.add_member(Member("M2", "Grace Hopper", "grace@example.com", "555-0102"))
    return eng


@pytest.fixture
def gateway(tmp_path):
    return CsvPersistenceGateway(tmp_path / "data")
