"""
Synthetic payload generators for streamlab.

This module provides the library-themed record generators used by the
emission scheduler. Each generator draws from a fixed vocabulary and keeps
no state between calls.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, List, Optional, Type


BOOK_TITLES = [
    "The Midnight Library", "Project Hail Mary", "Dune Messiah",
    "Foundation's Edge", "The Way of Kings", "Name of the Wind",
    "Neuromancer", "Snow Crash", "Ready Player Two",
    "The Hobbit Returns", "Ender's Shadow", "Hyperion Cantos",
    "The Expanse: Leviathan", "Red Rising: Golden Son", "Mistborn: Shadows",
]

USERS = [
    "Alice Johnson", "Bob Smith", "Charlie Brown", "Diana Prince",
    "Ethan Hunt", "Fiona Green", "George Wilson", "Hannah Lee",
]

CATEGORIES = ["Fiction", "Science", "History", "Technology", "Fantasy"]

ISSUE_TYPES = [
    "borrowed", "returned", "renewed", "damaged", "lost", "reserved", "overdue",
]

BOOK_ID_BASE = 1000
ISSUE_ID_BASE = 5000
LOAN_PERIOD = timedelta(days=14)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DataGenerator:
    """
    Base class for payload generators.

    Subclasses implement ``generate(index)`` and draw every random value
    from ``self.rng`` so that a seeded source gives repeatable payloads.
    """

    kind = "base"

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the generator.

        Args:
            rng: Random source (a fresh unseeded one if not provided)
        """
        self.rng = rng or random.Random()

    def generate(self, index: int) -> Dict[str, Any]:
        raise NotImplementedError


class BookDataGenerator(DataGenerator):
    """
    Generates catalog records for the ``books`` stream.

    Record ids are offset from the emission index, so the n-th fresh book
    on a stream carries id ``1000 + n``.
    """

    kind = "books"

    def generate(self, index: int) -> Dict[str, Any]:
        """
        Generate a single book record.

        Args:
            index: Current emission count of the stream

        Returns:
            Dictionary containing book data
        """
        rng = self.rng
        title = rng.choice(BOOK_TITLES)

        return {
            "id": BOOK_ID_BASE + index,
            "title": f"{title} #{rng.randrange(100)}",
            "author": rng.choice(USERS),
            "isbn": f"978-{rng.randrange(10)}{rng.randrange(100000000)}",
            "publishedYear": 2000 + rng.randrange(24),
            "available": rng.random() > 0.3,
            "timestamp": _now().isoformat(),
            "category": rng.choice(CATEGORIES),
        }


class IssueDataGenerator(DataGenerator):
    """
    Generates circulation events (borrow, return, overdue...) for issue streams.

    ``bookId`` points at a recent book id bounded by the index. The link is
    illustrative only and may reference a book that was never emitted.
    """

    kind = "issues"

    def generate(self, index: int) -> Dict[str, Any]:
        """
        Generate a single issue record.

        Args:
            index: Current emission count of the stream

        Returns:
            Dictionary containing issue data
        """
        rng = self.rng
        book_id = BOOK_ID_BASE + int(rng.random() * index + 1)
        issue_type = rng.choice(ISSUE_TYPES)
        now = _now()

        due_date = None
        if issue_type == "borrowed":
            due_date = (now + LOAN_PERIOD).isoformat()

        fine = 0
        if issue_type == "overdue":
            fine = rng.randrange(50) + 5

        return {
            "id": ISSUE_ID_BASE + index,
            "bookId": book_id,
            "userId": rng.randrange(100) + 1,
            "userName": rng.choice(USERS),
            "issueType": issue_type,
            "timestamp": now.isoformat(),
            "dueDate": due_date,
            "fine": fine,
            "notes": f"{issue_type} operation for book {book_id}",
        }


GENERATORS: Dict[str, Type[DataGenerator]] = {
    BookDataGenerator.kind: BookDataGenerator,
    IssueDataGenerator.kind: IssueDataGenerator,
}


def get_generator(stream_name: str, rng: Optional[random.Random] = None) -> DataGenerator:
    """
    Pick the generator for a stream.

    ``books`` streams get book records; every other stream name produces
    issue records.

    Args:
        stream_name: Name of the stream
        rng: Random source shared with the stream's scheduler

    Returns:
        DataGenerator instance
    """
    generator_cls = GENERATORS.get(stream_name, IssueDataGenerator)
    return generator_cls(rng)


def available_kinds() -> List[str]:
    """List the stream names that have a dedicated generator."""
    return sorted(GENERATORS.keys())
