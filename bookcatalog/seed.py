"""
Fixture loader: seeds users, categories and books at start-up.

``seed_data()`` clears the three collections, inserts the fixture set
and returns the generated ids keyed by a human-readable value (user
email, category title). The caller passes the result on to whatever
needs it; nothing is kept at module level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from .auth import hash_password
from .storage import BOOK, CATEGORY, USER, EntityStore
from .utils import slugify


logger = logging.getLogger(__name__)

FIXTURE_PASSWORD = "password123"

CATEGORY_TITLES = (
    "Classic Literature",
    "Dystopian",
    "Romance",
    "Science Fiction",
    "Fantasy",
    "Mystery",
    "Thriller",
    "Non-Fiction",
    "Biography",
    "Self-Help",
    "Fiction",
)

USERS = (
    {"firstname": "John", "lastname": "Doe", "email": "john.doe@example.com"},
    {"firstname": "Jane", "lastname": "Smith", "email": "jane.smith@example.com"},
    {"firstname": "Alice", "lastname": "Johnson", "email": "alice.johnson@example.com"},
)


@dataclass(frozen=True)
class SeedResult:
    users_by_email: Dict[str, str] = field(default_factory=dict)
    categories_by_title: Dict[str, str] = field(default_factory=dict)


def _books(users: Dict[str, str], categories: Dict[str, str]):
    john = users["john.doe@example.com"]
    jane = users["jane.smith@example.com"]
    alice = users["alice.johnson@example.com"]
    return [
        {
            "title": "The Great Gatsby",
            "author": "F. Scott Fitzgerald",
            "description": "A novel set in the Roaring Twenties, narrating the story of Jay Gatsby and his unrequited love for Daisy Buchanan.",
            "price": 10.99,
            "category": categories["Classic Literature"],
            "pages": 180,
            "tags": "classic, twenties, romance",
            "ratings": [
                {"star": 5, "comment": "A timeless masterpiece.", "postedby": john},
                {"star": 4, "comment": "Captivating story and characters.", "postedby": jane},
            ],
            "totalrating": "4.5",
        },
        {
            "title": "To Kill a Mockingbird",
            "author": "Harper Lee",
            "description": "A novel about racial injustice in the Deep South, seen through the eyes of young Scout Finch.",
            "price": 8.99,
            "category": categories["Classic Literature"],
            "pages": 281,
            "tags": "classic, racial, justice",
            "ratings": [
                {"star": 5, "comment": "Profound and moving.", "postedby": john},
                {"star": 5, "comment": "A book everyone should read.", "postedby": alice},
            ],
            "totalrating": "5.0",
        },
        {
            "title": "1984",
            "author": "George Orwell",
            "description": "A dystopian novel that explores the dangers of totalitarianism and extreme political ideology.",
            "price": 9.99,
            "category": categories["Dystopian"],
            "pages": 328,
            "tags": "dystopian, political, thriller",
            "ratings": [
                {"star": 5, "comment": "Chilling and thought-provoking.", "postedby": jane},
                {"star": 4, "comment": "A must-read for everyone.", "postedby": alice},
            ],
            "totalrating": "4.5",
        },
        {
            "title": "Pride and Prejudice",
            "author": "Jane Austen",
            "description": "A romantic novel that critiques the societal norms and expectations of 19th-century England.",
            "price": 7.99,
            "category": categories["Romance"],
            "pages": 279,
            "tags": "romance, classic, society",
            "ratings": [
                {"star": 5, "comment": "A delightful read.", "postedby": john},
                {"star": 4, "comment": "Charming and witty.", "postedby": jane},
            ],
            "totalrating": "4.5",
        },
        {
            "title": "The Catcher in the Rye",
            "author": "J.D. Salinger",
            "description": "A novel about teenage alienation and angst as experienced by the protagonist, Holden Caulfield.",
            "price": 6.99,
            "category": categories["Fiction"],
            "pages": 214,
            "tags": "fiction, classic, teenage",
            "ratings": [
                {"star": 4, "comment": "A powerful narrative.", "postedby": alice},
                {"star": 3, "comment": "A bit overrated but still good.", "postedby": john},
            ],
            "totalrating": "3.5",
        },
    ]


async def seed_data(store: EntityStore) -> SeedResult:
    """Replace the store contents with the fixture set.

    Returns
    -------
    SeedResult
        Generated user ids by email and category ids by title.
    """
    for collection in (BOOK, CATEGORY, USER):
        await store.delete_many(collection)
    logger.info("Collections cleared")

    inserted_users = await store.insert_many(
        USER,
        [dict(user, passwordHash=hash_password(FIXTURE_PASSWORD)) for user in USERS],
    )
    logger.info("Users seeded successfully")

    inserted_categories = await store.insert_many(
        CATEGORY, [{"title": title} for title in CATEGORY_TITLES]
    )
    logger.info("Categories seeded successfully")

    users_by_email = {user["email"]: user["_id"] for user in inserted_users}
    categories_by_title = {category["title"]: category["_id"] for category in inserted_categories}

    books = _books(users_by_email, categories_by_title)
    for book in books:
        book["slug"] = slugify(book["title"])
    await store.insert_many(BOOK, books)
    logger.info("Data seeded successfully")

    return SeedResult(users_by_email=users_by_email, categories_by_title=categories_by_title)
