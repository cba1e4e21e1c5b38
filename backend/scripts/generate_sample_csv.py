#!/usr/bin/env python3
"""
Generate a synthetic bulk-import CSV for exercising the import endpoints.

Most rows are valid; with --bad-rows some are deliberately broken
(missing fields, bad dates, future dates, duplicate ISBNs) so the per-row
error reporting can be checked by hand.

Usage: python -m scripts.generate_sample_csv books.csv --rows 5000 --bad-rows 50
"""

import argparse
import csv
import random
from datetime import date, timedelta

AUTHORS = [
    "Ursula K. Le Guin",
    "Octavia E. Butler",
    "Terry Pratchett",
    "Toni Morrison",
    "Gabriel Garcia Marquez",
    "Chimamanda Ngozi Adichie",
    "Kazuo Ishiguro",
    "Margaret Atwood",
]

TITLE_WORDS = [
    "Shadow", "River", "Glass", "Winter", "Garden", "Empire", "Silence",
    "Harbor", "Lantern", "Orchard", "Tide", "Archive", "Signal", "Ember",
]


def random_isbn(rng: random.Random) -> str:
    digits = "".join(str(rng.randint(0, 9)) for _ in range(10))
    return f"978-{digits[0]}-{digits[1:4]}-{digits[4:9]}-{digits[9]}"


def random_date(rng: random.Random) -> date:
    start = date(1900, 1, 1)
    return start + timedelta(days=rng.randint(0, (date.today() - start).days))


def broken_row(rng: random.Random, valid_isbn: str) -> list[str]:
    kind = rng.choice(["missing", "bad_date", "future", "duplicate", "short"])
    title = f"The Broken {rng.choice(TITLE_WORDS)}"
    author = rng.choice(AUTHORS)
    if kind == "missing":
        return [title, "", random_isbn(rng), "2001-01-01"]
    if kind == "bad_date":
        return [title, author, random_isbn(rng), "01/02/2001"]
    if kind == "future":
        return [title, author, random_isbn(rng), (date.today() + timedelta(days=30)).isoformat()]
    if kind == "duplicate":
        return [title, author, valid_isbn, "2001-01-01"]
    return [title, author]


def generate(path: str, rows: int, bad_rows: int, seed: int) -> None:
    rng = random.Random(seed)
    bad_positions = set(rng.sample(range(rows), min(bad_rows, rows)))
    last_isbn = random_isbn(rng)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["title", "author", "isbn", "publishedDate"])
        for i in range(rows):
            if i in bad_positions:
                writer.writerow(broken_row(rng, last_isbn))
                continue
            last_isbn = random_isbn(rng)
            title = f"The {rng.choice(TITLE_WORDS)} of {rng.choice(TITLE_WORDS)} {i + 1}"
            writer.writerow([title, rng.choice(AUTHORS), last_isbn, random_date(rng).isoformat()])

    print(f"Wrote {rows} rows ({len(bad_positions)} broken) to {path}")


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("path", help="Output CSV path")
    parser.add_argument("--rows", type=int, default=1000)
    parser.add_argument("--bad-rows", type=int, default=0)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    generate(args.path, args.rows, args.bad_rows, args.seed)


if __name__ == "__main__":
    main()
