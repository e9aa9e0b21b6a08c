"""
CLI utility for managing the underground reader library.

Usage:
    python cli.py init-db                         # Create the tables
    python cli.py add-book <name> [options]       # Add a book to the library
    python cli.py list-books                      # List all books
    python cli.py groups <book_id> [--refresh]    # Show (and sync) chapter groups
    python cli.py mark-read <link> <value>        # Move a group's last-read marker
    python cli.py downloaded <link>               # Check whether a group is downloaded
"""
import argparse
import asyncio
import logging
import sys

from config import settings
from database import get_database
from exceptions import BookNotLinkedError, GroupNotFoundError, ProviderError
from init_db import init_database
from queries import BookQueries
from repository import build_repository


def cmd_init_db(args):
    """Create the database tables."""
    if not init_database(get_database()):
        sys.exit(1)


def cmd_add_book(args):
    """Add a book to the library."""
    books = BookQueries(get_database())
    book = books.insert(
        name=args.name,
        author=args.author,
        link=args.link,
        underground_id=args.underground_id,
        webnovel_id=args.webnovel_id,
        webnovel_link=args.webnovel_link,
    )

    affiliation = "underground" if book.underground_id else "web novel"
    print(f"Added book {book.id}: {book.name} ({affiliation})")


def cmd_list_books(args):
    """List all books."""
    books = BookQueries(get_database()).list_all()

    print(f"\n{'ID':<5} {'Name':<40} {'Underground':<15} {'Web novel':<20}")
    print("-" * 80)

    for book in books:
        name = book.name[:37] + "..." if len(book.name) > 40 else book.name
        print(f"{book.id:<5} {name:<40} {book.underground_id or '-':<15} {book.webnovel_id or '-':<20}")

    print(f"\nTotal: {len(books)} books")


def cmd_groups(args):
    """Show the chapter groups of a book, synchronizing first if needed."""
    repository = build_repository(get_database())

    book = repository.books.get_by_id(args.book_id)
    if not book:
        print(f"Error: book {args.book_id} not found")
        sys.exit(1)

    try:
        live = asyncio.run(repository.get_groups(book, refresh=args.refresh))
    except (ProviderError, BookNotLinkedError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    groups = live.current()

    print(f"\n{'Chapters':<15} {'Source':<12} {'Read':<6} {'Link':<50}")
    print("-" * 85)

    for group in groups:
        link = group.link[:47] + "..." if len(group.link) > 50 else group.link
        print(f"{group.text:<15} {group.source.value:<12} {group.last_read:<6} {link:<50}")

    print(f"\nTotal: {len(groups)} groups")


def cmd_mark_read(args):
    """Move the last-read marker of a group."""
    repository = build_repository(get_database())

    group = repository.get_group_by_link(args.link).current()
    if group is None:
        print(f"Error: {GroupNotFoundError(args.link)}")
        sys.exit(1)

    repository.update_last_read(group, args.value)
    print(f"✓ {group.text}: last read {args.value}")


def cmd_downloaded(args):
    """Check whether every chapter of a group is downloaded."""
    repository = build_repository(get_database())

    group = repository.get_group_by_link(args.link).current()
    if group is None:
        print(f"Error: {GroupNotFoundError(args.link)}")
        sys.exit(1)

    if repository.is_downloaded(group):
        print(f"✓ {group.text} is downloaded")
    else:
        print(f"✗ {group.text} is not downloaded")


def main(argv=None):
    """Main CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description="Underground Reader CLI"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Init command
    init_parser = subparsers.add_parser("init-db", help="Create the database tables")
    init_parser.set_defaults(func=cmd_init_db)

    # Add book command
    add_parser = subparsers.add_parser("add-book", help="Add a book to the library")
    add_parser.add_argument("name", help="Book title")
    add_parser.add_argument("--author", help="Book author")
    add_parser.add_argument("--link", help="Book page")
    add_parser.add_argument(
        "--underground-id",
        help="Identifier on the underground provider (omit for web novel only books)"
    )
    add_parser.add_argument("--webnovel-id", help="Identifier on the web novel provider")
    add_parser.add_argument("--webnovel-link", help="Book page on the web novel provider")
    add_parser.set_defaults(func=cmd_add_book)

    # List books command
    list_books_parser = subparsers.add_parser("list-books", help="List books")
    list_books_parser.set_defaults(func=cmd_list_books)

    # Groups command
    groups_parser = subparsers.add_parser("groups", help="Show the chapter groups of a book")
    groups_parser.add_argument("book_id", type=int, help="Book ID")
    groups_parser.add_argument(
        "--refresh",
        action="store_true",
        help="Fetch from the providers even if groups are cached"
    )
    groups_parser.set_defaults(func=cmd_groups)

    # Mark read command
    mark_read_parser = subparsers.add_parser("mark-read", help="Set the last-read marker of a group")
    mark_read_parser.add_argument("link", help="Group link")
    mark_read_parser.add_argument("value", type=int, help="Last read chapter")
    mark_read_parser.set_defaults(func=cmd_mark_read)

    # Downloaded command
    downloaded_parser = subparsers.add_parser("downloaded", help="Check whether a group is downloaded")
    downloaded_parser.add_argument("link", help="Group link")
    downloaded_parser.set_defaults(func=cmd_downloaded)

    # Parse arguments
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Run command
    args.func(args)


if __name__ == "__main__":
    main()
