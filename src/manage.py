"""Storefront database management CLI.

Provides commands to create and drop the storefront tables on the providers
configured for ``PROTEAN_ENV``, and to clean up after interrupted placements.

Usage:
    python src/manage.py setup-db        # Create all tables
    python src/manage.py drop-db         # Drop all tables
    python src/manage.py sweep-orphans   # Cancel orphaned orders, release abandoned holds
"""

import argparse
import sys


def _domain():
    import storefront  # noqa: F401
    from shared.domain import storefront as domain

    print("Initializing storefront domain...")
    domain.init(traverse=False)
    return domain


def setup_databases() -> list[str]:
    """Create all storefront tables."""
    from shared.db import setup_db

    domain = _domain()
    print("Creating storefront database schema...")
    created = setup_db(domain)
    if not created:
        print("  No SQL provider configured; nothing to create.")
    for name in created:
        print(f"  {name} schema ready.")
    print("Done.")
    return created


def drop_databases() -> list[str]:
    """Drop all storefront tables."""
    from shared.db import drop_db

    domain = _domain()
    print("Dropping storefront database schema...")
    dropped = drop_db(domain)
    for name in dropped:
        print(f"  {name} schema dropped.")
    print("Done.")
    return dropped


def sweep_orphans(domain, dry_run: bool = False) -> int:
    """Cancel orphaned orders. Returns how many were (or would be) cancelled."""
    from storefront import get_storefront

    with domain.domain_context():
        sweeper = get_storefront().sweeper
        orphans = sweeper.find() if dry_run else sweeper.sweep()

        verb = "Would cancel" if dry_run else "Cancelled"
        for order in orphans:
            print(f"  {verb} {order.id} (user {order.user_id}, {len(order.lines)}/{order.line_count} lines)")
        print(f"{verb} {len(orphans)} orphaned order(s).")

        if not dry_run:
            # ``sweep`` has already cleared every hold past the grace period
            held = sum(len(product.holds) for product in sweeper.ledger.products.with_holds())
            print(f"{held} stock hold(s) still within the grace period.")
    return len(orphans)


def main():
    from shared.config import current_env
    from shared.logging import configure_logging

    configure_logging(env=current_env())

    parser = argparse.ArgumentParser(description="Storefront database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    sweep_parser = subparsers.add_parser("sweep-orphans", help="Cancel orphaned orders and release abandoned holds")
    sweep_parser.add_argument("--dry-run", action="store_true", help="List orphans without cancelling them")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "sweep-orphans":
        sweep_orphans(_domain(), args.dry_run)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
