"""Assign referral codes to accounts created before codes were mandatory."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from postgrest import APIError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

MAX_CODE_ATTEMPTS = 100


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Give every user in public.users without a referral code a fresh one.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=500,
        help="How many users to fetch per page (default: 500).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the users that would be updated without writing.",
    )
    return parser.parse_args()


def users_without_code(client, batch_size: int) -> list[str]:
    """Return ids of users whose referral_code is null or empty."""
    ids: list[str] = []
    offset = 0
    while True:
        response = (
            client.table("users")
            .select("id,referral_code")
            .or_("referral_code.is.null,referral_code.eq.")
            .order("created_at")
            .range(offset, offset + batch_size - 1)
            .execute()
        )
        rows = response.data or []
        ids.extend(str(row["id"]) for row in rows)
        if len(rows) < batch_size:
            return ids
        offset += batch_size


def assign_code(client, user_id: str) -> str:
    """Write a unique code for ``user_id`` and return it."""
    from app.services.account_service import random_referral_code
    from app.services.common import is_unique_violation

    for _attempt in range(MAX_CODE_ATTEMPTS):
        code = random_referral_code()
        try:
            client.table("users").update({"referral_code": code}).eq("id", user_id).execute()
            return code
        except APIError as exc:
            if is_unique_violation(exc):
                continue
            raise
    raise RuntimeError(f"Failed to generate a unique referral code for {user_id}")


def backfill(batch_size: int, dry_run: bool) -> list[tuple[str, str | None]]:
    """Assign codes and return ``(user_id, code)`` pairs."""
    if batch_size <= 0:
        raise ValueError("batch size must be >= 1")

    from app.utils.supabase_client import get_service_client

    client = get_service_client()
    pending = users_without_code(client, batch_size)
    if dry_run:
        return [(user_id, None) for user_id in pending]
    return [(user_id, assign_code(client, user_id)) for user_id in pending]


def print_results(results: Sequence[tuple[str, str | None]], dry_run: bool) -> None:
    """Print assigned codes in copy-friendly form."""
    verb = "Would update" if dry_run else "Updated"
    print(f"{verb} {len(results)} user(s):")
    for user_id, code in results:
        print(f"{user_id}\t{code or '-'}")


def main() -> None:
    """CLI entry point."""
    args = parse_args()
    results = backfill(batch_size=args.batch_size, dry_run=args.dry_run)
    print_results(results, args.dry_run)


if __name__ == "__main__":
    main()
