"""
Create a sync account and attach its Todoist project.

Usage:
  python -m scripts.add_account owner@example.com --todoist-token TOKEN --project 123456
  python -m scripts.add_account owner@example.com --todoist-token TOKEN --project 123456 --push-minutes 30
"""
from __future__ import annotations

import argparse

from dotenv import load_dotenv

from core.database import create_account, init_db


def main() -> None:
    load_dotenv(override=True)

    parser = argparse.ArgumentParser(description="Create a shopping list sync account")
    parser.add_argument("owner_email")
    parser.add_argument("--todoist-token", required=True)
    parser.add_argument("--project", required=True, help="Todoist project id tasks are created in")
    parser.add_argument("--push-minutes", type=int, default=None)
    parser.add_argument("--poll-hours", type=int, default=None)
    args = parser.parse_args()

    init_db()
    account_id = create_account(
        args.owner_email,
        todoist_token=args.todoist_token,
        todoist_project_id=args.project,
        push_interval_minutes=args.push_minutes,
        poll_interval_hours=args.poll_hours,
    )
    print(f"Created account id={account_id} for {args.owner_email}")
    print(f"Connect Amazon with: POST /accounts/{account_id}/amazon (email, password[, code])")


if __name__ == "__main__":
    main()
