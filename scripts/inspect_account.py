"""
Quick helper to show an account's status, session and synced items.

Usage:
  python -m scripts.inspect_account 3
  python -m scripts.inspect_account 3 --active   # only items still open in Todoist
"""
import argparse

from dotenv import load_dotenv

from core.database import get_account, get_source_session, get_sync_lock, get_synced_items


def main():
    load_dotenv(override=True)

    parser = argparse.ArgumentParser()
    parser.add_argument("account_id", type=int)
    parser.add_argument("--active", action="store_true")
    args = parser.parse_args()

    account = get_account(args.account_id)
    if not account:
        print(f"No account with id={args.account_id}")
        return

    print(
        f"Account {account['id']} owner={account['owner_email']} "
        f"status={account['status']} active={account['active']} "
        f"auth_failures={account['auth_failures']}"
    )
    print(f"  last_push_at={account.get('last_push_at')} last_poll_at={account.get('last_poll_at')}")

    session = get_source_session(args.account_id)
    if session:
        print(f"  session: {len(session.cookies)} cookie(s), renewed_at={session.renewed_at}")
    else:
        print("  session: none (Amazon not connected or expired)")

    lock = get_sync_lock(args.account_id)
    if lock:
        print(f"  lock: held until {lock['expires_at']}")

    items = get_synced_items(args.account_id)
    shown = [i for i in items.values() if not (args.active and i.completed_at_source)]
    print(f"\nItems ({len(shown)} of {len(items)}):")
    for item in shown:
        print(
            f"  {item.display_name!r} task={item.downstream_id} "
            f"state={item.state.value} synced={item.synced_at} completed={item.completed_at}"
        )


if __name__ == "__main__":
    main()
