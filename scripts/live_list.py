"""
Read an account's Alexa shopping list straight from Amazon, using the stored session.
Handy when a sync looks wrong and you want to see what the origin actually shows.

Usage:
  python -m scripts.live_list 3
  python -m scripts.live_list 3 --check "Milk"   # tick one item off on Amazon
"""
import argparse
import asyncio

from dotenv import load_dotenv

from core.config import load_settings
from core.database import get_source_session
from worker.alexa_engine import load_list, mark_done


def main():
    load_dotenv(override=True)

    parser = argparse.ArgumentParser()
    parser.add_argument("account_id", type=int)
    parser.add_argument("--check", metavar="NAME")
    parser.add_argument("--show", action="store_true", help="Run the browser with a visible window")
    args = parser.parse_args()

    session = get_source_session(args.account_id)
    if not session:
        print(f"No Amazon session stored for account {args.account_id}")
        return

    headless = load_settings().headless and not args.show

    if args.check:
        result = asyncio.run(mark_done(session.cookies, args.check, headless=headless))
        print(f"{args.check!r}: {result.value}")
        return

    items = asyncio.run(load_list(session.cookies, headless=headless))
    print(f"{len(items)} item(s) on the list:")
    for name in items:
        print(f"  {name}")


if __name__ == "__main__":
    main()
