# Quick reference commands (run from repo root). These are comments only; copy/paste as needed.

# Install the project with test dependencies, then the browser Playwright drives
# python -m pip install -e ".[test]"
# python -m playwright install chromium

# Run the full test suite (Postgres tests in tests/db skip without DATABASE_URL)
# python -m pytest

# Run focused test files
# python -m pytest tests/test_reconcile.py tests/test_completions.py
# python -m pytest tests/test_session_manager.py
# python -m pytest tests/test_todoist_client.py
# python -m pytest tests/test_worker_cycle.py
# python -m pytest tests/test_api.py tests/test_security_headers.py
# DATABASE_URL=postgresql://... python -m pytest tests/db

# Start the API locally (with env vars loaded)
# python -m dotenv run -- python -m uvicorn app.api:app --reload

# Run the scheduler loop for every active account
# python -m dotenv run -- python -m worker.main

# One scheduler pass, or a single account
# python -m worker.main --once
# python -m worker.main --account 3 --poll
# python -m worker.main --account 3 --poll-only
# python -m worker.main --account 3 --dry-run

# Trigger a cycle through the API
# curl -X POST -H "X-Trigger-Token: $TRIGGER_TOKEN" "http://localhost:8000/accounts/3/sync?poll=true"
# curl -X PUT -H "X-Trigger-Token: $TRIGGER_TOKEN" -d push_interval_minutes=30 -d poll_interval_hours=6 "http://localhost:8000/accounts/3/intervals"

# Accounts
# python -m scripts.add_account owner@example.com --todoist-token TOKEN --project 123456
# python -m scripts.inspect_account 3
# python -m scripts.live_list 3
# python -m scripts.live_list 3 --check "Milk"
