# Quick reference commands (run from repo root). These are comments only; copy/paste as needed.

# Install the app with test dependencies (includes httpx for TestClient)
# python -m pip install -e ".[test]"

# OCR needs the Tesseract binary; PDF OCR needs poppler (pdftoppm)
# apt-get install tesseract-ocr poppler-utils

# Run the full test suite (store tests skip unless DATABASE_URL is set)
# python -m pytest

# Run focused test files
# python -m pytest tests/test_validation.py
# python -m pytest tests/test_security_headers.py
# python -m pytest tests/test_session_and_rate_limits.py
# python -m pytest tests/test_philippine_id.py tests/test_extract.py
# python -m pytest tests/test_jobs_routes.py tests/test_member_routes.py tests/test_admin_routes.py
# python -m pytest tests/test_verification_routes.py tests/test_realtime.py
# python -m pytest tests/test_worker_digest.py

# Start the API locally (with env vars loaded)
# python -m dotenv run -- python -m uvicorn app.api:app --reload

# Run the email digest worker (DIGEST_ONCE=true for a single pass)
# python -m dotenv run -- python -m worker.main

# Inspect the database (example queries)
# python scripts/db_shell.py "SELECT id,email,role,active,created_at FROM users"
# python scripts/db_shell.py "SELECT id,title,status,created_at FROM job_posts ORDER BY created_at DESC LIMIT 5"
# python scripts/db_shell.py "SELECT id,employer_id,status,admin_notes FROM employer_verification_requests"
