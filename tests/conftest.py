import os
import tempfile

os.environ.setdefault("FINANCE_DATA_DIR", tempfile.mkdtemp(prefix="finance-tests-"))
os.environ.setdefault("FINANCE_SCHEDULER_ENABLED", "0")
os.environ.setdefault("FINANCE_CRON_SECRET", "test-cron-secret")
os.environ.pop("FINANCE_SMTP_HOST", None)
