import os

# REST backend
API_URL = os.getenv("LMS_API_URL", "http://localhost:5000/api").rstrip("/")
API_TIMEOUT = float(os.getenv("LMS_API_TIMEOUT", "10"))

# Google sign-in starts on the backend and returns to app.py with tokens in the URL
OAUTH_URL = os.getenv("LMS_OAUTH_URL", f"{API_URL}/auth/google")

# Query cache defaults
QUERY_STALE_SECONDS = float(os.getenv("LMS_QUERY_STALE_SECONDS", "300"))
QUERY_RETRY = int(os.getenv("LMS_QUERY_RETRY", "2"))

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("LMS_MAX_UPLOAD_MB", "100")) * 1024 * 1024

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
