import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./labrecord.db")
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ Scheduler (bearer secret for /cron/cleanup)
CRON_SECRET = os.getenv("CRON_SECRET")

# ✅ Document assets
LOGO_URL = os.getenv(
    "LOGO_URL",
    "https://hebbkx1anhila5yf.public.blob.vercel-storage.com/sample.jpg-CSVdko8BbmuXh3iqvpkHtocVYTrjwY.jpeg",
)
QR_SERVICE_URL = os.getenv("QR_SERVICE_URL", "https://api.qrserver.com/v1/create-qr-code/")
ASSET_FETCH_TIMEOUT = float(os.getenv("ASSET_FETCH_TIMEOUT", "10.0"))

# ✅ Form auto-save
AUTOSAVE_DEBOUNCE_SECONDS = float(os.getenv("AUTOSAVE_DEBOUNCE_SECONDS", "2.0"))

# ✅ Logging / HTTP
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
