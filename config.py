from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# Data directory (gitignored)
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(exist_ok=True)

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR}/commute.db")

# API
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "3000"))
CORS_ORIGINS: list[str] = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://127.0.0.1:5500,http://localhost:5500").split(",")
    if o.strip()
]
INGEST_API_KEY: str = os.getenv("INGEST_API_KEY", "")  # empty → ingest endpoint open

# Prediction defaults (minutes). Seeds used when a leg has no usable history;
# they are not derived from any data.
WALK_DEFAULT_BEST_MINUTES: float = float(os.getenv("WALK_DEFAULT_BEST_MINUTES", "10"))
WALK_DEFAULT_SAFE_MINUTES: float = float(os.getenv("WALK_DEFAULT_SAFE_MINUTES", "15"))
WALK_DEFAULT_WORST_MINUTES: float = float(os.getenv("WALK_DEFAULT_WORST_MINUTES", "20"))
VEHICLE_DEFAULT_TRAVEL_BEST_MINUTES: float = float(os.getenv("VEHICLE_DEFAULT_TRAVEL_BEST_MINUTES", "10"))
VEHICLE_DEFAULT_TRAVEL_SAFE_MINUTES: float = float(os.getenv("VEHICLE_DEFAULT_TRAVEL_SAFE_MINUTES", "15"))
VEHICLE_DEFAULT_TRAVEL_WORST_MINUTES: float = float(os.getenv("VEHICLE_DEFAULT_TRAVEL_WORST_MINUTES", "20"))
VEHICLE_DEFAULT_SAFE_WAIT_MINUTES: float = float(os.getenv("VEHICLE_DEFAULT_SAFE_WAIT_MINUTES", "5"))
VEHICLE_DEFAULT_WORST_WAIT_MINUTES: float = float(os.getenv("VEHICLE_DEFAULT_WORST_WAIT_MINUTES", "15"))

# Mode assumed for a leg whose route cannot be resolved; blank falls back to QCBus
FALLBACK_MODE: str = os.getenv("FALLBACK_MODE", "").strip() or "QCBus"
# Wait for the first departure when a leg starts before service begins
FIRST_BUS_ADJUSTMENT: bool = os.getenv("FIRST_BUS_ADJUSTMENT", "true").lower() in ("1", "true", "yes")

# Trip logger session sync
SYNC_BASE_URL: str = os.getenv("SYNC_BASE_URL", "")  # empty → local persistence only
SYNC_MAX_ATTEMPTS: int = int(os.getenv("SYNC_MAX_ATTEMPTS", "3"))
SYNC_BASE_DELAY_SECONDS: float = float(os.getenv("SYNC_BASE_DELAY_SECONDS", "1.0"))
SYNC_BACKOFF_MULTIPLIER: float = float(os.getenv("SYNC_BACKOFF_MULTIPLIER", "2.0"))
LOGGER_SESSION_PATH: Path = Path(os.getenv("LOGGER_SESSION_PATH", str(DATA_DIR / "logger_session.json")))
