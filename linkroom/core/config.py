# linkroom/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv

class Settings:
    """
    Setup environment variables.
        - PORT / HOST the address the server binds to
        - UPLOAD_DIR root directory for per-room upload folders
        - ROOM_GRACE_PERIOD_SECONDS delay before an empty room is evicted
        - PUB_SUB_SERVICE the fan-out backend to use: "local" or "redis"
    """

    # Load environment variables from the .env file
    load_dotenv()

    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(100 * 1024 * 1024)))

    ROOM_GRACE_PERIOD_SECONDS: float = float(os.getenv("ROOM_GRACE_PERIOD_SECONDS", "60"))
    DEFAULT_ROOM_NAME: str = os.getenv("DEFAULT_ROOM_NAME", "My Workspace")

    PUB_SUB_SERVICE: Literal["local", "redis"] = os.getenv("PUB_SUB_SERVICE", "local")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

settings = Settings()
