from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Interview Authenticity Monitor"
    API_V1_PREFIX: str = "/api/v1"

    DATABASE_URL: str = "sqlite:///./authenticity.db"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    LOG_LEVEL: str = "INFO"

    # Detector sampling
    FACE_SAMPLE_INTERVAL_MS: int = 2500
    DEVTOOLS_POLL_INTERVAL_MS: int = 1500

    # Call signaling
    MEDIA_TIMEOUT_SECONDS: float = 10.0
    ICE_SERVERS: list[str] = [
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    ]

    # Face worker
    FACE_WORKER_API_URL: str = "http://127.0.0.1:8000/api/v1/events"
    FACE_WORKER_CAMERA: int = 0

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
