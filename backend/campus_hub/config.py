"""Application settings and validation."""

import os


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    DATABASE_URL: str
    MAX_UPLOAD_BYTES: int
    MAX_LISTING_IMAGES: int
    PUBLIC_BASE_URL: str
    CONTACT_RATE_LIMIT_PER_MIN: int
    MESSAGE_RATE_LIMIT_PER_MIN: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.DATABASE_URL = os.getenv("DATABASE_URL", "")
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # 5 MB per image
        self.MAX_LISTING_IMAGES = int(os.getenv("MAX_LISTING_IMAGES", "5"))
        self.PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")
        self.CONTACT_RATE_LIMIT_PER_MIN = int(os.getenv("CONTACT_RATE_LIMIT_PER_MIN", "5"))
        self.MESSAGE_RATE_LIMIT_PER_MIN = int(os.getenv("MESSAGE_RATE_LIMIT_PER_MIN", "30"))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.MAX_LISTING_IMAGES < 1:
            raise RuntimeError("MAX_LISTING_IMAGES must be at least 1")


settings = Settings()
