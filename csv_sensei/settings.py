import os
from pathlib import Path
from dataclasses import dataclass, field


@dataclass
class AppConfig:
    database_url: str
    jwt_secret_key: str
    jwt_access_minutes: int
    max_upload_mb: int
    max_upload_rows: int = 100_000
    admin_username: str = "admin@csvsensei.local"
    admin_password: str = "admin12345"
    cors_origins: list[str] = field(default_factory=list)
    testing: bool = False

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @staticmethod
    def from_env() -> "AppConfig":
        # Absolute default path to instance/csv_sensei.db next to this package
        pkg_root = Path(__file__).resolve().parent.parent
        default_sqlite_path = pkg_root / "instance" / "csv_sensei.db"
        default_sqlite_url = f"sqlite:///{default_sqlite_path}"
        return AppConfig(
            database_url=os.getenv("DATABASE_URL", default_sqlite_url),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", "change-me"),
            jwt_access_minutes=int(os.getenv("JWT_ACCESS_MINUTES", "720")),
            max_upload_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", "25")),
            max_upload_rows=int(os.getenv("MAX_UPLOAD_ROWS", "100000")),
            admin_username=os.getenv("ADMIN_USERNAME", "admin@csvsensei.local"),
            admin_password=os.getenv("ADMIN_PASSWORD", "admin12345"),
            cors_origins=[
                o.strip()
                for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
                if o.strip()
            ],
        )
