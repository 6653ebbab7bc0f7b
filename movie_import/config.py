"""
Configuration management for the movie import pipeline.

Loads configuration from environment variables and provides
a centralized Config dataclass for all settings.
"""

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


@dataclass
class Config:
    """Centralized configuration from environment variables."""

    # Database (database_url wins over the SQL_* parts)
    database_url: str = ""
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = ""
    db_password: str = ""
    db_name: str = ""

    # Pipeline settings
    batch_size: int = 500
    min_year: int = 1990
    max_year: Optional[int] = None  # None = current year + 1
    default_country: str = "United States"
    max_actor_slots: int = 10
    genre_delimiter: str = ";"
    csv_encoding: str = "utf-8-sig"
    show_progress: bool = True

    # Paths
    project_dir: Path = field(default_factory=Path.cwd)
    log_dir: Path = field(default_factory=lambda: Path.cwd() / "movie_import" / "logs")

    @classmethod
    def from_env(cls, env_path: Optional[str] = None) -> "Config":
        """
        Load configuration from environment variables.

        Args:
            env_path: Optional path to .env file. If not provided,
                     looks for .env in the project root, then current directory.

        Returns:
            Config instance with loaded values.

        Raises:
            ValueError: If required environment variables are missing.
        """
        if env_path:
            load_dotenv(env_path)
        else:
            root_env = Path(__file__).parent.parent / ".env"
            if root_env.exists():
                load_dotenv(root_env)
            else:
                load_dotenv()

        database_url = os.getenv("DATABASE_URL", "")

        db_host = os.getenv("SQL_HOST", "localhost")
        db_port = int(os.getenv("SQL_PORT", "3306"))
        db_user = os.getenv("SQL_USER", "")
        db_password = os.getenv("SQL_PASS", "")
        db_name = os.getenv("SQL_DB", "")

        if not database_url and (not db_user or not db_name):
            raise ValueError(
                "DATABASE_URL or SQL_USER and SQL_DB environment variables are required"
            )

        max_year = os.getenv("MAX_YEAR")
        project_dir = Path(os.getenv("PROJECT_DIR", Path.cwd()))

        return cls(
            database_url=database_url,
            db_host=db_host,
            db_port=db_port,
            db_user=db_user,
            db_password=db_password,
            db_name=db_name,
            batch_size=int(os.getenv("BATCH_SIZE", "500")),
            min_year=int(os.getenv("MIN_YEAR", "1990")),
            max_year=int(max_year) if max_year else None,
            default_country=os.getenv("DEFAULT_COUNTRY", "United States").strip(),
            csv_encoding=os.getenv("CSV_ENCODING", "utf-8-sig"),
            project_dir=project_dir,
            log_dir=project_dir / "movie_import" / "logs",
        )

    def get_db_url(self) -> str:
        """Get SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return (
            f"mysql+pymysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    def year_bounds(self, today: Optional[date] = None) -> Tuple[int, int]:
        """Inclusive (min, max) release years accepted by the loader."""
        today = today or date.today()
        max_year = self.max_year if self.max_year is not None else today.year + 1
        return self.min_year, max_year
