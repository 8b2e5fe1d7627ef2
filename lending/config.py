import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_FILE = os.path.join(os.path.expanduser("~"), "LibraryManagementSystem", "library.db")


@dataclass
class Settings:
    # Database
    database_file: str = os.getenv("LIBRARY_DB_FILE", DEFAULT_DB_FILE)

    # Circulation rules
    daily_fine: float = float(os.getenv("LIBRARY_DAILY_FINE", "0.50"))
    loan_days: int = int(os.getenv("LIBRARY_LOAN_DAYS", "14"))

    # Application
    app_name: str = os.getenv("APP_NAME", "Library Lending")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING")


settings = Settings()
