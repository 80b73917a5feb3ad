import os
import sqlite3

from .config import get_config_value


class Database:
    """Thin sqlite helper for the console's local storage (currently the log store)."""

    @staticmethod
    def connect(path):
        return sqlite3.connect(path)

    @staticmethod
    def log_db_path():
        """Resolve LOG_DB and make sure its directory exists"""
        path = get_config_value('LOG_DB')
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return path

    @staticmethod
    def init_logs_table(path):
        """Ensure the app_logs table exists"""
        with Database.connect(path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS app_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    level TEXT NOT NULL,
                    source TEXT NOT NULL,
                    message TEXT NOT NULL,
                    details TEXT,
                    ip_address TEXT,
                    user_agent TEXT,
                    request_path TEXT,
                    user_id TEXT
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_logs_timestamp
                ON app_logs(timestamp DESC)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_logs_level
                ON app_logs(level)
            """)

            conn.commit()
