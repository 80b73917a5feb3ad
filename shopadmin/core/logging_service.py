"""
Centralized logging service for the ShopAdmin console.
Stores structured log entries in sqlite and mirrors them to the standard logger.
"""

import json
import logging
import traceback
from datetime import datetime, timedelta
from flask import request, has_request_context
from .database import Database

logger = logging.getLogger('shopadmin')


class LoggingService:
    """Centralized logging service for application-wide logging"""

    @staticmethod
    def _get_request_context():
        """Extract request context information"""
        if not has_request_context():
            return None, None, None

        try:
            ip_address = request.headers.get('X-Forwarded-For', request.remote_addr)
            if ip_address and ',' in ip_address:
                ip_address = ip_address.split(',')[0].strip()

            user_agent = request.headers.get('User-Agent', '')
            request_path = request.path

            return ip_address, user_agent, request_path
        except Exception:
            return None, None, None

    @staticmethod
    def log(level, source, message, details=None, user_id=None):
        """
        Log a message to the database

        Args:
            level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            source (str): Source component (auth, shops, dashboard, etc.)
            message (str): Main log message
            details (str/dict): Additional details (will be JSON-encoded if dict)
            user_id (str): Optional user identifier
        """
        level = level.upper()
        if isinstance(details, dict):
            details = json.dumps(details, indent=2, default=str)

        logger.log(getattr(logging, level, logging.INFO), "[%s] %s", source, message)

        try:
            path = Database.log_db_path()
            Database.init_logs_table(path)

            ip_address, user_agent, request_path = LoggingService._get_request_context()
            timestamp = datetime.now().isoformat()

            with Database.connect(path) as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO app_logs
                    (timestamp, level, source, message, details, ip_address, user_agent, request_path, user_id)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    timestamp, level, source, message, details,
                    ip_address, user_agent, request_path, user_id
                ))
                conn.commit()

        except Exception as e:
            # The entry already reached the standard logger
            logger.warning("Logging service error: %s", e)

    @staticmethod
    def info(source, message, details=None, user_id=None):
        LoggingService.log('INFO', source, message, details, user_id)

    @staticmethod
    def warning(source, message, details=None, user_id=None):
        LoggingService.log('WARNING', source, message, details, user_id)

    @staticmethod
    def error(source, message, details=None, user_id=None):
        LoggingService.log('ERROR', source, message, details, user_id)

    @staticmethod
    def log_user_action(source, action, user_id=None, details=None):
        """Log admin actions (approve, reject, freeze, create...)"""
        LoggingService.info(source, f"User action: {action}", details, user_id)

    @staticmethod
    def log_error_with_traceback(source, error, details=None):
        """Log error with full traceback"""
        error_details = {
            'error_type': type(error).__name__,
            'error_message': str(error),
            'traceback': traceback.format_exc()
        }
        if details:
            error_details['additional_details'] = details

        LoggingService.error(source, f"Exception occurred: {type(error).__name__}", error_details)

    @staticmethod
    def log_security_event(message, details=None, ip_address=None):
        """Log security-related events"""
        if ip_address:
            details = details or {}
            details['provided_ip'] = ip_address

        LoggingService.warning('security', message, details)

    @staticmethod
    def get_recent_logs(limit=50, level=None):
        """Return the most recent log rows as dicts, newest first"""
        try:
            path = Database.log_db_path()
            Database.init_logs_table(path)
            with Database.connect(path) as conn:
                cursor = conn.cursor()
                if level:
                    cursor.execute("""
                        SELECT timestamp, level, source, message, details
                        FROM app_logs WHERE level = ?
                        ORDER BY id DESC LIMIT ?
                    """, (level.upper(), limit))
                else:
                    cursor.execute("""
                        SELECT timestamp, level, source, message, details
                        FROM app_logs ORDER BY id DESC LIMIT ?
                    """, (limit,))
                columns = ['timestamp', 'level', 'source', 'message', 'details']
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except Exception as e:
            logger.warning("Could not read logs: %s", e)
            return []

    @staticmethod
    def cleanup_old_logs(days_to_keep=30):
        """Clean up old log entries"""
        try:
            cutoff_iso = (datetime.now() - timedelta(days=days_to_keep)).isoformat()
            path = Database.log_db_path()
            Database.init_logs_table(path)

            with Database.connect(path) as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM app_logs WHERE timestamp < ?", (cutoff_iso,))
                deleted_count = cursor.rowcount
                conn.commit()

            LoggingService.info('system', f"Cleaned up {deleted_count} old log entries")
            return deleted_count

        except Exception as e:
            LoggingService.error('system', f"Failed to cleanup old logs: {e}")
            return 0

