"""
Logging Configuration
"""

from loguru import logger
import sys
from pathlib import Path

from expense_approvals.config.settings import settings

_configured = False


def setup_logger():
    """
    Setup application logger with file and console output
    
    Safe to call from every module; sinks are only installed once.
    
    Returns:
        logger: Configured logger instance
    """
    global _configured
    if _configured:
        return logger
    
    # Remove default logger
    logger.remove()
    
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    
    # Console logging
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL,
        colorize=True
    )
    
    # File logging - all logs
    logger.add(
        settings.LOG_FILE,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=settings.LOG_LEVEL,
        rotation="10 MB",
        retention="30 days",
        compression="zip"
    )
    
    # File logging - errors only
    logger.add(
        log_dir / "error.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level="ERROR",
        rotation="10 MB",
        retention="90 days",
        compression="zip"
    )
    
    # File logging - audit trail of approval decisions and rule changes
    logger.add(
        log_dir / "audit.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {message}",
        filter=lambda record: "AUDIT" in record["extra"],
        rotation="10 MB",
        retention="365 days",
        compression="zip"
    )
    
    _configured = True
    return logger


def log_audit(user_id, action: str, details: str):
    """
    Log audit trail entry
    
    Args:
        user_id: User ID who performed the action (None for the scheduler)
        action: Action performed
        details: Action details
    """
    actor = user_id if user_id is not None else "SYSTEM"
    logger.bind(AUDIT=True).info(f"USER_ID={actor} | ACTION={action} | DETAILS={details}")
