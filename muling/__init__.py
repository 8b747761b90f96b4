import os
import sys
import tempfile
import time
from dotenv import load_dotenv
from loguru import logger

load_dotenv()


def _resolve_logs_dir(service_name: str) -> str:
    """Pick a writable logs directory, falling back to the temp dir and then the cwd."""
    logs_dir = os.environ.get('LOGS_DIR')

    if not logs_dir:
        project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
        logs_dir = os.path.join(project_root, "logs")

    for candidate in (logs_dir, os.path.join(tempfile.gettempdir(), 'muling-analytics-logs')):
        try:
            os.makedirs(candidate, exist_ok=True)
            test_file = os.path.join(candidate, f'.write_test_{service_name}_{int(time.time())}')
            with open(test_file, 'w') as f:
                f.write('test')
            os.remove(test_file)
            return candidate
        except (OSError, PermissionError) as e:
            print(f"Warning: logs directory {candidate} is not writable: {e}")

    return os.getcwd()


def setup_logger(service_name: str):
    """
    Configure loguru sinks for a service.

    A JSON file sink is written to LOGS_DIR (or ./logs) and a human-readable
    sink to stdout. The level comes from LOG_LEVEL, defaulting to INFO.

    Args:
        service_name: Name stamped on every record as extra['service']

    Returns:
        The service name
    """

    def patch_record(record):
        record["extra"]["service"] = service_name
        record["extra"]["timestamp"] = time.time()
        return True

    logs_dir = _resolve_logs_dir(service_name)
    log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()

    logger.remove()

    try:
        logger.add(
            os.path.join(logs_dir, f"{service_name}.log"),
            rotation="500 MB",
            level=log_level,
            filter=patch_record,
            serialize=True,
            format="{time} | {level} | {extra[service]} | {message} | {extra}"
        )
    except Exception as e:
        print(f"Warning: Could not set up file logging: {e}. Proceeding with console-only logging.")

    console_format = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | <cyan>{extra[service]}</cyan> | {message}"

    logger.add(
        sys.stdout,
        format=console_format,
        level=log_level,
        filter=patch_record,
        backtrace=False,
        diagnose=False,
    )

    logger.info(f"Logger configured with level: {log_level}")

    return service_name
