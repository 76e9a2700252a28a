"""
This module contains the logger implementation.
"""
import logging
import os
import sys
import traceback
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s::%(funcName)s::%(lineno)d: %(message)s'


def format_exception_info(
    e: Exception,
    include_code: bool = True,
    full_traceback: bool = False
) -> str:
    """
    Formats an exception message with optional traceback details.

    Args:
        e (Exception): The exception object.
        include_code (bool): Whether to include the actual line of code.
        full_traceback (bool): If True, return the full traceback instead of a short info.

    Returns:
        str: Enhanced exception message.
    """
    try:
        tb = e.__traceback__
        if not tb:
            return f"{type(e).__name__}: {e}"

        if full_traceback:
            return ''.join(traceback.format_exception(type(e), e, tb)).strip()

        last_frame = traceback.extract_tb(tb)[-1]
        code_line = last_frame.line.strip() if last_frame.line and include_code else ""

        location_info = f"In file '{last_frame.filename}' line {last_frame.lineno}"
        if code_line:
            location_info += f": {code_line}"

        return f"{location_info}\n{type(e).__name__}: {e}"

    except Exception as formatting_error:
        return f"{e} (could not extract traceback details: {formatting_error})"


def Logger(level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configures the root logger once per process.

    Lambda ships stdout to CloudWatch, so a stream handler is always attached.
    A midnight-rotating file handler is added when ``log_dir`` is given.
    """
    logger = logging.getLogger()
    # the Lambda runtime installs its own handler; only the level is ours then
    logger.setLevel(level.upper())
    if len(logger.handlers) == 0:
        formatter = logging.Formatter(LOG_FORMAT)

        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(formatter)
        logger.addHandler(sh)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            fh = TimedRotatingFileHandler(
                os.path.join(log_dir, "tracking.log"),
                when='midnight',
                interval=1,
                backupCount=31,
                encoding='utf-8'
            )
            fh.setFormatter(formatter)
            logger.addHandler(fh)
    return logger
