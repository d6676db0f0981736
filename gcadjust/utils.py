# File: gcadjust/utils.py
# Location: gcadjust/gcadjust/utils.py

"""
Utility functions module.

Provides helper functions for logging setup, running commands, checking tool
availability and opening plain or gzip-compressed files.
"""

import gzip
import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("gcadjust")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure the "gcadjust" logger.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARN, ERROR.
    log_file : str, optional
        Path to a file to write logs to (in addition to stderr).
    """
    if level.upper() not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level '{level}'. Choose from {sorted(_LOG_LEVELS)}")
    log_level = _LOG_LEVELS[level.upper()]

    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
    )
    logger.setLevel(log_level)

    if log_file:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        fh = logging.FileHandler(log_file)
        fh.setLevel(log_level)
        fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(fh)
        logger.debug(f"Logging to file enabled: {log_file}")


def check_external_tools(tools: List[str]) -> bool:
    """
    Check if external tools are available in PATH.

    Parameters
    ----------
    tools : List[str]
        List of tool names to check for availability

    Returns
    -------
    bool
        True if all tools are available, False otherwise
    """
    for tool in tools:
        if not shutil.which(tool):
            logger.debug(f"Tool not found in PATH: {tool}")
            return False
        logger.debug(f"Found tool in PATH: {tool}")
    return True


def smart_open(filename: str, mode: str = "r", encoding: str = "utf-8", compresslevel: int = 6):
    """
    Open a file with automatic gzip support based on file extension.

    Parameters
    ----------
    filename : str
        Path to the file
    mode : str
        File opening mode ('r', 'w', 'rt', 'wt', etc.)
    encoding : str
        Text encoding (for text modes)
    compresslevel : int
        gzip compression level used when writing a ``.gz`` file

    Returns
    -------
    file object
        Opened file handle
    """
    if filename.endswith(".gz"):
        if "t" not in mode and "b" not in mode:
            mode = mode + "t"
        if "b" in mode:
            return gzip.open(filename, mode, compresslevel=compresslevel)
        return gzip.open(filename, mode, compresslevel=compresslevel, encoding=encoding)
    else:
        if "b" not in mode:
            return open(filename, mode, encoding=encoding)
        else:
            return open(filename, mode)


def run_command(cmd: list, output_file: Optional[str] = None) -> str:
    """
    Run a command and write stdout to output_file if provided, else return stdout.

    Parameters
    ----------
    cmd : list of str
        Command and its arguments.
    output_file : str, optional
        Path to a file where stdout should be written. If None,
        returns stdout as a string.

    Returns
    -------
    str
        If output_file is None, returns the command stdout as a string.
        If output_file is provided, returns output_file after completion.

    Raises
    ------
    subprocess.CalledProcessError
        If the command returns a non-zero exit code.
    """
    logger.debug("Running command: %s", " ".join(cmd))
    if output_file:
        with open(output_file, "wb") as out_f:
            result = subprocess.run(cmd, stdout=out_f, stderr=subprocess.PIPE)
        stderr = result.stderr.decode("utf-8", errors="replace")
    else:
        result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
        stderr = result.stderr

    if result.returncode != 0:
        logger.error("Command failed: %s\nError: %s", " ".join(cmd), stderr)
        raise subprocess.CalledProcessError(result.returncode, cmd, stderr)
    else:
        logger.debug("Command completed successfully.")
        if output_file:
            return output_file
        else:
            return result.stdout
