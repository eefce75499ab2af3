# catalog_sync/utils/logger.py
import os, sys, time

LEVELS = {"ERROR": 40, "WARN": 30, "INFO": 20, "DEBUG": 10, "NONE": 100}
LOG_LEVEL = LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), 20)

def set_level(name: str):
    """Override the LOG_LEVEL threshold (CLI --log-level)."""
    global LOG_LEVEL
    LOG_LEVEL = LEVELS.get((name or "INFO").upper(), 20)

def _ts():
    return time.strftime("%H:%M:%S")

def log(level: str, msg: str):
    if LEVELS[level] < LOG_LEVEL:
        return
    stream = sys.stderr if LEVELS[level] >= 40 else sys.stdout
    print(f"[{_ts()}][{level}] {msg}", file=stream, flush=True)

def debug(msg): log("DEBUG", msg)
def info(msg):  log("INFO", msg)
def warn(msg):  log("WARN", msg)
def error(msg): log("ERROR", msg)

def row_result(job: str, index: int, key: str, result: str, message: str):
    # one line per report row; failures at WARN so LOG_LEVEL=WARN shows only problems
    line = f"[{job}] row {index} {key}: {result} - {message}"
    if result == "error":
        warn(line)
    else:
        info(line)
