import logging
import re

# GitHub OAuth, personal, user-to-server and installation tokens
_TOKEN_PATTERN = re.compile(r"\b(gh[opsur]_|github_pat_)[A-Za-z0-9_]{8,}")
_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class TokenRedactionFilter(logging.Filter):
    """Masks anything shaped like a GitHub token in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _TOKEN_PATTERN.sub(lambda m: f"{m.group(1)}****", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Return a logger with the shared Quick Deploy stream format.

    The handler and redaction filter are attached once per logger name.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.addFilter(TokenRedactionFilter())
        logger.setLevel(level)
    return logger
