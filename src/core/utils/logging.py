"""
Logging utilities.
Configures structured logging for the application.
"""

import logging
import os
import re
import sys
from typing import Any, Dict

import colorama
import structlog

from src.core.config.settings import settings

# Regex patterns for PII
EMAIL_REGEX = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b')
# 13 to 19 digits, optionally grouped by spaces or dashes (PAN-like)
CARD_REGEX = re.compile(r'\b(?:\d[ -]?){12,18}\d\b')


def mask_pii(text: str) -> str:
    """
    Mask PII (Email, card numbers) in a string.
    Only applies masking if running in PRODUCTION environment.
    """
    if settings.api.environment != "production":
        return text

    if not text:
        return text

    text = EMAIL_REGEX.sub('[EMAIL_REDACTED]', text)
    text = CARD_REGEX.sub('[CARD_REDACTED]', text)
    return text


class PIIMaskingProcessor:
    """
    Structlog processor that masks PII (Email, card numbers) in log events.
    """
    def __call__(self, logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        if settings.api.environment != "production":
            return event_dict

        for key, value in event_dict.items():
            if isinstance(value, str):
                value = EMAIL_REGEX.sub('[EMAIL_REDACTED]', value)
                # Identifiers and amounts are numeric but never card numbers
                if 'id' not in key.lower() and 'cents' not in key.lower():
                    value = CARD_REGEX.sub('[CARD_REDACTED]', value)
                event_dict[key] = value
        return event_dict


# FORCE_COLOR=true keeps ANSI codes when stdout is a pipe (docker logs, CI)
force_color = os.getenv("FORCE_COLOR", "false").lower() == "true"
colorama.init(autoreset=True, strip=False if force_color else None)


class ColoredConsoleRenderer:
    """
    Development renderer: `time logger LEVEL event tenant_id=.. key=..`.

    Tenant and subscription ids are printed right after the message so
    interleaved lifecycle logs stay readable.
    """

    LEVEL_COLORS = {
        "debug": colorama.Fore.CYAN,
        "info": colorama.Fore.GREEN,
        "warning": colorama.Fore.YELLOW,
        "error": colorama.Fore.RED,
        "critical": colorama.Fore.RED + colorama.Style.BRIGHT,
    }
    LEADING_KEYS = ("tenant_id", "subscription_id")
    KEY_STYLE = colorama.Fore.CYAN + colorama.Style.DIM
    VALUE_STYLE = colorama.Fore.GREEN

    def _pair(self, key: str, value: Any) -> str:
        return f"{self.KEY_STYLE}{key}={self.VALUE_STYLE}{value}{colorama.Style.RESET_ALL}"

    def __call__(self, logger, method_name, event_dict):
        level = event_dict.pop("level", method_name).lower()
        color = self.LEVEL_COLORS.get(level, colorama.Fore.WHITE)

        timestamp = event_dict.pop("timestamp", "")
        logger_name = event_dict.pop("logger", "")

        line = []
        if timestamp:
            line.append(f"{colorama.Fore.WHITE}{timestamp}")
        if logger_name:
            line.append(f"{colorama.Fore.MAGENTA}{logger_name}")
        line.append(f"{color}{level.upper():<8} {event_dict.pop('event', '')}")

        for key in self.LEADING_KEYS:
            if key in event_dict:
                line.append(self._pair(key, event_dict.pop(key)))
        line.extend(self._pair(k, v) for k, v in sorted(event_dict.items()))

        return " ".join(line) + colorama.Style.RESET_ALL


_configured = False


def configure_logging():
    """
    Configure structured logging for the application.
    """
    global _configured
    if _configured:
        return

    shared_processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        PIIMaskingProcessor(),
    ]

    if settings.api.environment == "development" or settings.api.debug:
        renderer = ColoredConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log.level.upper()),
    )

    _configured = True


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.
    Automatically configures logging if not yet configured.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger instance
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)
