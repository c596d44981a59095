"""
BestPrice Compare - Settings

Внешние скаляры для движка сравнения:
- курс валюты поставщика к локальной (EUR → ILS)
- наценка импорта по умолчанию (если у товара нет своей)
- допуск равенства цен при выборе победителя

Источник: переменные окружения / backend/.env (python-dotenv, override=False).
Некорректные значения не роняют загрузку: берётся дефолт + warning в лог.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]

# === DEFAULTS ===

DEFAULT_EXCHANGE_RATE = 3.95
DEFAULT_IMPORT_MARKUP = 1.3
PRICE_TOLERANCE = 0.01  # абсолютный допуск при сравнении цен
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

ENV_PREFIX = "BESTPRICE_"

_ENV_LOADED = False


class Settings(BaseModel):
    """Settings supplied to the engine (never computed by it)"""
    model_config = ConfigDict(frozen=True)

    exchange_rate: float = DEFAULT_EXCHANGE_RATE
    default_import_markup: float = DEFAULT_IMPORT_MARKUP
    price_tolerance: float = PRICE_TOLERANCE
    log_level: str = DEFAULT_LOG_LEVEL


def load_env(env_file: Optional[Path] = None) -> None:
    """Loads backend/.env once. Already-set environment variables win."""
    global _ENV_LOADED
    if _ENV_LOADED and env_file is None:
        return
    load_dotenv(env_file or ROOT_DIR / '.env', override=False)
    _ENV_LOADED = True


def _positive_float(name: str, default: float) -> float:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw.strip().replace(',', '.'))
    except ValueError:
        logger.warning(f"Invalid {ENV_PREFIX}{name}={raw!r}, using default {default}")
        return default
    if not value > 0 or value == float('inf'):
        logger.warning(f"Non-positive {ENV_PREFIX}{name}={raw!r}, using default {default}")
        return default
    return value


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Собирает Settings из окружения.

    Переменные:
        BESTPRICE_EXCHANGE_RATE
        BESTPRICE_DEFAULT_IMPORT_MARKUP
        BESTPRICE_PRICE_TOLERANCE
        BESTPRICE_LOG_LEVEL
    """
    load_env(env_file)

    log_level = os.environ.get(ENV_PREFIX + 'LOG_LEVEL', DEFAULT_LOG_LEVEL).strip().upper()
    if log_level not in logging.getLevelNamesMapping():
        logger.warning(f"Unknown log level {log_level!r}, using {DEFAULT_LOG_LEVEL}")
        log_level = DEFAULT_LOG_LEVEL

    return Settings(
        exchange_rate=_positive_float('EXCHANGE_RATE', DEFAULT_EXCHANGE_RATE),
        default_import_markup=_positive_float('DEFAULT_IMPORT_MARKUP', DEFAULT_IMPORT_MARKUP),
        price_tolerance=_positive_float('PRICE_TOLERANCE', PRICE_TOLERANCE),
        log_level=log_level,
    )


def configure_logging(settings: Optional[Settings] = None) -> None:
    """basicConfig с форматом backend-скриптов"""
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
