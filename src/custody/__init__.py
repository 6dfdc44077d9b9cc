"""
Пакет custody
=============

Хранение ключей подписи и подпись документов.

Пакет предоставляет:
    - Конвертное шифрование закрытых ключей Ed25519 (AES-256-GCM под мастер-ключом)
    - Доступ к ключу по парольной фразе (PBKDF2-HMAC-SHA256)
    - Детерминированное каноническое хеширование документов
    - Подпись и проверку подписи Ed25519
    - Жизненный цикл ключа: активен / отозван / истёк / удалён

Пример:
    >>> import os
    >>> os.environ["MASTER_KEY_B64"] = "<base64 от 32 байт>"
    >>> from custody.app_context import get_app_context
    >>> ctx = get_app_context()
    >>> ctx.service.verify_document("doc-1")

Управление логированием:
    CUSTODY_LOG_LEVEL=DEBUG|INFO|WARNING|ERROR|CRITICAL
    CUSTODY_LOG_DIR=<каталог> включает ротирующий файловый журнал.
"""

import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

__version__ = "0.1.0"
__description__ = "Signing-key custody and document signing core"
__license__ = "MIT"
__python_requires__ = ">=3.11"

VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

_ROOT_LOGGER_NAME = "custody"


def _setup_logging() -> None:
    """
    Инициализировать общепакетную конфигурацию логирования.

    - Консольный обработчик (stderr) для WARNING и выше
    - Ротирующий файловый обработчик, если задан CUSTODY_LOG_DIR
    - Уровень из CUSTODY_LOG_LEVEL (по умолчанию INFO)

    Идемпотентна: повторные вызовы не добавляют обработчиков.
    """
    log_level_str = os.environ.get("CUSTODY_LOG_LEVEL", "INFO").upper()
    log_level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    log_level = log_level_map.get(log_level_str, logging.INFO)

    root_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    if root_logger.handlers:
        return

    root_logger.setLevel(log_level)

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_dir_str = os.environ.get("CUSTODY_LOG_DIR")
    if log_dir_str:
        try:
            log_dir = Path(log_dir_str)
            log_dir.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                filename=log_dir / "custody.log",
                maxBytes=10 * 1024 * 1024,  # 10 МБ
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(
                f"Не удалось инициализировать файловое логирование: {e}. "
                f"Используется только консоль."
            )

    root_logger.propagate = False


# Значения конфигурации по умолчанию
_DEFAULT_CONFIG: Dict[str, Any] = {
    "pbkdf2_iterations": 100_000,
    "passphrase_prefix": "CA",
    "passphrase_min_length": 8,
    "passphrase_require_symbol": True,
    "store_path": None,
}


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Загрузить конфигурацию из JSON-файла поверх значений по умолчанию.

    Мастер-ключ в файле не хранится: он читается только из окружения
    (MASTER_KEY_B64) через custody.config.CustodyConfig.from_env().
    Ключ "master_key_b64" в файле игнорируется с предупреждением.

    Аргументы:
        config_path: путь к файлу; по умолчанию 'custody.json' в текущем каталоге.

    Возвращает:
        Словарь со всеми ключами по умолчанию и пользовательскими переопределениями.
    """
    logger = logging.getLogger(__name__)

    if config_path is None:
        config_path = Path("custody.json")

    config = _DEFAULT_CONFIG.copy()

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                user_config = json.load(f)

            if not isinstance(user_config, dict):
                raise ValueError(
                    f"Файл конфигурации должен содержать JSON-объект, "
                    f"получен {type(user_config).__name__}"
                )

            if user_config.pop("master_key_b64", None) is not None:
                logger.warning(
                    "Мастер-ключ в файле конфигурации проигнорирован; используйте MASTER_KEY_B64"
                )

            config.update(user_config)
            logger.info(f"Конфигурация загружена из {config_path}")

        except json.JSONDecodeError as e:
            logger.warning(
                f"Не удалось разобрать {config_path}: Недопустимый JSON "
                f"в строке {e.lineno}, столбце {e.colno}. "
                f"Используется конфигурация по умолчанию."
            )
        except OSError as e:
            logger.warning(
                f"Не удалось прочитать {config_path}: {e}. "
                f"Используется конфигурация по умолчанию."
            )
        except ValueError as e:
            logger.warning(
                f"Недопустимый формат конфигурации: {e}. "
                f"Используется конфигурация по умолчанию."
            )
    else:
        logger.info(
            f"Файл конфигурации {config_path} не найден. "
            f"Используется конфигурация по умолчанию."
        )

    return config


_setup_logging()

__all__ = [
    "__version__",
    "__description__",
    "__license__",
    "__python_requires__",
    "VERSION_MAJOR",
    "VERSION_MINOR",
    "VERSION_PATCH",
    "load_config",
]
