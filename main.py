import logging
import uvicorn
import os
from logging.handlers import RotatingFileHandler
from datetime import datetime

from kitrunner.api.http import create_app

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_dir: str = "logs", level: int = logging.INFO) -> str:
    """
    Configuração central de logging: console + arquivo com rotação
    (10MB por arquivo, 5 backups). Devolve o caminho do arquivo.
    """
    os.makedirs(log_dir, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    log_file = os.path.join(log_dir, "app.log")
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    for handler in (console_handler, file_handler):
        handler.setLevel(level)
        root_logger.addHandler(handler)

    return log_file


if __name__ == "__main__":
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    log_file = setup_logging(level=level)
    logging.info(f"Logging configurado. Arquivo de log: {log_file}")
    logging.info(f"KitRunner iniciado em {datetime.now().strftime(DATE_FORMAT)}")

    # Em produção, quem sobe isso é o process manager (systemd, docker, etc.)
    uvicorn.run(
        create_app,
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )
