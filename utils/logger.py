import logging
import logging.config

def setup_logging(portal_config) -> logging.Logger:
    """Настройка логирования по конфигурации портала"""
    if portal_config.log_to_file:
        portal_config.log_dir.mkdir(exist_ok=True, parents=True)
    logging.config.dictConfig(portal_config.get_logging_config())
    return logging.getLogger()
