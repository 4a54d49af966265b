from app.config import Settings
from app.logging_config import get_logger, setup_logging


def test_setup_logging_uses_console_handler(mocker):
    dict_config = mocker.patch("logging.config.dictConfig")

    logger = setup_logging(Settings(LOG_LEVEL="debug"))

    config = dict_config.call_args.args[0]
    assert set(config["formatters"]) == {"simple"}
    assert config["handlers"]["console"]["formatter"] == "simple"
    assert config["handlers"]["console"]["level"] == "DEBUG"
    assert config["loggers"]["invoice_service"]["level"] == "DEBUG"
    assert logger.name == "invoice_service"


def test_module_loggers_share_service_namespace():
    assert get_logger("crud").name == "invoice_service.crud"
