import logging

from notification_engine.config import get_settings
from notification_engine.main import create_app

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = create_app()
