import uvicorn

from webapp.app import create_app
from webapp.config import load_settings
from webapp.utils.logging import configure_logging

settings = load_settings()
configure_logging(settings.log_level)
app = create_app(settings)

if __name__ == "__main__":
    uvicorn.run("webapp.main:app", host="0.0.0.0", port=settings.port)
