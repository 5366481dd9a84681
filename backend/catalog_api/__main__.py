"""CLI entry point for launching the Catalog API with Uvicorn."""
import uvicorn

from .app import create_app
from .settings import CatalogSettings
from .utils.logging_config import configure_logging


def main() -> None:
    """Start a development server for the Catalog API."""
    settings = CatalogSettings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
