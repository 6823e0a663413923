import uvicorn

from ip_finder.config import get_settings
from ip_finder.logger import log_config


def main() -> None:
    """Run the IP finder API with uvicorn using the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "ip_finder.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_config=log_config,
    )


if __name__ == "__main__":
    main()
