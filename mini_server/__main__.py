import uvicorn

from mini_server.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "mini_server.api:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
