import uvicorn
from appscope.config import settings


def run():
    uvicorn.run(
        "appscope.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
