import uvicorn

from broker_bridge.config import settings


def main() -> None:
    uvicorn.run("broker_bridge.main:app", host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
