import logging

import uvicorn

from leadcrm import config
from leadcrm.api.app import create_app

app = create_app()


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
