"""Scout Agent: main entry point."""

import logging

import uvicorn

from scout_agent.config import settings
from scout_agent.database import init_db


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.validate_required()
    print("Scout Agent starting...")
    init_db()
    print(f"API: http://{settings.dashboard_host}:{settings.dashboard_port}")
    uvicorn.run(
        "scout_agent.web.app:app",
        host=settings.dashboard_host,
        port=settings.dashboard_port,
    )


if __name__ == "__main__":
    main()
