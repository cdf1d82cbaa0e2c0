import os

import pytest
from dotenv import find_dotenv, load_dotenv

# Load .env before collection so the skip below sees it.
load_dotenv(find_dotenv(usecwd=True))


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    base_url = os.getenv("SSESTREAM_BASE_URL")
    for item in items:
        if "integration" in item.keywords and not base_url:
            item.add_marker(pytest.mark.skip(reason="SSESTREAM_BASE_URL missing from environment/.env"))
