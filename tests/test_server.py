from __future__ import annotations

import logging

from fastapi.testclient import TestClient
from loguru import logger

from issuescope.config import IssuescopeConfig
from issuescope.web.server import build_app, setup_logging


def test_build_app_wires_configured_store(tmp_path):
    db_path = tmp_path / "data" / "issues.db"
    config = IssuescopeConfig.load(tmp_path, environ={"ISSUESCOPE_DB": str(db_path)})

    client = TestClient(build_app(config, tmp_path))

    assert client.get("/repos").json() == {"items": []}
    assert db_path.exists()


def test_setup_logging_routes_stdlib_into_loguru(tmp_path):
    log_file = tmp_path / "logs" / "server.log"
    setup_logging(log_file)
    try:
        logging.getLogger("uvicorn").info("hello from uvicorn")
    finally:
        logger.remove()

    assert "hello from uvicorn" in log_file.read_text()
