# shared/logging_setup.py
import logging
import os

# azure-cosmos logs every request and response through these at INFO
COSMOS_LOGGER = "azure.cosmos"
HTTP_POLICY_LOGGER = "azure.core.pipeline.policies.http_logging_policy"


def configure_azure_sdk_logging() -> None:
    """
    Hold the Cosmos SDK at WARNING (or AZURE_SDK_LOG_LEVEL) and keep the
    request/response dump off unless AZURE_HTTP_LOGGING is truthy.
    """
    level_name = (os.getenv("AZURE_SDK_LOG_LEVEL") or "WARNING").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING

    logging.getLogger(COSMOS_LOGGER).setLevel(level)
    http_logger = logging.getLogger(HTTP_POLICY_LOGGER)
    http_logger.setLevel(level)
    http_logger.disabled = (os.getenv("AZURE_HTTP_LOGGING") or "").strip().lower() not in ("1", "true", "yes", "on")
