# shared/config.py
import os
import azure.functions as func

# Database / containers
DB_NAME = os.getenv("ONLYTHEMES_DB", "onlyThemesDb")
THEMES_CONTAINER = os.getenv("ONLYTHEMES_THEMES_CONTAINER", "themes")
EXTENSIONS_CONTAINER = os.getenv("ONLYTHEMES_EXTENSIONS_CONTAINER", "extensions")
PARTITION_KEY = "/id"

# Random theme sampling
# "query"     -> paginated cross-partition query run in-process
# "procedure" -> getRandomTheme stored procedure, one logical partition
THEME_SAMPLER = (os.getenv("THEME_SAMPLER") or "query").strip().lower()
THEME_PROCEDURE_ID = "getRandomTheme"
THEME_PROCEDURE_PARTITION = os.getenv("THEME_PROCEDURE_PARTITION")

# Page size and result cap are separate knobs (both default to 1000)
THEME_PAGE_SIZE = int(os.getenv("THEME_PAGE_SIZE", 1000))
THEME_RESULT_CAP = int(os.getenv("THEME_RESULT_CAP", 1000))
THEME_BATCH_SECONDS = float(os.getenv("THEME_BATCH_SECONDS", 5))
THEME_MAX_BATCHES = int(os.getenv("THEME_MAX_BATCHES", 100))

# Cosmos system properties we never hand back to clients
SYSTEM_FIELDS = ("_rid", "_self", "_etag", "_attachments", "_ts")


def http_auth_level() -> func.AuthLevel:
    raw = (os.getenv("HTTP_AUTH_LEVEL") or "anonymous").strip().lower()
    return {
        "anonymous": func.AuthLevel.ANONYMOUS,
        "function":  func.AuthLevel.FUNCTION,
        "admin":     func.AuthLevel.ADMIN,
    }.get(raw, func.AuthLevel.ANONYMOUS)
