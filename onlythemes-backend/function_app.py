# onlythemes-backend/function_app.py
import azure.functions as func

from shared.logging_setup import configure_azure_sdk_logging

configure_azure_sdk_logging()

# One global app
app = func.FunctionApp()

# Import function modules so their decorators run and register with `app`
import onlythemes_health      # noqa: F401
import theme_extension_fetch  # noqa: F401
import extension_upsert       # noqa: F401
import theme_stylesheet       # noqa: F401
