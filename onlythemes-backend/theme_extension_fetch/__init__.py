# theme_extension_fetch/__init__.py
import json
import logging
import azure.functions as func
from function_app import app
from shared.config import http_auth_level
from shared.normalizers import public_doc
from shared.themes_cosmos_client import RecordNotFound, get_store

def _json(obj, status=200):
    return func.HttpResponse(json.dumps(obj), status_code=status, mimetype="application/json")

def main(req: func.HttpRequest, store=None) -> func.HttpResponse:
    # userId is only a breadcrumb; selection does not depend on it
    user_id = (req.params.get("userId") or "").strip() or None
    logging.info("theme_extension_fetch userId=%s", user_id)

    try:
        store = store or get_store()
        theme, extension = store.random_theme_with_extension()
    except RecordNotFound as nf:
        logging.info("theme_extension_fetch: %s", nf)
        return _json({"success": False, "error": f"{nf.kind.capitalize()} not found"}, 404)
    except Exception:
        logging.exception("theme_extension_fetch failed")
        return _json({"success": False, "error": "server_error"}, 500)

    logging.info("theme_extension_fetch theme=%s extension=%s", theme.get("id"), extension.get("id"))
    return _json({
        "success": True,
        "theme": public_doc(theme),
        "extension": public_doc(extension),
    })

@app.function_name(name="theme_extension_fetch")
@app.route(route="theme-extension-fetch", methods=["GET"], auth_level=http_auth_level())
def run(req: func.HttpRequest) -> func.HttpResponse:
    return main(req)
