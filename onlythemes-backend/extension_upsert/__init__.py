# extension_upsert/__init__.py
import json
import logging
import azure.functions as func
from function_app import app
from shared.config import http_auth_level
from shared.normalizers import extension_payload
from shared.themes_cosmos_client import get_store

def _resp(obj, status=200):
    return func.HttpResponse(json.dumps(obj), status_code=status, mimetype="application/json")

def upsert(extension, store=None) -> func.HttpResponse:
    """
    Exactly one outcome per call:
      200 {"success": true, "id": ...}  stored
      500 {"success": false, "error": ...}  store refused it
      404  nothing to store
    """
    if not extension:
        return _resp({"success": False, "error": "Extension not provided"}, 404)

    logging.info("extension_upsert id=%s displayName=%s", extension.get("id"), extension.get("displayName"))
    try:
        store = store or get_store()
        resource = store.upsert_extension(extension)
    except Exception as e:
        logging.exception("extension_upsert failed")
        return _resp({"success": False, "error": f"{type(e).__name__}: {e}"}, 500)

    return _resp({"success": True, "id": resource.get("id")}, 200)

def main(req: func.HttpRequest, store=None) -> func.HttpResponse:
    try:
        body = req.get_json()
    except ValueError:
        body = None
    return upsert(extension_payload(body), store=store)

@app.function_name(name="extension_upsert")
@app.route(route="extension-upsert", methods=["POST"], auth_level=http_auth_level())
def run(req: func.HttpRequest) -> func.HttpResponse:
    return main(req)
