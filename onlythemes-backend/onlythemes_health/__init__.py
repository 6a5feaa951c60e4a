import json
import azure.functions as func
from function_app import app   # <-- import the single app
from shared.themes_cosmos_client import get_store

def main(req: func.HttpRequest, store=None) -> func.HttpResponse:
    # the store builds its Cosmos client lazily; reading the flags never connects
    store = store or get_store()
    return func.HttpResponse(
        status_code=200,
        mimetype="application/json",
        body=json.dumps({
            "status": "ok",
            "service": "onlythemes-backend",
            "ready": store.ready,
            "writable": store.writable,
        }),
    )

@app.function_name(name="onlythemes_health")
@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health(req: func.HttpRequest) -> func.HttpResponse:
    return main(req)
