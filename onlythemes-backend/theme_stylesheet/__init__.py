# theme_stylesheet/__init__.py
import os
import azure.functions as func
from function_app import app

STYLESHEET_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                               "static", "onlythemes.css")

def main(req: func.HttpRequest) -> func.HttpResponse:
    with open(STYLESHEET_PATH, "rb") as f:
        return func.HttpResponse(
            f.read(),
            status_code=200,
            mimetype="text/css",
            headers={"Cache-Control": "public, max-age=3600"},
        )

@app.function_name(name="theme_stylesheet")
@app.route(route="theme-stylesheet", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def run(req: func.HttpRequest) -> func.HttpResponse:
    return main(req)
