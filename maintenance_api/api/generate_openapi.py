import json
import os
import sys

from maintenance_api.api.main import app

WEBSOCKET_ENDPOINTS = [
    {
        "path": "/ws/notifications",
        "summary": "Push notifications for the caller and the caller's role",
        "query": ["token"],
        "messages": {"server_to_client": ["connected", "push"], "client_to_server": ["ping"]},
    },
]


# PUBLIC_INTERFACE
def build_openapi() -> dict:
    """OpenAPI schema of the app, with the websocket endpoints as an extension."""
    openapi_schema = dict(app.openapi())
    openapi_schema["x-websocket-endpoints"] = WEBSOCKET_ENDPOINTS
    return openapi_schema


# PUBLIC_INTERFACE
def write_openapi(output_dir: str = "interfaces") -> str:
    """Write openapi.json into output_dir and return its path."""
    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, "openapi.json")
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(build_openapi(), f, indent=2, ensure_ascii=False)
    return output_path


if __name__ == "__main__":
    write_openapi(*sys.argv[1:2])
