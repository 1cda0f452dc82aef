import json
import os
import sys

from practice_api.api.main import app

TENANT_HEADERS = ["X-Firm-ID", "X-Lawyer-ID"]


# PUBLIC_INTERFACE
def write_openapi(output_dir: str = "interfaces") -> str:
    """Write the OpenAPI schema (all REST routes are under /api/v1) to <output_dir>/openapi.json."""
    openapi_schema = app.openapi()

    # Non-standard extension documenting the tenant scope headers every data route requires
    openapi_schema["x-tenant-scope"] = {
        "headers": TENANT_HEADERS,
        "rule": "Send exactly one header. Firm members send X-Firm-ID; solo lawyers send X-Lawyer-ID.",
    }

    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, "openapi.json")
    with open(output_path, "w") as f:
        json.dump(openapi_schema, f, indent=2)
    return output_path


if __name__ == "__main__":
    write_openapi(*sys.argv[1:2])
