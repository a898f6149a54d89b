import uvicorn

from school_erp import create_app

app = create_app()


@app.get("/list-endpoints")
def list_endpoints():
    endpoints = []
    for route in app.router.routes:
        endpoints.append({
            "path": route.path,
            "name": route.name,
            "methods": sorted(getattr(route, "methods", None) or []),
        })
    return {"data": endpoints}


if __name__ == "__main__":
    uvicorn.run("school_erp.run:app", host="0.0.0.0", port=8000, reload=True)
