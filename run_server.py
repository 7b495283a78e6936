import uvicorn
import os

if __name__ == "__main__":
    # Store path is read by the app on startup
    os.environ.setdefault("FIELDSTATE_STORE_PATH", os.path.join("data", "events"))

    print("Starting Field State API Server...")
    print(f"Store: {os.environ['FIELDSTATE_STORE_PATH']}")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "fieldstate.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
