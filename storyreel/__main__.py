"""
Run the API server: python -m storyreel
"""
import os

import uvicorn


def main():
    uvicorn.run(
        "storyreel.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "").lower() in ("1", "true", "yes"),
        log_level="info",
    )


if __name__ == "__main__":
    main()
