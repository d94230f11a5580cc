"""
Run the Feteer Counter API with uvicorn.

Example:
  ORDERS_RELOAD=true python -m apps.orders
"""
import os

import uvicorn


def main() -> None:
    reload = os.getenv("ORDERS_RELOAD", "false").lower() == "true"
    host = os.getenv("ORDERS_HOST", "0.0.0.0")
    port = int(os.getenv("ORDERS_PORT", "8000"))
    uvicorn.run(
        "apps.orders.app.main:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["apps"] if reload else None,
    )


if __name__ == "__main__":
    main()
