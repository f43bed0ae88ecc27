"""Run the wikisync server with uvicorn."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "wikisync.main:app",
        host=os.getenv("WIKISYNC_HOST", "127.0.0.1"),
        port=int(os.getenv("WIKISYNC_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
