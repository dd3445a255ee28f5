# kiosk_dispatch/__main__.py
import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the kiosk dispatch server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=3000)
    args = parser.parse_args()

    uvicorn.run("kiosk_dispatch.transport.http_app:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
