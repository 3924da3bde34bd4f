"""Startet das Gateway (``serve``) oder einen Terminal-Chat gegen ein laufendes
Gateway (``chat``)."""
import argparse
import asyncio
import logging
import sys

import httpx
import uvicorn

from counsellor_gateway.core.client import ChatClient, GatewayError, TerminalView
from counsellor_gateway.core.config import get_settings
from counsellor_gateway.core.logging_setup import setup_logging
from counsellor_gateway.core.supervisor import ProcessSupervisor

logger = logging.getLogger("counsellor_gateway")

CHAT_HELP = "Commands: /report, /new, /quit"


async def _serve(server: uvicorn.Server, supervisor: ProcessSupervisor) -> None:
    supervisor.install_loop_handler(asyncio.get_running_loop())
    await server.serve()


def serve() -> int:
    settings = get_settings()
    # Import hier, damit "chat" keine App (und keine Log-Datei) anlegt.
    from counsellor_gateway.main import create_app

    app = create_app(settings)

    config = uvicorn.Config(app, host=settings.service_host, port=settings.service_port, log_config=None)
    server = uvicorn.Server(config)
    supervisor = ProcessSupervisor(shutdown_timeout=settings.shutdown_timeout)
    supervisor.install(server)

    logger.info(f"Frontend server running at http://localhost:{settings.service_port}")
    logger.info(f"Environment: {settings.app_env}")
    asyncio.run(_serve(server, supervisor))
    return supervisor.finish()


async def _chat(base_url: str) -> None:
    view = TerminalView()
    async with httpx.AsyncClient(base_url=base_url) as http:
        client = ChatClient(http, view)
        await client.start_session()
        print(CHAT_HELP)
        while True:
            line = await asyncio.to_thread(input, "> ")
            command = line.strip()
            try:
                if command == "/quit":
                    await client.end_session()
                    return
                if command == "/new":
                    await client.start_session()
                elif command == "/report":
                    await client.generate_report()
                else:
                    await client.send_message(line)
            except GatewayError:
                # Banner wurde bereits von der Ansicht ausgegeben.
                continue


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="counsellor-gateway")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="run the gateway (default)")
    chat = sub.add_parser("chat", help="chat with a running gateway from the terminal")
    chat.add_argument("--url", default=None, help="gateway base URL")
    args = parser.parse_args(argv)

    if args.command == "chat":
        setup_logging(log_file="", level=logging.ERROR)
        url = args.url or f"http://localhost:{get_settings().service_port}"
        try:
            asyncio.run(_chat(url))
        except (KeyboardInterrupt, EOFError):
            pass
        except GatewayError:
            return 1
        return 0
    return serve()


if __name__ == "__main__":
    sys.exit(main())
