"""
Terminal WebSocket

One-shot command runner for the frontend terminal. Each message
{"pod": "<name>", "command": "<shell command>"} runs `/bin/sh -c <command>`
in the pod with a TTY and answers with {"type": "Output", "data": "..."}.
Output uses CRLF line endings for xterm-style terminals.
"""

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..services.kubernetes.exec_transport import ExecTransport, get_exec_transport

logger = logging.getLogger(__name__)
router = APIRouter(tags=["terminal"])

NO_OUTPUT_PLACEHOLDER = "(command ran, no output)"


def to_crlf(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\n", "\r\n")


async def run_terminal_command(transport: ExecTransport, pod_name: str, command: str) -> str:
    """Run one command and return the text to show in the terminal."""
    logger.info(f"[TERMINAL] Pod: {pod_name}, Cmd: {command}")

    try:
        result = await transport.exec(pod_name, ["/bin/sh", "-c", command], tty=True)
    except Exception as e:
        logger.warning(f"[TERMINAL] Command failed in pod {pod_name}: {e}")
        return f"Error: {e}\r\n"

    output = result.stdout + result.stderr
    if not output:
        output = NO_OUTPUT_PLACEHOLDER
    return to_crlf(output)


@router.websocket("/terminal")
async def terminal_endpoint(
    websocket: WebSocket,
    transport: ExecTransport = Depends(get_exec_transport)
):
    await websocket.accept()

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
                pod_name = message["pod"]
                command = message["command"]
            except (ValueError, KeyError, TypeError):
                await websocket.send_json({"type": "Output", "data": "Error: expected {\"pod\", \"command\"}\r\n"})
                continue

            output = await run_terminal_command(transport, pod_name, command)
            await websocket.send_json({"type": "Output", "data": output})

    except WebSocketDisconnect:
        logger.debug("[TERMINAL] Client disconnected")
