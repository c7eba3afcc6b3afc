# ClearPath/services/control_api.py
import asyncio
import os
import signal
import threading
import time

from flask import Flask, Response, jsonify, request
from loguru import logger

from core.states import SessionStatus


async def invoke(fn, *args):
    """Run a plain controller method as a coroutine on the session loop."""
    return fn(*args)


def create_api(controller, loop, request_timeout=30.0):
    """
    Control API for the dashboard. Every handler hands work to the session
    loop; nothing here touches controller state directly.
    """
    api = Flask("ClearPathAPI")

    def on_loop(coro, wait=True):
        fut = asyncio.run_coroutine_threadsafe(coro, loop)
        if not wait:
            return None
        return fut.result(timeout=request_timeout)

    def state_reply(ok=True, status=200, **extra):
        body = {"ok": ok, "state": controller.state.to_dict()}
        body.update(extra)
        return jsonify(body), status

    @api.route("/listen/start", methods=["POST"])
    def api_listen_start():
        ok = on_loop(controller.start_listening())
        return state_reply(ok)

    @api.route("/listen/verify", methods=["POST"])
    def api_listen_verify():
        transcript = on_loop(controller.stop_listening_and_verify())
        return state_reply(transcript is not None, transcript=transcript)

    @api.route("/listen/cancel", methods=["POST"])
    def api_listen_cancel():
        ok = on_loop(invoke(controller.cancel_listening))
        return state_reply(ok)

    @api.route("/navigate", methods=["POST"])
    def api_navigate():
        data = request.get_json(force=True, silent=True) or {}
        query = (data.get("query") or "").strip() or None

        # route request + first step speech can take a while; answer right away
        if controller.state.status is SessionStatus.VERIFYING:
            on_loop(controller.confirm_and_navigate(query), wait=False)
        elif query:
            on_loop(controller.navigate_with_text(query), wait=False)
        else:
            logger.info("[API] /navigate without a query outside VERIFYING")
            return state_reply(False, 400, error="Nothing to navigate to")
        return state_reply(True, 202)

    @api.route("/navigate/decline", methods=["POST"])
    def api_navigate_decline():
        ok = on_loop(controller.decline_transcript())
        return state_reply(ok)

    @api.route("/command", methods=["POST"])
    def api_command():
        data = request.get_json(force=True, silent=True) or {}
        text = (data.get("text") or "").strip()
        command = on_loop(invoke(controller.submit_command_text, text))
        if command is None:
            logger.info(f"[API] Unrecognized command text: {text!r}")
            return state_reply(False, 400, error=f"Unrecognized command: {text!r}")
        return state_reply(True, command=command.value)

    @api.route("/stop", methods=["POST"])
    def api_stop():
        on_loop(controller.stop_navigation(), wait=False)
        return state_reply(True, 202)

    @api.route("/reset", methods=["POST"])
    def api_reset():
        on_loop(invoke(controller.reset))
        return state_reply(True)

    @api.route("/state", methods=["GET"])
    def api_state():
        return state_reply(True, services=controller.services_status())

    @api.route("/steps", methods=["GET"])
    def api_steps():
        cursor = controller.cursor
        if cursor is None:
            return jsonify({"steps": [], "current_index": 0, "progress": None})
        progress = cursor.progress()
        return jsonify({
            "steps": [
                {
                    "index": s.index,
                    "text": s.instruction_text,
                    "is_landmark": s.is_landmark_reference,
                    "distance_steps": s.distance_in_pace_units,
                }
                for s in cursor.steps
            ],
            "current_index": cursor.current_index,
            "progress": {"current": progress.current, "total": progress.total,
                         "percent": progress.percent},
        })

    @api.route("/video_feed")
    def video_feed():
        frames = controller.video_handle

        def gen():
            while True:
                frame = frames.get_jpeg_frame() if frames else None
                if frame:
                    yield (
                        b"--frame\r\n"
                        b"Content-Type: image/jpeg\r\n"
                        b"Cache-Control: no-cache\r\n\r\n" +
                        frame +
                        b"\r\n"
                    )
                    time.sleep(0.03)
                else:
                    # vision stopped / no frames yet
                    time.sleep(0.05)

        return Response(gen(), mimetype="multipart/x-mixed-replace; boundary=frame")

    @api.route("/shutdown", methods=["POST"])
    def api_shutdown():
        logger.info("[API] Shutdown requested")

        def delayed_exit():
            time.sleep(0.5)
            os.kill(os.getpid(), signal.SIGINT)

        threading.Thread(target=delayed_exit, daemon=True).start()
        return jsonify({"ok": True})

    return api
