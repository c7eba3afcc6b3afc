# ClearPath/ui/app.py
from flask import Flask, render_template, Response, request, jsonify, redirect
import json
import queue
import time
from collections import deque

import requests

import config

MAIN_API = f"http://{config.API_HOST}:{config.API_PORT}"  # main.py control API

# replayed to a freshly opened dashboard
recent_logs = deque(maxlen=200)
recent_events = deque(maxlen=50)
last_state = {}

state_queue = queue.Queue()
event_queue = queue.Queue()

# dashboard button -> control API path
CONTROL_ROUTES = {
    "listen_start": "/listen/start",
    "listen_verify": "/listen/verify",
    "listen_cancel": "/listen/cancel",
    "navigate": "/navigate",
    "decline": "/navigate/decline",
    "command": "/command",
    "stop": "/stop",
    "reset": "/reset",
    "shutdown": "/shutdown",
}

app = Flask(__name__)


def sse(messages, replay=(), keepalive_s=1.0):
    """Server-sent events: replay first, then whatever lands in the queue."""
    def generate():
        for item in list(replay):
            yield f"data: {json.dumps(item)}\n\n"
        while True:
            try:
                item = messages.get(timeout=keepalive_s)
            except queue.Empty:
                yield ": keepalive\n\n"
                continue
            yield f"data: {json.dumps(item)}\n\n"
    return Response(generate(), mimetype="text/event-stream")


def tail_log(path=config.LOG_FILE, poll_s=0.1):
    while not path.exists():
        time.sleep(0.5)
    with path.open("r") as f:
        f.seek(0, 2)
        idle_since = time.time()
        while True:
            line = f.readline()
            if not line:
                if time.time() - idle_since > 10:
                    yield None
                    idle_since = time.time()
                time.sleep(poll_s)
                continue
            idle_since = time.time()
            yield line.rstrip()


@app.route("/")
def index():
    return render_template("index.html")

@app.route("/health")
def health():
    return "ok"

# ---------------- STREAMS ----------------
@app.route("/state")
def state_stream():
    return sse(state_queue, replay=[last_state] if last_state else ())

@app.route("/events")
def event_stream():
    return sse(event_queue, replay=recent_events)

@app.route("/logs")
def log_stream():
    def generate():
        for line in list(recent_logs):
            yield f"data: {line}\n\n"
        for line in tail_log():
            if line is None:
                yield ": keepalive\n\n"
                continue
            recent_logs.append(line)
            yield f"data: {line}\n\n"
    return Response(generate(), mimetype="text/event-stream")

# ---------------- PUSH (from main.py) ----------------
@app.route("/push_state", methods=["POST"])
def push_state():
    data = request.get_json(force=True, silent=True) or {}
    if not data.get("state"):
        return jsonify({"ok": False}), 400
    last_state.clear()
    last_state.update(data)
    state_queue.put(data)
    return jsonify({"ok": True})

@app.route("/push_event", methods=["POST"])
def push_event():
    data = request.get_json(force=True, silent=True) or {}
    if not data.get("type"):
        return jsonify({"ok": False}), 400
    evt = {"type": data["type"], "payload": data.get("payload")}
    recent_events.append(evt)
    event_queue.put(evt)
    return jsonify({"ok": True})

# ---------------- CONTROLS (to main.py) ----------------
def forward(method, path, payload=None, timeout=1.0):
    try:
        r = requests.request(method, f"{MAIN_API}{path}", json=payload, timeout=timeout)
    except requests.RequestException as e:
        return jsonify({"ok": False, "error": str(e)}), 502
    return Response(r.content, status=r.status_code, mimetype="application/json")

@app.route("/control/<action>", methods=["POST"])
def control(action):
    path = CONTROL_ROUTES.get(action)
    if path is None:
        return jsonify({"ok": False, "error": f"unknown action {action!r}"}), 404
    # /listen/verify waits for transcription
    return forward("POST", path, request.get_json(force=True, silent=True) or {}, timeout=35.0)

@app.route("/steps")
def steps():
    return forward("GET", "/steps")

@app.route("/video_feed")
def video_feed():
    return redirect(f"{MAIN_API}/video_feed", code=302)


if __name__ == "__main__":
    app.run(host=config.UI_HOST, port=config.UI_PORT, debug=False, threaded=True)
