from __future__ import annotations

import logging
import threading
from functools import wraps
from typing import Any, Mapping, Optional

from flask import Flask, current_app, flash, jsonify, redirect, render_template, request, url_for

from allocator import BlockAllocator
from queue_harness import QueueHarness

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "SECRET_KEY": "dev-secret-key",
    "QUEUE_FAIL_PROBABILITY": 0.0,
    "QUEUE_STRING_LENGTH": 1024,
    "QUEUE_SEED": None,
}


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(DEFAULT_CONFIG)
    # FLASK_QUEUE_FAIL_PROBABILITY=0.1 etc.
    app.config.from_prefixed_env()
    if config:
        app.config.from_mapping(config)

    seed = app.config["QUEUE_SEED"]
    allocator = BlockAllocator(
        fail_probability=float(app.config["QUEUE_FAIL_PROBABILITY"]),
        seed=seed,
    )
    app.extensions["queue_harness"] = QueueHarness(
        allocator=allocator,
        string_length=int(app.config["QUEUE_STRING_LENGTH"]),
        seed=seed,
    )
    # one queue, one owner: requests take turns
    app.extensions["queue_lock"] = threading.Lock()

    register_routes(app)
    logger.info("Queue harness ready (fail probability %s)", allocator.fail_probability)
    return app


# -------------------------
# common
# -------------------------
def harness() -> QueueHarness:
    return current_app.extensions["queue_harness"]


def with_harness_lock(fn):
    @wraps(fn)
    def inner(*args, **kwargs):
        with current_app.extensions["queue_lock"]:
            return fn(*args, **kwargs)
    return inner


def flash_result(result) -> None:
    ok, msg = result
    flash(msg, "success" if ok else "error")


def form_count() -> int:
    try:
        return max(1, int(request.form.get("count") or 1))
    except ValueError:
        return 1


def register_routes(app: Flask) -> None:

    # -------------------------
    # dashboard
    # -------------------------
    @app.route("/", methods=["GET"])
    @with_harness_lock
    def dashboard():
        h = harness()
        return render_template(
            "dashboard.html",
            contents=h.contents(),
            size=0 if h.queue is None else h.queue.size(),
            live_blocks=h.allocator.snapshot(),
            fail_probability=h.allocator.fail_probability,
            string_length=h.string_length,
            log=list(h.log),
        )

    @app.route("/queue.json", methods=["GET"])
    @with_harness_lock
    def queue_state():
        h = harness()
        return jsonify(
            exists=h.queue is not None,
            contents=h.contents(),
            size=0 if h.queue is None else h.queue.size(),
            live_blocks=h.allocator.snapshot(),
            fail_probability=h.allocator.fail_probability,
        )

    # -------------------------
    # lifecycle
    # -------------------------
    @app.route("/queue/new", methods=["POST"])
    @with_harness_lock
    def queue_new():
        flash_result(harness().new())
        return redirect(url_for("dashboard"))

    @app.route("/queue/free", methods=["POST"])
    @with_harness_lock
    def queue_free():
        flash_result(harness().free())
        return redirect(url_for("dashboard"))

    # -------------------------
    # operations
    # -------------------------
    @app.route("/queue/insert_head", methods=["POST"])
    @with_harness_lock
    def queue_insert_head():
        text = request.form.get("text") or ""
        flash_result(harness().insert_head(text, form_count()))
        return redirect(url_for("dashboard"))

    @app.route("/queue/insert_tail", methods=["POST"])
    @with_harness_lock
    def queue_insert_tail():
        text = request.form.get("text") or ""
        flash_result(harness().insert_tail(text, form_count()))
        return redirect(url_for("dashboard"))

    @app.route("/queue/remove_head", methods=["POST"])
    @with_harness_lock
    def queue_remove_head():
        h = harness()
        if request.form.get("quiet"):
            flash_result(h.remove_head_quiet())
        else:
            expected = request.form.get("expected") or None
            flash_result(h.remove_head(expected))
        return redirect(url_for("dashboard"))

    @app.route("/queue/reverse", methods=["POST"])
    @with_harness_lock
    def queue_reverse():
        flash_result(harness().reverse())
        return redirect(url_for("dashboard"))

    @app.route("/queue/sort", methods=["POST"])
    @with_harness_lock
    def queue_sort():
        flash_result(harness().sort())
        return redirect(url_for("dashboard"))

    # -------------------------
    # options / script
    # -------------------------
    @app.route("/queue/option", methods=["POST"])
    @with_harness_lock
    def queue_option():
        h = harness()
        try:
            if request.form.get("fail_probability"):
                flash_result(h.set_fail_probability(float(request.form["fail_probability"])))
            if request.form.get("string_length"):
                flash_result(h.set_string_length(int(request.form["string_length"])))
        except ValueError:
            flash("option: invalid value", "error")
        return redirect(url_for("dashboard"))

    @app.route("/queue/run", methods=["POST"])
    @with_harness_lock
    def queue_run():
        flash_result(harness().run_script(request.form.get("script") or ""))
        return redirect(url_for("dashboard"))


app = create_app()


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    app.run(debug=True)
