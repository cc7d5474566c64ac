import json
import logging
import os
import sys
import time
from dataclasses import asdict
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from config import ExtractionConfig, DEFAULT_CONFIG
from documents import Document, DocumentKind
from errors import ExtractionError, SegmentationFailed
from logs import setup_logging
from pipeline import process_document
from storage import JsonFileStore, JsonlReviewQueue, ResultStore, ReviewQueue

logger = logging.getLogger(__name__)

API_PATH = "/api/extract"
MAX_BODY_BYTES = 64 * 1024 * 1024
RESERVED_METADATA_KEYS = frozenset({"data", "kind", "media_type", "filename"})


def error_body(code: str, detail: str) -> Dict[str, Any]:
    return {"success": False, "error": code, "detail": detail}


def build_document(payload: Dict[str, Any]) -> Document:
    """Inbound JSON -> Document. Raises ValueError on bad input."""
    data = payload.get("document_base64")
    if not data or not isinstance(data, str):
        raise ValueError("document_base64 is required")

    kind = payload.get("document_kind")
    valid_kinds = [k.value for k in DocumentKind]
    if kind not in valid_kinds:
        raise ValueError(f"document_kind must be one of: {', '.join(valid_kinds)}")

    metadata = payload.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValueError("metadata must be an object")
    reserved = RESERVED_METADATA_KEYS.intersection(metadata)
    if reserved:
        raise ValueError(f"metadata may not contain: {', '.join(sorted(reserved))}")

    return Document.from_base64(
        data,
        DocumentKind(kind),
        media_type=payload.get("media_type") or "application/pdf",
        filename=payload.get("filename") or "document.pdf",
        **metadata,
    )


def handle_extract(
    payload: Any,
    config: ExtractionConfig = DEFAULT_CONFIG,
    store: Optional[ResultStore] = None,
    review_queue: Optional[ReviewQueue] = None,
    **pipeline_kwargs,
) -> Tuple[int, Dict[str, Any]]:
    """Run one extraction request; returns (HTTP status, JSON body)."""
    if not isinstance(payload, dict):
        return 400, error_body("bad_request", "Expected a JSON object")

    try:
        document = build_document(payload)
    except ValueError as e:
        return 400, error_body("bad_request", str(e))

    try:
        outcome, item_id = process_document(document, config, store=store, review_queue=review_queue, **pipeline_kwargs)
    except SegmentationFailed as e:
        return 422, error_body(e.code, str(e))
    except ExtractionError as e:
        logger.exception("Extraction failed for %s", document.filename)
        return 500, error_body(e.code, str(e))
    except OSError as e:
        logger.exception("Could not persist result for %s", document.filename)
        return 500, error_body("storage_error", str(e))

    return 200, {
        "success": True,
        "item_id": item_id,
        "result": outcome.result.model_dump(mode="json"),
        "metrics": asdict(outcome.metrics),
    }


class ExtractionHandler(BaseHTTPRequestHandler):
    """HTTP handler with the extraction API endpoint."""

    config: ExtractionConfig = DEFAULT_CONFIG
    store: Optional[ResultStore] = None
    review_queue: Optional[ReviewQueue] = None

    @property
    def cors_origin(self) -> str:
        return os.getenv("FRONTEND_ORIGIN", "*")

    def _set_cors_headers(self):
        self.send_header('Access-Control-Allow-Origin', self.cors_origin)
        self.send_header('Vary', 'Origin')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type, Authorization')
        self.send_header('Access-Control-Allow-Methods', 'POST, OPTIONS')

    def _send_json(self, status: int, body: Dict[str, Any]):
        data = json.dumps(body, indent=2, ensure_ascii=False).encode("utf-8")
        self.send_response(status)
        self._set_cors_headers()
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_OPTIONS(self):
        # CORS preflight support
        if urlparse(self.path).path == API_PATH:
            self.send_response(204)
            self._set_cors_headers()
            self.end_headers()
        else:
            self.send_error(404, "Not Found")

    def do_POST(self):
        if urlparse(self.path).path != API_PATH:
            self.send_error(404, "Not Found")
            return

        length = int(self.headers.get('Content-Length') or 0)
        if length <= 0:
            self._send_json(400, error_body("bad_request", "Empty request body"))
            return
        if length > MAX_BODY_BYTES:
            self._send_json(413, error_body("bad_request", "Request body too large"))
            return

        try:
            payload = json.loads(self.rfile.read(length))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._send_json(400, error_body("bad_request", f"Invalid JSON: {e}"))
            return

        status, body = handle_extract(payload, self.config, self.store, self.review_queue)
        self._send_json(status, body)

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)


class ReloadHandler(FileSystemEventHandler):
    """Watch for Python file changes and trigger reload."""

    def __init__(self, restart_callback):
        self.restart_callback = restart_callback
        self.last_modified = {}

    def on_modified(self, event):
        if event.src_path.endswith('.py'):
            # Debounce: only reload if file hasn't been modified in last second
            now = time.time()
            if event.src_path not in self.last_modified or now - self.last_modified[event.src_path] > 1:
                self.last_modified[event.src_path] = now
                logger.info("Detected change in %s, restarting server", Path(event.src_path).name)
                self.restart_callback()


def run_server(port=8000, host='localhost', auto_reload=True):
    """Start the server with optional auto-reload.

    In production, bind to host '0.0.0.0' and the provided PORT.
    """
    ExtractionHandler.store = JsonFileStore(os.getenv("RESULTS_DIR", "results"))
    ExtractionHandler.review_queue = JsonlReviewQueue(os.getenv("REVIEW_QUEUE_PATH", "review_queue.jsonl"))
    server = HTTPServer((host, port), ExtractionHandler)

    logger.info("Extraction server on http://%s:%s%s (auto-reload: %s)",
                host, port, API_PATH, "enabled" if auto_reload else "disabled")

    observer = None

    if auto_reload:
        def restart():
            server.shutdown()
            observer.stop()
            # Restart process
            os.execv(sys.executable, [sys.executable] + sys.argv)

        observer = Observer()
        # Watch current directory for .py file changes
        observer.schedule(ReloadHandler(restart), path=str(Path(__file__).parent), recursive=False)
        observer.start()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server stopped")
    finally:
        if observer:
            observer.stop()
            observer.join()
        server.server_close()


if __name__ == '__main__':
    setup_logging()
    # Derive host/port from env for cloud platforms
    env_port = int(os.getenv('PORT', '8000'))
    # If PORT is set, bind to all interfaces
    env_host = os.getenv('HOST', '0.0.0.0' if os.getenv('PORT') else 'localhost')
    # Disable auto-reload in production
    auto_reload = not os.getenv('PORT')
    run_server(port=env_port, host=env_host, auto_reload=auto_reload)
