# main.py
"""
Confessio Server Entry Point — v1.0.0

WSGI servers import `app` from here (e.g. `gunicorn main:app`).
Running the module directly starts Flask's development server.
"""

from system.config import AppConfig, load_env
from confessio_api import create_app


load_env()
config = AppConfig.from_env()
app = create_app(config)


if __name__ == "__main__":
    print(f"[Confessio] Starting server on port {config.port}...", flush=True)
    print(f"[Confessio] KV provider: {config.kv_provider}", flush=True)
    if not config.llm_enabled:
        print("[Confessio] OPENAI_API_KEY not set, using keyword fallbacks", flush=True)
    app.run(host="0.0.0.0", port=config.port, debug=config.debug)
