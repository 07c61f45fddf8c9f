"""Point MPESA_CALLBACK_URL in .env at the running ngrok tunnel.

Run `ngrok http 8000` first; Daraja needs a public HTTPS callback.
"""

import re
import sys
from pathlib import Path

import httpx

NGROK_API = "http://127.0.0.1:4040/api/tunnels"
ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
CALLBACK_RE = re.compile(r"^MPESA_CALLBACK_URL=.*$", re.MULTILINE)


def find_https_tunnel() -> str:
    response = httpx.get(NGROK_API, timeout=5.0)
    response.raise_for_status()
    for tunnel in response.json().get("tunnels", []):
        if tunnel.get("proto") == "https":
            return tunnel["public_url"]
    raise RuntimeError("No HTTPS tunnel found. Run `ngrok http 8000` first.")


def update_env(public_url: str, env_path: Path = ENV_PATH) -> None:
    line = f"MPESA_CALLBACK_URL={public_url.rstrip('/')}/callback"
    content = env_path.read_text(encoding="utf-8") if env_path.exists() else ""
    if CALLBACK_RE.search(content):
        content = CALLBACK_RE.sub(line, content)
    else:
        if content and not content.endswith("\n"):
            content += "\n"
        content += line + "\n"
    env_path.write_text(content, encoding="utf-8")


def main() -> int:
    try:
        public_url = find_https_tunnel()
        print(f"✅ Ngrok URL found: {public_url}")
        update_env(public_url)
    except (httpx.HTTPError, RuntimeError, OSError) as exc:
        print(f"❌ Failed to update .env: {exc}")
        return 1
    print(f"✅ {ENV_PATH.name} updated successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
