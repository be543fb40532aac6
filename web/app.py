"""
Chat Encryption Overlay - Web Interface
FastAPI backend for managing channel keys and encrypting/decrypting chat pages
"""

import sys
import os
from pathlib import Path
from typing import Optional

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Add src directory to path for imports
sys.path.insert(0, str(PROJECT_ROOT / 'src'))

# Change working directory to project root so the engine finds config.json
os.chdir(PROJECT_ROOT)

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from key_store import SecretTooShort
from overlay import ChatOverlay
from page_source import HtmlMessageSource

app = FastAPI(
    title="Chat Encryption Overlay",
    description="End-to-end encryption overlay for chat pages",
    version="1.0.0"
)

overlay = ChatOverlay()

# One session per page URL, so learned emojis and staged sends survive between calls.
# Least recently used pages are dropped past MAX_SESSIONS.
MAX_SESSIONS = 100
sessions = {}


class KeysRequest(BaseModel):
    url: str
    server_key: str
    channel_key: Optional[str] = ""


class EncryptRequest(BaseModel):
    url: str
    channel_name: str
    text: str


class RenderRequest(BaseModel):
    url: str
    html: str


class RenderResult(BaseModel):
    html: str
    decrypted: int
    failed: int
    channel_name: str


def _session_for(url: str):
    session = sessions.pop(url, None) or overlay.new_session()
    sessions[url] = session
    while len(sessions) > MAX_SESSIONS:
        sessions.pop(next(iter(sessions)))
    return session


@app.get("/")
async def home():
    """Service status"""
    return {"status": "ok", "service": app.title, "pages": len(sessions)}


@app.post("/keys")
async def set_keys(req: KeysRequest):
    """Store server/channel secrets for a page URL"""
    try:
        broad_id, narrow_id = overlay.set_keys(req.url, req.server_key, req.channel_key or "")
    except SecretTooShort as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "status": "stored",
        "server_scope": broad_id,
        "channel_scope": narrow_id if req.channel_key else None,
        "message": "Done. Reload your page to activate."
    }


@app.delete("/keys")
async def remove_keys(url: str):
    """Delete the secrets bound to a page URL"""
    overlay.remove_keys(url)
    sessions.pop(url, None)
    return {"status": "removed", "message": "Done. Your keys have been deleted."}


@app.post("/encrypt")
async def encrypt(req: EncryptRequest):
    """Encrypt a message for a channel"""
    if not req.text.strip():
        raise HTTPException(status_code=400, detail="Nothing to encrypt")
    return {"message": overlay.encrypt_message(req.url, req.channel_name, req.text)}


@app.post("/render", response_model=RenderResult)
async def render_page(req: RenderRequest):
    """Decrypt and re-render every encrypted message in a page"""
    source = HtmlMessageSource(req.html, req.url, overlay.config['selectors'])
    report = overlay.render_page(source, _session_for(req.url))
    return RenderResult(
        html=source.to_html(),
        decrypted=report.decrypted,
        failed=report.failed,
        channel_name=source.displayed_name(),
    )


if __name__ == "__main__":
    print("\n" + "="*50)
    print("Chat Encryption Overlay - Web Interface")
    print("="*50)
    print(f"\nProject root: {PROJECT_ROOT}")
    print("\nStarting server at http://localhost:8000\n")

    uvicorn.run(app, host="127.0.0.1", port=8000)
