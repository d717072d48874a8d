"""
HTML for the sign-in UI. Plain strings; every interpolated value goes through `escape`.
"""

from __future__ import annotations

from html import escape
from typing import Optional

from gsignin.auth.callback import CallbackResult, CallbackStatus
from gsignin.auth.models import AuthUser
from gsignin.auth.session import AuthState

TITLE = "YouTube Hackathon"

_STYLE = """
body { font-family: system-ui, sans-serif; display: flex; flex-direction: column; align-items: center;
       justify-content: center; min-height: 100vh; margin: 0; padding: 2rem; text-align: center; }
.card { padding: 2em; }
.avatar { width: 64px; height: 64px; border-radius: 50%; }
.error { color: red; }
.success { color: green; }
button, .button { margin-top: 1rem; padding: 0.5rem 1rem; background-color: #007bff; color: white;
                  border: none; border-radius: 4px; cursor: pointer; text-decoration: none; }
.spinner { width: 40px; height: 40px; border: 4px solid #f3f3f3; border-top: 4px solid #3498db;
           border-radius: 50%; animation: spin 1s linear infinite; margin: 1rem auto; }
@keyframes spin { 0% { transform: rotate(0deg); } 100% { transform: rotate(360deg); } }
"""

_PING_SCRIPT = """
<script>
async function pingServer() {
  const out = document.getElementById('ping-result');
  out.textContent = 'Pinging...';
  try {
    const r = await fetch('/healthz');
    out.textContent = JSON.stringify(await r.json());
  } catch (e) {
    out.textContent = 'Error: ' + e;
  }
}
</script>
"""


def _page(body: str, *, head_extra: str = "") -> str:
    return (
        "<!doctype html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{escape(TITLE)}</title>"
        f"<style>{_STYLE}</style>{head_extra}</head>\n"
        f"<body>{body}</body></html>\n"
    )


def render_home(state: AuthState, user: Optional[AuthUser], *, sign_in_enabled: bool = True) -> str:
    parts = [f"<h1>{escape(TITLE)}</h1>", '<div class="card">']

    if state == AuthState.SIGNED_IN and user is not None:
        if user.picture:
            parts.append(f'<img class="avatar" src="{escape(user.picture)}" alt="avatar">')
        parts.append(f"<p>Signed in as <strong>{escape(user.name or user.email or user.id)}</strong></p>")
        if user.email:
            parts.append(f"<p>{escape(user.email)}</p>")
        parts.append('<form method="post" action="/auth/logout"><button type="submit">Sign out</button></form>')
    else:
        if sign_in_enabled:
            parts.append('<a class="button" href="/auth/login/google">Sign in with Google</a>')
        else:
            parts.append('<p class="error">Google sign-in is not configured.</p>')

    parts.append('<p><button type="button" onclick="pingServer()">Ping server</button></p>')
    parts.append('<pre id="ping-result"></pre>')
    parts.append("</div>")
    return _page("".join(parts), head_extra=_PING_SCRIPT)


def render_callback(result: CallbackResult) -> str:
    parts = ["<h1>Authentication</h1>"]
    head_extra = ""

    if result.status == CallbackStatus.SUCCESS:
        parts.append(f'<div class="success"><p>&#9989; {escape(result.message)}</p></div>')
        if result.redirect_to:
            target = escape(result.redirect_to, quote=True)
            head_extra = f'<meta http-equiv="refresh" content="{int(result.redirect_after_seconds)};url={target}">'
    elif result.status == CallbackStatus.ERROR:
        parts.append(
            f'<div class="error"><p>&#10060; {escape(result.message)}</p>'
            '<a class="button" href="/">Return to App</a></div>'
        )
    else:
        parts.append('<div><p>Processing authentication...</p><div class="spinner"></div></div>')

    return _page("".join(parts), head_extra=head_extra)
