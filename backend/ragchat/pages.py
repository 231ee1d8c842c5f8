from __future__ import annotations

from html import escape

from .citations import blob_proxy_url
from .config import AzureBlobOptions
from .schemas import ChatMessage, Citation, SessionState

_STYLE = """
body { font-family: system-ui, sans-serif; margin: 0; display: flex; min-height: 100vh; background: #f5f6f8; }
aside { width: 280px; padding: 1rem; background: #fff; border-right: 1px solid #ddd; }
main { flex: 1; display: flex; flex-direction: column; padding: 1rem 2rem; }
.transcript { flex: 1; overflow-y: auto; }
.msg { display: flex; gap: .75rem; margin: .75rem 0; }
.msg img.avatar { width: 32px; height: 32px; border-radius: 50%; }
.msg .body { background: #fff; border-radius: 8px; padding: .5rem 1rem; max-width: 80ch; }
.msg.user .body { background: #e7f0ff; }
.citations { font-size: .85rem; border-top: 1px solid #eee; margin-top: .5rem; }
.citation img { max-width: 240px; display: block; margin: .25rem 0; }
.usage td { padding: 0 .5rem; }
textarea, input[type=number] { width: 100%; box-sizing: border-box; }
form.ask { display: flex; gap: .5rem; }
form.ask textarea { flex: 1; }
"""


def _render_citation(citation: Citation, index: int, blob: AzureBlobOptions) -> str:
    title = escape(citation.title or citation.file_path or f"Source {index}")
    parts = [f'<li class="citation"><strong>[{index}] {title}</strong>']
    if citation.file_path and citation.file_path != citation.title:
        parts.append(f"<div><code>{escape(citation.file_path)}</code></div>")
    if citation.snippet:
        parts.append(f"<details><summary>Excerpt</summary><p>{escape(citation.snippet)}</p></details>")
    for url in citation.image_urls:
        src = escape(blob_proxy_url(url, blob), quote=True)
        parts.append(f'<img src="{src}" alt="{title}" loading="lazy">')
    parts.append("</li>")
    return "".join(parts)


def _render_message(message: ChatMessage, blob: AzureBlobOptions) -> str:
    css = "user" if message.role == "User" else "ai"
    avatar = ""
    if message.avatar_url:
        avatar = f'<img class="avatar" src="{escape(message.avatar_url, quote=True)}" alt="{message.role}">'
    citations = ""
    if message.citations:
        items = "".join(_render_citation(c, i, blob) for i, c in enumerate(message.citations, start=1))
        citations = f'<ol class="citations">{items}</ol>'
    return (
        f'<div class="msg {css}">{avatar}'
        f'<div class="body">{message.html_content}{citations}</div></div>'
    )


def render_chat_page(state: SessionState, blob: AzureBlobOptions, *, title: str) -> str:
    transcript = "".join(_render_message(m, blob) for m in state.chat_history)
    if not transcript:
        transcript = '<p class="empty">Ask a question about your documents to get started.</p>'
    usage = state.usage
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{escape(title)}</title>
<style>{_STYLE}</style>
</head>
<body>
<aside>
  <h2>Settings</h2>
  <form method="post" action="/">
    <label for="system_prompt_input">System message</label>
    <textarea id="system_prompt_input" name="system_prompt_input" rows="6">{escape(state.system_prompt)}</textarea>
    <label for="max_response_input">Max response tokens</label>
    <input id="max_response_input" name="max_response_input" type="number" min="1" value="{state.max_response}">
    <button type="submit">Apply</button>
  </form>
  <h3>Token usage (last reply)</h3>
  <table class="usage">
    <tr><td>Prompt</td><td>{usage.prompt_tokens}</td></tr>
    <tr><td>Completion</td><td>{usage.completion_tokens}</td></tr>
    <tr><td>Total</td><td>{usage.total_tokens}</td></tr>
  </table>
  <form method="post" action="/reset"><button type="submit">Clear chat</button></form>
</aside>
<main>
  <h1>{escape(title)}</h1>
  <div class="transcript">{transcript}</div>
  <form class="ask" method="post" action="/">
    <textarea name="user_input" rows="2" placeholder="Type your question"></textarea>
    <button type="submit">Send</button>
  </form>
</main>
</body>
</html>
"""
