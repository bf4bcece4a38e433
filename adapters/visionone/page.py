# adapters/visionone/page.py
"""
HTML-Chat-Seite für GET /
"""

from html import escape
from typing import List

PAGE_TEMPLATE = """<!doctype html><html><head><meta charset="utf-8"/>
<title>Vision One MCP Chat</title>
<style>
body{{font:14px/1.4 system-ui;padding:24px;max-width:860px;margin:auto}}
#log{{border:1px solid #ddd;padding:12px;height:460px;overflow:auto;border-radius:10px;white-space:pre-wrap}}
input{{width:100%;padding:12px;margin-top:12px;border:1px solid #ccc;border-radius:10px}}
small{{color:#666}}
.tag{{display:inline-block;background:#f3f3f3;padding:2px 8px;border-radius:999px;margin-right:6px;font-size:12px}}
</style></head>
<body>
  <h1>Vision One MCP Chat</h1>
  <p>
    <span class="tag">Region: {region}</span>
    <span class="tag">Ollama: {ollama_base}</span>
    <span class="tag">Model: {model}</span>
  </p>
  <p><small>Tools: {tools}</small></p>
  <div id="log"></div>
  <input id="msg" placeholder="Ask about Workbench alerts, CREM assets, containers, endpoints. Enter to send."/>
<script>
const proto = location.protocol === 'https:' ? 'wss://' : 'ws://';
const ws = new WebSocket(proto + location.host + '/ws');
const log = document.getElementById('log');
const msg = document.getElementById('msg');
function add(text){{const p=document.createElement('div');p.textContent=text;log.appendChild(p);log.scrollTop=log.scrollHeight;}}
ws.onmessage = e => add(e.data);
ws.onclose = () => add('Disconnected.');
msg.addEventListener('keydown', e=>{{
  if(e.key==='Enter' && msg.value.trim()){{
    ws.send(msg.value.trim());
    add('You: ' + msg.value.trim());
    msg.value='';
  }}
}});
</script>
</body></html>"""


def render_page(region: str, ollama_base: str, model: str, tool_names: List[str]) -> str:
    tools = ", ".join(tool_names) if tool_names else "not connected yet (tools load on first question)"
    return PAGE_TEMPLATE.format(
        region=escape(region),
        ollama_base=escape(ollama_base),
        model=escape(model),
        tools=escape(tools),
    )
