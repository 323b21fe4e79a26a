import json
import sys
from collections import Counter
from datetime import datetime
from html import escape
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
LOG_PATH = ROOT / "logs" / "knock_events.jsonl"
REPORT_PATH = ROOT / "reports" / "knock_report.html"


def load_events(log_path: Path = LOG_PATH):
    if not log_path.exists():
        return []
    events = []
    with open(log_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            events.append(json.loads(line))
    return events


def fmt_ts(ts: str) -> str:
    # ISO-8601 from the event sink -> readable UTC time
    try:
        return datetime.fromisoformat(ts).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError):
        return str(ts)


def summarize(events: list) -> dict:
    failed = [e for e in events if str(e.get("action", "")).endswith("_failed")]
    return {
        "total": len(events),
        "failed": len(failed),
        "by_list": Counter(e.get("list_name", "UNKNOWN") for e in events),
        "by_ip": Counter(e.get("ip", "UNKNOWN") for e in events),
        "recent": sorted(events, key=lambda e: e.get("timestamp", ""), reverse=True)[:20],
    }


def render_html(summary: dict, generated: datetime) -> str:
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Path Knock Report</title>
  <style>
    body {{ font-family: -apple-system, system-ui, Arial; margin: 24px; }}
    .card {{ border: 1px solid #ddd; border-radius: 12px; padding: 16px; margin-bottom: 16px; }}
    h1 {{ margin-top: 0; }}
    table {{ width: 100%; border-collapse: collapse; }}
    th, td {{ border-bottom: 1px solid #eee; padding: 10px; text-align: left; font-size: 14px; }}
    th {{ background: #fafafa; }}
    .muted {{ color: #666; }}
    .pill {{ display: inline-block; padding: 3px 10px; border-radius: 999px; border: 1px solid #ddd; font-size: 12px; }}
  </style>
</head>
<body>
  <h1>Path Knock Report</h1>
  <p class="muted">Generated: {generated.strftime("%Y-%m-%d %H:%M:%S")}</p>

  <div class="card">
    <h2>Summary</h2>
    <p><span class="pill">Knocks</span> <b>{summary["total"]}</b></p>
    <p><span class="pill">Failed list updates</span> <b>{summary["failed"]}</b></p>
  </div>

  <div class="card">
    <h2>Knocks by List</h2>
    <table>
      <tr><th>List</th><th>Count</th></tr>
      {''.join(f"<tr><td>{escape(str(name))}</td><td>{count}</td></tr>" for name, count in summary["by_list"].most_common())}
    </table>
  </div>

  <div class="card">
    <h2>Top Knocking IPs</h2>
    <table>
      <tr><th>IP</th><th>Count</th></tr>
      {''.join(f"<tr><td>{escape(str(ip))}</td><td>{count}</td></tr>" for ip, count in summary["by_ip"].most_common(10))}
    </table>
  </div>

  <div class="card">
    <h2>Recent Knocks (last 20)</h2>
    <table>
      <tr>
        <th>Time</th>
        <th>Client IP</th>
        <th>Path</th>
        <th>List</th>
        <th>Action</th>
        <th>Expires (h)</th>
      </tr>
      {''.join(
        "<tr>"
        f"<td>{fmt_ts(e.get('timestamp', ''))}</td>"
        f"<td>{escape(str(e.get('ip', '')))}</td>"
        f"<td>{escape(str(e.get('path', '')))}</td>"
        f"<td>{escape(str(e.get('list_name', '')))}</td>"
        f"<td>{escape(str(e.get('action', '')))}</td>"
        f"<td>{e.get('expiration_hours', '')}</td>"
        "</tr>"
        for e in summary["recent"]
      )}
    </table>
  </div>

</body>
</html>"""


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    log_path = Path(argv[0]) if argv else LOG_PATH

    html = render_html(summarize(load_events(log_path)), datetime.now())

    REPORT_PATH.parent.mkdir(parents=True, exist_ok=True)
    REPORT_PATH.write_text(html, encoding="utf-8")
    print(f"[OK] Wrote report to: {REPORT_PATH}")


if __name__ == "__main__":
    main()
