"""Minimal HTML pages shown to end users on the callback path."""

from __future__ import annotations

import html


def render_simple_page(title: str, message: str) -> str:
    safe_title = html.escape(title)
    safe_message = html.escape(message)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{safe_title}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif; margin: 0;
           padding: 40px 20px; background: #f8fafc; color: #0f172a; }}
    main {{ max-width: 640px; margin: 0 auto; background: #ffffff; border-radius: 12px;
           box-shadow: 0 8px 24px rgba(15, 23, 42, 0.08); padding: 28px; }}
    h1 {{ margin: 0 0 12px 0; font-size: 20px; }}
    p {{ margin: 0; line-height: 1.5; }}
  </style>
</head>
<body>
  <main>
    <h1>{safe_title}</h1>
    <p>{safe_message}</p>
  </main>
</body>
</html>"""
