"""HTML traceability matrix output."""

import html as _html

from tracelink.core.models import RTMEntry, utc_now
from tracelink.matrix.generator import RTMConfig
from tracelink.matrix.utils import rtm_columns, rtm_row

_STATUS_CLASSES = {
    "Verified": "verified",
    "Not Verified": "not-verified",
    "Partially Verified": "partially-verified",
}


def _escape_html(text: str) -> str:
    """Escape HTML special characters."""
    return _html.escape(text, quote=True)


def render_rtm_html(entries: list[RTMEntry], config: RTMConfig, generated_at: str | None = None) -> str:
    """Render RTM rows as a standalone HTML page.

    Args:
        entries: RTM rows in output order.
        config: Column selection flags.
        generated_at: Generation timestamp shown in the header.

    Returns:
        A complete HTML document with embedded CSS. The verification
        status cell carries a ``verified``/``not-verified``/
        ``partially-verified`` class.
    """
    columns = rtm_columns(config)
    status_index = columns.index("Verification Status")

    header_html = "".join(f"<th>{_escape_html(col)}</th>" for col in columns)

    rows = []
    for entry in entries:
        cells = []
        for index, value in enumerate(rtm_row(entry, config, list_sep=", ", coverage_suffix="%")):
            if index == status_index:
                css = _STATUS_CLASSES.get(value, "")
                cells.append(f'<td class="{css}">{_escape_html(value)}</td>')
            else:
                cells.append(f"<td>{_escape_html(value)}</td>")
        rows.append(f"            <tr>{''.join(cells)}</tr>")

    verified = sum(1 for e in entries if e.is_verified)
    tested = sum(1 for e in entries if e.linked_test_cases)

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Requirements Traceability Matrix</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto,
                Arial, sans-serif;
            margin: 20px;
            background: #f5f5f5;
        }}
        h1 {{ color: #333; }}
        .stats {{
            background: white;
            padding: 15px;
            border-radius: 8px;
            margin-bottom: 20px;
            box-shadow: 0 1px 3px rgba(0,0,0,0.1);
        }}
        .stats span {{
            margin-right: 30px;
            font-size: 14px;
        }}
        table {{
            width: 100%;
            border-collapse: collapse;
            background: white;
            box-shadow: 0 1px 3px rgba(0,0,0,0.1);
        }}
        th, td {{
            padding: 8px;
            text-align: left;
            border: 1px solid #ddd;
        }}
        th {{ background: #333; color: white; font-weight: 500; }}
        tr:nth-child(even) {{ background: #f9f9f9; }}
        .verified {{ color: green; }}
        .not-verified {{ color: red; }}
        .partially-verified {{ color: orange; }}
    </style>
</head>
<body>
    <h1>Requirements Traceability Matrix</h1>
    <div class="stats">
        <span><strong>Generated:</strong> {_escape_html(generated_at or utc_now())}</span>
        <span><strong>Total Requirements:</strong> {len(entries)}</span>
        <span><strong>With Tests:</strong> {tested}</span>
        <span><strong>Verified:</strong> {verified}</span>
    </div>
    <table>
        <thead>
            <tr>{header_html}</tr>
        </thead>
        <tbody>
{chr(10).join(rows)}
        </tbody>
    </table>
</body>
</html>
"""
