"""
Swagger UI page pointed at the served swagger file.

The viewer itself (JS/CSS) is loaded from a CDN; nothing here inspects the
document.
"""

from flask import render_template_string


SWAGGER_UI_VERSION = "5"

SWAGGER_UI_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{{ title }}</title>
  <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/swagger-ui-dist@{{ version }}/swagger-ui.css">
</head>
<body>
  <div id="swagger-ui"></div>
  <script src="https://cdn.jsdelivr.net/npm/swagger-ui-dist@{{ version }}/swagger-ui-bundle.js"></script>
  <script>
    window.ui = SwaggerUIBundle({
      url: {{ spec_url | tojson }},
      dom_id: "#swagger-ui",
      deepLinking: true
    });
  </script>
</body>
</html>
"""


def render_swagger_ui(spec_url: str, title: str = "Swagger UI") -> str:
    """Render the viewer page. Requires an app context."""
    return render_template_string(
        SWAGGER_UI_TEMPLATE,
        spec_url=spec_url,
        title=title,
        version=SWAGGER_UI_VERSION,
    )
