"""Widget markup. Pure functions of their inputs, safe to snapshot."""
from html import escape

TITLE = "Who’s That Pokémon?"


def render(item, reveal: bool, snippet: bool = False) -> str:
    """Render ``item`` as a silhouette or, when ``reveal`` is set, in colour.

    ``snippet`` returns only the fragment for embedding in a plugin layout.
    """
    safe_image_url = escape(item.image_url)
    safe_name = escape(item.name)
    shadow_style = "display:none;" if reveal else ""
    colored_style = "" if reveal else "display:none;"
    caption = (
        f'<p id="caption">It’s {safe_name}!</p>'
        if reveal else ""
    )

    core = f'''
    <style>
        html, body {{
            margin: 0;
            padding: 0;
            font-family: sans-serif;
            display: flex;
            flex-direction: column;
            align-items: center;
            justify-content: center;
            height: 100vh;
        }}
        #container {{
            position: relative;
            width: 256px;
            height: 256px;
        }}
        #container img {{
            width: 100%;
            height: 100%;
            object-fit: contain;
        }}
        #shadow {{ filter: brightness(0); }}
        #caption {{
            margin-top: 0.5rem;
            font-weight: bold;
            font-size: 1.2rem;
        }}
    </style>
    <h1>{TITLE}</h1>
    <div id="container">
        <img id="shadow" src="{safe_image_url}" alt="Silhouette" style="{shadow_style}">
        <img id="colored" src="{safe_image_url}" alt="{safe_name if reveal else 'Hidden'}" style="{colored_style}">
    </div>
    {caption}
'''.strip()

    if snippet:
        return core
    return (
        '<!DOCTYPE html><html lang="en"><head><meta charset="UTF-8">'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">'
        f"<title>{TITLE}</title></head><body>{core}</body></html>"
    )
