"""
Template archive generation for purchased downloads
Builds the ZIP entirely in memory and streams it in chunks
"""

import io
import json
import logging
import posixpath
import re
import zipfile
from datetime import datetime
from typing import Dict, Iterator, List, Tuple, Optional

from config import settings
from app.models.purchase import Purchase
from app.models.template import Template

logger = logging.getLogger(__name__)

# Code bundle key -> archive file name
CODE_BUNDLE_FILES = (
    (("html",), "index.html"),
    (("css",), "styles.css"),
    (("js", "javascript"), "script.js"),
)

RESERVED_NAMES = {"README.md", "LICENSE", "package.json"}


class ArchiveBuildError(Exception):
    """Raised when a template archive cannot be assembled"""
    pass


def slugify(name: str) -> str:
    """Lowercase and collapse whitespace runs to hyphens"""
    return re.sub(r"\s+", "-", (name or "").lower())


def archive_filename(template: Template) -> str:
    return f"{slugify(template.name)}-template.zip"


def build_readme(template: Template) -> str:
    return f"""# {template.name}

Thank you for purchasing this template from {settings.APP_NAME}!

## Description

{template.description or ""}

## Getting Started

1. Extract all files from this ZIP
2. Open `index.html` in your browser to preview
3. Edit the HTML, CSS, and JS files as needed
4. Deploy to your hosting provider

## Files Included

- `index.html` - Main HTML template
- `styles.css` - Styling
- `script.js` - JavaScript functionality (if applicable)
- `README.md` - This file
- `LICENSE` - License information

## Customization

### Colors
Edit the CSS variables in `styles.css` to change the color scheme.

### Content
Replace placeholder text and images with your own content.

### Deployment
You can deploy this template to any static hosting service:
- GitHub Pages
- Netlify
- Vercel
- Any web server

## Support

If you have any questions, please contact us at:
- Email: {settings.SUPPORT_EMAIL}
- Website: {settings.SUPPORT_WEBSITE}

## License

This template is licensed for use by the purchaser only.
See LICENSE file for details.

---

Made with ❤️ by {settings.APP_NAME}
"""


def build_package_json(template: Template) -> str:
    """Node project manifest for SaaS and booking templates"""
    return json.dumps({
        "name": slugify(template.name),
        "version": "1.0.0",
        "description": template.description or "",
        "main": "index.js",
        "scripts": {
            "start": "node index.js",
            "dev": "nodemon index.js",
            "build": "npm run build"
        },
        "dependencies": {
            "express": "^4.18.0"
        },
        "devDependencies": {
            "nodemon": "^3.0.0"
        },
        "author": settings.APP_NAME,
        "license": "SEE LICENSE FILE"
    }, indent=2, ensure_ascii=False)


def build_license(buyer_id: str, purchase_date: Optional[datetime] = None) -> str:
    """Single-purchaser, non-transferable license text"""
    today = datetime.utcnow()
    purchase_date = purchase_date or today

    return f"""{settings.APP_NAME.upper()} TEMPLATE LICENSE

Copyright (c) {today.year} {settings.APP_NAME}

LICENSED TO: {buyer_id}
PURCHASE DATE: {purchase_date.strftime("%Y-%m-%d")}

PERMITTED USES:
- Use the template for personal or commercial projects
- Modify the template as needed
- Deploy the template to any hosting provider
- Create unlimited websites using this template

NOT PERMITTED:
- Reselling or redistributing the template
- Sharing with third parties
- Claiming as your own creation
- Removing attribution (where visible)

This license is non-transferable and applies only to the
original purchaser.

For questions about licensing:
{settings.SUPPORT_EMAIL}
"""


def is_safe_entry_name(name) -> bool:
    """Relative path that stays inside the archive root"""
    if not isinstance(name, str) or not name.strip():
        return False
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or re.match(r"^[A-Za-z]:", normalized):
        return False
    return ".." not in normalized.split("/") and posixpath.normpath(normalized) not in (".", "")


def collect_code_files(code: Optional[str]) -> List[Tuple[str, str]]:
    """
    Split stored template code into archive entries.

    A JSON object contributes index.html, styles.css and script.js from its
    html, css and js (or javascript) keys, plus every {name, content} entry of
    its files array. Anything that is not a JSON object is one HTML document.
    """
    if not code:
        return []

    try:
        bundle = json.loads(code)
    except ValueError:
        return [("index.html", code)]

    if not isinstance(bundle, dict):
        return [("index.html", code)]

    entries = []
    for keys, filename in CODE_BUNDLE_FILES:
        content = next((bundle[key] for key in keys if bundle.get(key)), None)
        if content:
            entries.append((filename, content if isinstance(content, str) else json.dumps(content)))

    files = bundle.get("files")
    if isinstance(files, list):
        for item in files:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            if not is_safe_entry_name(name):
                logger.warning(f"Skipping unsafe bundle file name: {name!r}")
                continue
            content = item.get("content")
            if content is None:
                content = ""
            entries.append((name.replace("\\", "/"), content if isinstance(content, str) else json.dumps(content)))

    return entries


def build_archive_entries(template: Template, purchase: Purchase) -> Dict[str, str]:
    """Ordered archive contents, name -> text"""
    entries = {"README.md": build_readme(template)}

    for name, content in collect_code_files(template.code):
        if name in RESERVED_NAMES:
            logger.warning(f"Bundle file {name} would shadow a generated file, skipping")
            continue
        entries[name] = content

    if template.ships_node_project:
        entries["package.json"] = build_package_json(template)

    entries["LICENSE"] = build_license(purchase.user_id, purchase.purchase_date)
    return entries


def build_template_archive(template: Template, purchase: Purchase) -> bytes:
    """Assemble the ZIP in memory with maximum DEFLATE compression"""
    try:
        entries = build_archive_entries(template, purchase)
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for name, content in entries.items():
                archive.writestr(name, content.encode("utf-8"))
        return buffer.getvalue()
    except Exception as e:
        raise ArchiveBuildError(f"Failed to build archive for template {template.id}: {e}") from e


def iter_archive_chunks(data: bytes, purchase_id: int, chunk_size: Optional[int] = None) -> Iterator[bytes]:
    """Yield the archive in chunks; errors after the first byte can only be logged"""
    chunk_size = chunk_size or settings.ARCHIVE_STREAM_CHUNK_SIZE
    view = memoryview(data)
    try:
        for offset in range(0, len(view), chunk_size):
            yield bytes(view[offset:offset + chunk_size])
    except Exception as e:
        logger.error(f"Download stream failed for purchase {purchase_id}: {e}")
        return

    logger.info(f"Download completed for purchase {purchase_id}")
