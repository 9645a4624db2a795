"""
Экспорт и проверка OpenAPI-схемы api_gateway.

  python scripts/openapi.py            # записать openapi/openapi.json
  python scripts/openapi.py --check    # сверить текущую схему с файлом
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from apps.api_gateway.main import app


def _args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Export or verify the OpenAPI spec")
    p.add_argument("--path", default="openapi/openapi.json", help="Path to spec file")
    p.add_argument("--check", action="store_true", help="Compare instead of writing")
    return p.parse_args()


def normalize(obj):
    return json.loads(json.dumps(obj, sort_keys=True, ensure_ascii=False))


def main() -> int:
    args = _args()
    path = Path(args.path)
    current = app.openapi()

    if not args.check:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(current, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        print(f"Wrote {path}")
        return 0

    if not path.exists():
        print(f"ERROR: {path} not found. Run: python scripts/openapi.py")
        return 1
    expected = json.loads(path.read_text(encoding="utf-8"))
    if normalize(current) != normalize(expected):
        print("ERROR: OpenAPI spec mismatch (current != expected).")
        return 1

    print("OK: OpenAPI spec matches")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
